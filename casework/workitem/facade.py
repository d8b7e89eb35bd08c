"""Public entry point of the work item vertical for other parts of the system."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Protocol, Sequence, Union

from casework.workitem import domain
from casework.workitem.domain import (
    ActionKind,
    ActionKindLike,
    DraftStatus,
    DraftStatusLike,
    PartyRole,
    PartyRoleLike,
    Status,
    StatusLike,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ActionKind",
    "AddNoteDTO",
    "AssistantActionRecordedEvent",
    "ConfirmOutboundMessageDTO",
    "DeleteNoteDTO",
    "DraftStatus",
    "EditNoteDTO",
    "InboundMessageRecordedEvent",
    "IntakeInboundMessageDTO",
    "NoteAddedToTimelineEntryEvent",
    "NoteDeletedFromTimelineEntryEvent",
    "NoteEditedOnTimelineEntryEvent",
    "OutboundMessageRecordedEvent",
    "PartyLinkedEvent",
    "PartyRole",
    "RecordAssistantActionDTO",
    "Status",
    "SubjectLinkedEvent",
    "WorkItemCreatedEvent",
    "WorkItemFacade",
    "WorkItemStatusChangedEvent",
]


# --- DTOs ------------------------------------------------------------------


@dataclass(frozen=True)
class IntakeInboundMessageDTO:
    """Data for creating a work item with an inbound message."""

    sender_party_id: str = ""
    subject_id: str = ""
    body: str = ""
    handler_party_id: str = ""
    agent_party_id: str = ""


@dataclass(frozen=True)
class RecordAssistantActionDTO:
    """Data for recording an AI assistant action."""

    actor_id: str = ""
    action_kind: ActionKindLike = ""
    output: str = ""
    draft_status: DraftStatusLike = DraftStatus.NONE


@dataclass(frozen=True)
class ConfirmOutboundMessageDTO:
    """Data for confirming an outbound message."""

    confirmed_by_party_id: str = ""
    body: str = ""


@dataclass(frozen=True)
class AddNoteDTO:
    """Data for adding a note to a timeline entry."""

    entry_index: int = 0
    author_id: str = ""
    body: str = ""


@dataclass(frozen=True)
class EditNoteDTO:
    """Data for editing a note."""

    note_id: str = ""
    body: str = ""


@dataclass(frozen=True)
class DeleteNoteDTO:
    """Data for soft-deleting a note."""

    note_id: str = ""


# --- published events ------------------------------------------------------


@dataclass(frozen=True)
class WorkItemCreatedEvent:
    """Published when a new work item is created."""

    work_item_id: str
    created_at: datetime


@dataclass(frozen=True)
class PartyLinkedEvent:
    """Published when a party is linked to a work item."""

    work_item_id: str
    party_id: str
    role: PartyRoleLike


@dataclass(frozen=True)
class SubjectLinkedEvent:
    """Published when a subject is linked to a work item."""

    work_item_id: str
    subject_id: str


@dataclass(frozen=True)
class InboundMessageRecordedEvent:
    """Published when an inbound message is recorded."""

    work_item_id: str
    sender_id: str
    body: str
    recorded_at: datetime


@dataclass(frozen=True)
class AssistantActionRecordedEvent:
    """Published when an AI assistant performs an action."""

    work_item_id: str
    actor_id: str
    action_kind: ActionKindLike
    output: str
    draft_status: DraftStatusLike
    recorded_at: datetime


@dataclass(frozen=True)
class OutboundMessageRecordedEvent:
    """Published when an outbound message is confirmed."""

    work_item_id: str
    confirmed_by: str
    body: str
    recorded_at: datetime


@dataclass(frozen=True)
class WorkItemStatusChangedEvent:
    """Published when the work item status changes."""

    work_item_id: str
    old_status: StatusLike
    new_status: StatusLike


@dataclass(frozen=True)
class NoteAddedToTimelineEntryEvent:
    """Published when a note is added to a timeline entry."""

    work_item_id: str
    note_id: str
    entry_index: int
    author_id: str
    body: str
    created_at: datetime


@dataclass(frozen=True)
class NoteEditedOnTimelineEntryEvent:
    """Published when a note is edited."""

    work_item_id: str
    note_id: str
    body: str
    edited_at: datetime


@dataclass(frozen=True)
class NoteDeletedFromTimelineEntryEvent:
    """Published when a note is soft-deleted."""

    work_item_id: str
    note_id: str
    deleted_at: datetime


_PUBLISHED: dict[str, type] = {
    domain.EVENT_WORK_ITEM_CREATED: WorkItemCreatedEvent,
    domain.EVENT_PARTY_LINKED: PartyLinkedEvent,
    domain.EVENT_SUBJECT_LINKED: SubjectLinkedEvent,
    domain.EVENT_INBOUND_MESSAGE_RECORDED: InboundMessageRecordedEvent,
    domain.EVENT_ASSISTANT_ACTION_RECORDED: AssistantActionRecordedEvent,
    domain.EVENT_OUTBOUND_MESSAGE_RECORDED: OutboundMessageRecordedEvent,
    domain.EVENT_WORK_ITEM_STATUS_CHANGED: WorkItemStatusChangedEvent,
    domain.EVENT_NOTE_ADDED_TO_TIMELINE_ENTRY: NoteAddedToTimelineEntryEvent,
    domain.EVENT_NOTE_EDITED_ON_TIMELINE_ENTRY: NoteEditedOnTimelineEntryEvent,
    domain.EVENT_NOTE_DELETED_FROM_TIMELINE_ENTRY: NoteDeletedFromTimelineEntryEvent,
}


# --- collaborators ---------------------------------------------------------


class _StoredEvent(Protocol):
    event_type: str
    payload: Union[str, bytes]


class _EventStore(Protocol):
    def append(
        self, stream_id: str, expected_version: int, events: Sequence[domain.DomainEvent]
    ) -> Sequence[_StoredEvent]: ...

    def load_stream(self, stream_id: str) -> Sequence[_StoredEvent]: ...


class _EventBus(Protocol):
    def publish(self, event: Any) -> None: ...


def _stream_id(work_item_id: str) -> str:
    return f"workitem-{work_item_id}"


class WorkItemFacade:
    """Runs work item commands against the event store and publishes the results."""

    def __init__(self, store: _EventStore, bus: _EventBus, clock: domain.Clock) -> None:
        self._store = store
        self._bus = bus
        self._clock = clock

    def intake_inbound_message(self, dto: IntakeInboundMessageDTO) -> str:
        """Create a work item with its initial inbound message and return its ID."""
        work_item_id = str(uuid.uuid4())
        item = domain.WorkItem(clock=self._clock)
        events = item.intake_inbound_message(
            domain.IntakeCmd(
                work_item_id=work_item_id,
                sender_party_id=dto.sender_party_id,
                subject_id=dto.subject_id,
                body=dto.body,
                handler_party_id=dto.handler_party_id,
                agent_party_id=dto.agent_party_id,
            )
        )
        self._commit(_stream_id(work_item_id), 0, events)
        return work_item_id

    def record_assistant_action(self, work_item_id: str, dto: RecordAssistantActionDTO) -> None:
        """Record an AI assistant action on an existing work item."""
        stream_id = _stream_id(work_item_id)
        item, version = self._load(stream_id)
        events = item.record_assistant_action(
            domain.AssistantActionCmd(
                work_item_id=work_item_id,
                actor_id=dto.actor_id,
                action_kind=dto.action_kind,
                output=dto.output,
                draft_status=dto.draft_status,
            )
        )
        self._commit(stream_id, version, events)

    def confirm_outbound_message(self, work_item_id: str, dto: ConfirmOutboundMessageDTO) -> None:
        """Confirm the pending outbound message of an existing work item."""
        stream_id = _stream_id(work_item_id)
        item, version = self._load(stream_id)
        events = item.confirm_outbound_message(
            domain.ConfirmCmd(
                work_item_id=work_item_id,
                confirmed_by=dto.confirmed_by_party_id,
                body=dto.body,
            )
        )
        self._commit(stream_id, version, events)

    def add_note(self, work_item_id: str, dto: AddNoteDTO) -> str:
        """Add a note to a timeline entry and return the note's ID."""
        stream_id = _stream_id(work_item_id)
        item, version = self._load(stream_id)
        note_id = str(uuid.uuid4())
        events = item.add_note(
            domain.AddNoteCmd(
                work_item_id=work_item_id,
                note_id=note_id,
                entry_index=dto.entry_index,
                author_id=dto.author_id,
                body=dto.body,
            )
        )
        self._commit(stream_id, version, events)
        return note_id

    def edit_note(self, work_item_id: str, dto: EditNoteDTO) -> None:
        """Edit an existing note on a work item."""
        stream_id = _stream_id(work_item_id)
        item, version = self._load(stream_id)
        events = item.edit_note(
            domain.EditNoteCmd(work_item_id=work_item_id, note_id=dto.note_id, body=dto.body)
        )
        self._commit(stream_id, version, events)

    def delete_note(self, work_item_id: str, dto: DeleteNoteDTO) -> None:
        """Soft-delete a note on a work item."""
        stream_id = _stream_id(work_item_id)
        item, version = self._load(stream_id)
        events = item.delete_note(domain.DeleteNoteCmd(work_item_id=work_item_id, note_id=dto.note_id))
        self._commit(stream_id, version, events)

    def _load(self, stream_id: str) -> tuple[domain.WorkItem, int]:
        records = list(self._store.load_stream(stream_id))
        item = domain.WorkItem(clock=self._clock)
        for record in records:
            item.apply(record.event_type, domain.deserialize_event(record.event_type, record.payload))
        return item, len(records)

    def _commit(self, stream_id: str, version: int, events: Sequence[domain.DomainEvent]) -> None:
        stored = self._store.append(stream_id, version, events)
        self._publish_all(stored)

    def _publish_all(self, stored: Sequence[_StoredEvent]) -> None:
        for record in stored:
            try:
                payload = domain.deserialize_event(record.event_type, record.payload)
            except domain.EventDecodeError:
                logger.exception("failed to deserialize event for publishing: %s", record.event_type)
                continue
            event_class = _PUBLISHED.get(record.event_type)
            if event_class is None:
                continue
            event = event_class(**{f.name: getattr(payload, f.name) for f in fields(event_class)})
            try:
                self._bus.publish(event)
            except Exception:
                logger.exception("failed to publish event: %s", record.event_type)