"""Work item aggregate: the lifecycle of a case from inbound message to reply."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Protocol, Union

EVENT_WORK_ITEM_CREATED = "workitem.WorkItemCreated.v1"
EVENT_PARTY_LINKED = "workitem.PartyLinkedToWorkItem.v1"
EVENT_SUBJECT_LINKED = "workitem.SubjectLinkedToWorkItem.v1"
EVENT_INBOUND_MESSAGE_RECORDED = "workitem.InboundMessageRecorded.v1"
EVENT_ASSISTANT_ACTION_RECORDED = "workitem.AssistantActionRecorded.v1"
EVENT_OUTBOUND_MESSAGE_RECORDED = "workitem.OutboundMessageRecorded.v1"
EVENT_WORK_ITEM_STATUS_CHANGED = "workitem.WorkItemStatusChanged.v1"
EVENT_NOTE_ADDED_TO_TIMELINE_ENTRY = "workitem.NoteAddedToTimelineEntry.v1"
EVENT_NOTE_EDITED_ON_TIMELINE_ENTRY = "workitem.NoteEditedOnTimelineEntry.v1"
EVENT_NOTE_DELETED_FROM_TIMELINE_ENTRY = "workitem.NoteDeletedFromTimelineEntry.v1"

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_FRACTION = re.compile(r"\.(\d+)")


class WorkItemError(Exception):
    """Base class for work item domain errors."""

    default_message = "work item error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class AlreadyCreatedError(WorkItemError):
    """The work item has already been created."""

    default_message = "work item already created"


class NotCreatedError(WorkItemError):
    """The work item has not been created yet."""

    default_message = "work item not yet created"


class NoPendingDraftError(WorkItemError):
    """There is no pending draft to confirm."""

    default_message = "no pending draft to confirm"


class AlreadyConfirmedError(WorkItemError):
    """The outbound message has already been confirmed."""

    default_message = "outbound message already confirmed"


class InvalidActionKindError(WorkItemError, ValueError):
    """The assistant action kind is not a known kind."""

    default_message = "invalid action kind"


class AlreadyResolvedError(WorkItemError):
    """The work item is already resolved."""

    default_message = "work item already resolved"


class NoteNotFoundError(WorkItemError, LookupError):
    """No note exists with the requested ID."""

    default_message = "note not found"


class NoteAlreadyDeletedError(WorkItemError):
    """The note has already been deleted."""

    default_message = "note already deleted"


class InvalidEntryIndexError(WorkItemError, IndexError):
    """The timeline entry index is out of range."""

    default_message = "invalid timeline entry index"


class EventDecodeError(WorkItemError, ValueError):
    """A stored event could not be decoded."""

    default_message = "event could not be decoded"


class Status(str, Enum):
    """Lifecycle state of a work item."""

    NEW = "new"
    IN_PROGRESS = "in_progress"
    PENDING_CONFIRMATION = "pending_confirmation"
    RESOLVED = "resolved"


class ActionKind(str, Enum):
    """Type of action an AI assistant performs."""

    LOOKUP = "lookup"
    DRAFT = "draft"


class DraftStatus(str, Enum):
    """Whether an assistant action produced a pending draft."""

    NONE = ""
    PENDING = "pending"


class PartyRole(str, Enum):
    """A party's relationship to a work item."""

    SENDER = "sender"
    HANDLER = "handler"
    AGENT = "agent"


StatusLike = Union[Status, str]
ActionKindLike = Union[ActionKind, str]
DraftStatusLike = Union[DraftStatus, str]
PartyRoleLike = Union[PartyRole, str]


class Clock(Protocol):
    """Provides the current time."""

    def now(self) -> datetime: ...


@dataclass(frozen=True)
class DomainEvent:
    """An event produced by a command, before it is stored."""

    event_type: str
    payload: Any


@dataclass(frozen=True)
class WorkItemCreated:
    """Emitted when a new work item is created."""

    work_item_id: str
    created_at: datetime


@dataclass(frozen=True)
class PartyLinkedToWorkItem:
    """Emitted when a party is linked to a work item."""

    work_item_id: str
    party_id: str
    role: PartyRoleLike


@dataclass(frozen=True)
class SubjectLinkedToWorkItem:
    """Emitted when a subject is linked to a work item."""

    work_item_id: str
    subject_id: str


@dataclass(frozen=True)
class InboundMessageRecorded:
    """Emitted when an inbound message is recorded."""

    work_item_id: str
    sender_id: str
    body: str
    recorded_at: datetime


@dataclass(frozen=True)
class AssistantActionRecorded:
    """Emitted when an AI assistant performs an action."""

    work_item_id: str
    actor_id: str
    action_kind: ActionKindLike
    output: str
    draft_status: DraftStatusLike
    recorded_at: datetime


@dataclass(frozen=True)
class OutboundMessageRecorded:
    """Emitted when an outbound message is confirmed and sent."""

    work_item_id: str
    confirmed_by: str
    body: str
    recorded_at: datetime


@dataclass(frozen=True)
class WorkItemStatusChanged:
    """Emitted when the work item status changes."""

    work_item_id: str
    old_status: StatusLike
    new_status: StatusLike


@dataclass(frozen=True)
class NoteAddedToTimelineEntry:
    """Emitted when a note is added to a timeline entry."""

    work_item_id: str
    note_id: str
    entry_index: int
    author_id: str
    body: str
    created_at: datetime


@dataclass(frozen=True)
class NoteEditedOnTimelineEntry:
    """Emitted when a note's body is edited."""

    work_item_id: str
    note_id: str
    body: str
    edited_at: datetime


@dataclass(frozen=True)
class NoteDeletedFromTimelineEntry:
    """Emitted when a note is soft-deleted."""

    work_item_id: str
    note_id: str
    deleted_at: datetime


# --- wire form -------------------------------------------------------------


def _format_time(value: datetime) -> str:
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def _parse_time(text: str) -> datetime:
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


def _to_json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return _format_time(value)
    return value


def encode_event(payload: Any) -> str:
    """Encode an event payload as its JSON wire form."""
    return json.dumps(
        {f.name: _to_json_value(getattr(payload, f.name)) for f in fields(payload)},
        ensure_ascii=False,
    )


_Converter = Callable[[Any, str, str], Any]


def _as_str(value: Any, key: str, event_type: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise EventDecodeError(f"unmarshal {event_type}: field {key} must be a string")
    return value


def _as_int(value: Any, key: str, event_type: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise EventDecodeError(f"unmarshal {event_type}: field {key} must be an integer")
    return value


def _as_time(value: Any, key: str, event_type: str) -> datetime:
    if value is None:
        return _ZERO_TIME
    if not isinstance(value, str):
        raise EventDecodeError(f"unmarshal {event_type}: field {key} must be a time string")
    try:
        return _parse_time(value)
    except ValueError as exc:
        raise EventDecodeError(f"unmarshal {event_type}: {exc}") from exc


def _as_enum(enum_type: type[Enum]) -> _Converter:
    def convert(value: Any, key: str, event_type: str) -> Any:
        text = _as_str(value, key, event_type)
        try:
            return enum_type(text)
        except ValueError:
            return text

    return convert


_SCHEMAS: dict[str, tuple[type, dict[str, _Converter]]] = {
    EVENT_WORK_ITEM_CREATED: (
        WorkItemCreated,
        {"work_item_id": _as_str, "created_at": _as_time},
    ),
    EVENT_PARTY_LINKED: (
        PartyLinkedToWorkItem,
        {"work_item_id": _as_str, "party_id": _as_str, "role": _as_enum(PartyRole)},
    ),
    EVENT_SUBJECT_LINKED: (
        SubjectLinkedToWorkItem,
        {"work_item_id": _as_str, "subject_id": _as_str},
    ),
    EVENT_INBOUND_MESSAGE_RECORDED: (
        InboundMessageRecorded,
        {"work_item_id": _as_str, "sender_id": _as_str, "body": _as_str, "recorded_at": _as_time},
    ),
    EVENT_ASSISTANT_ACTION_RECORDED: (
        AssistantActionRecorded,
        {
            "work_item_id": _as_str,
            "actor_id": _as_str,
            "action_kind": _as_enum(ActionKind),
            "output": _as_str,
            "draft_status": _as_enum(DraftStatus),
            "recorded_at": _as_time,
        },
    ),
    EVENT_OUTBOUND_MESSAGE_RECORDED: (
        OutboundMessageRecorded,
        {"work_item_id": _as_str, "confirmed_by": _as_str, "body": _as_str, "recorded_at": _as_time},
    ),
    EVENT_WORK_ITEM_STATUS_CHANGED: (
        WorkItemStatusChanged,
        {"work_item_id": _as_str, "old_status": _as_enum(Status), "new_status": _as_enum(Status)},
    ),
    EVENT_NOTE_ADDED_TO_TIMELINE_ENTRY: (
        NoteAddedToTimelineEntry,
        {
            "work_item_id": _as_str,
            "note_id": _as_str,
            "entry_index": _as_int,
            "author_id": _as_str,
            "body": _as_str,
            "created_at": _as_time,
        },
    ),
    EVENT_NOTE_EDITED_ON_TIMELINE_ENTRY: (
        NoteEditedOnTimelineEntry,
        {"work_item_id": _as_str, "note_id": _as_str, "body": _as_str, "edited_at": _as_time},
    ),
    EVENT_NOTE_DELETED_FROM_TIMELINE_ENTRY: (
        NoteDeletedFromTimelineEntry,
        {"work_item_id": _as_str, "note_id": _as_str, "deleted_at": _as_time},
    ),
}


def deserialize_event(event_type: str, raw: Union[str, bytes]) -> Any:
    """Decode a raw JSON payload into the typed event for ``event_type``."""
    schema = _SCHEMAS.get(event_type)
    if schema is None:
        raise EventDecodeError(f"unknown event type: {event_type}")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise EventDecodeError(f"unmarshal {event_type}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise EventDecodeError(f"unmarshal {event_type}: payload must be a JSON object")
    event_class, converters = schema
    return event_class(
        **{key: convert(data.get(key), key, event_type) for key, convert in converters.items()}
    )


# --- commands --------------------------------------------------------------


@dataclass(frozen=True)
class IntakeCmd:
    """Data needed to create a work item and record an inbound message."""

    work_item_id: str
    sender_party_id: str = ""
    subject_id: str = ""
    body: str = ""
    handler_party_id: str = ""
    agent_party_id: str = ""


@dataclass(frozen=True)
class AssistantActionCmd:
    """Data for recording an AI assistant action."""

    work_item_id: str
    actor_id: str = ""
    action_kind: ActionKindLike = ""
    output: str = ""
    draft_status: DraftStatusLike = DraftStatus.NONE


@dataclass(frozen=True)
class ConfirmCmd:
    """Data for confirming an outbound message."""

    work_item_id: str
    confirmed_by: str = ""
    body: str = ""


@dataclass(frozen=True)
class AddNoteCmd:
    """Data for adding a note to a timeline entry."""

    work_item_id: str = ""
    note_id: str = ""
    entry_index: int = 0
    author_id: str = ""
    body: str = ""


@dataclass(frozen=True)
class EditNoteCmd:
    """Data for editing a note's body."""

    work_item_id: str = ""
    note_id: str = ""
    body: str = ""


@dataclass(frozen=True)
class DeleteNoteCmd:
    """Data for soft-deleting a note."""

    work_item_id: str = ""
    note_id: str = ""


def _is_action_kind(value: ActionKindLike) -> bool:
    try:
        ActionKind(value)
    except ValueError:
        return False
    return True


# --- aggregate -------------------------------------------------------------


@dataclass
class WorkItem:
    """Event-sourced aggregate for case work items."""

    id: str = ""
    status: StatusLike = ""
    version: int = 0
    party_ids: list[str] = field(default_factory=list)
    subject_id: str = ""
    created: bool = False
    has_pending_draft: bool = False
    confirmed: bool = False
    timeline_entry_count: int = 0
    note_ids: dict[str, bool] = field(default_factory=dict)
    clock: Clock | None = field(default=None, repr=False, compare=False)

    def _now(self) -> datetime:
        if self.clock is None:
            raise RuntimeError("work item has no clock")
        return self.clock.now()

    def apply(self, event_type: str, payload: Any) -> None:
        """Reconstitute state from a single event payload."""
        if event_type == EVENT_WORK_ITEM_CREATED:
            self.id = payload.work_item_id
            self.status = Status.NEW
            self.created = True
        elif event_type == EVENT_PARTY_LINKED:
            self.party_ids.append(payload.party_id)
        elif event_type == EVENT_SUBJECT_LINKED:
            self.subject_id = payload.subject_id
        elif event_type == EVENT_INBOUND_MESSAGE_RECORDED:
            self.timeline_entry_count += 1
        elif event_type == EVENT_ASSISTANT_ACTION_RECORDED:
            if payload.draft_status == DraftStatus.PENDING:
                self.has_pending_draft = True
            self.timeline_entry_count += 1
        elif event_type == EVENT_OUTBOUND_MESSAGE_RECORDED:
            self.has_pending_draft = False
            self.confirmed = True
            self.timeline_entry_count += 1
        elif event_type == EVENT_WORK_ITEM_STATUS_CHANGED:
            self.status = payload.new_status
        elif event_type == EVENT_NOTE_ADDED_TO_TIMELINE_ENTRY:
            self.note_ids[payload.note_id] = False
        elif event_type == EVENT_NOTE_EDITED_ON_TIMELINE_ENTRY:
            pass
        elif event_type == EVENT_NOTE_DELETED_FROM_TIMELINE_ENTRY:
            self.note_ids[payload.note_id] = True
        else:
            raise ValueError(f"workitem.apply: unknown event type: {event_type}")
        self.version += 1

    def intake_inbound_message(self, cmd: IntakeCmd) -> list[DomainEvent]:
        """Create the work item and record its initial inbound message."""
        if self.created:
            raise AlreadyCreatedError()
        now = self._now()
        wid = cmd.work_item_id
        return [
            DomainEvent(EVENT_WORK_ITEM_CREATED, WorkItemCreated(wid, now)),
            DomainEvent(EVENT_PARTY_LINKED, PartyLinkedToWorkItem(wid, cmd.sender_party_id, PartyRole.SENDER)),
            DomainEvent(EVENT_PARTY_LINKED, PartyLinkedToWorkItem(wid, cmd.handler_party_id, PartyRole.HANDLER)),
            DomainEvent(EVENT_PARTY_LINKED, PartyLinkedToWorkItem(wid, cmd.agent_party_id, PartyRole.AGENT)),
            DomainEvent(EVENT_SUBJECT_LINKED, SubjectLinkedToWorkItem(wid, cmd.subject_id)),
            DomainEvent(
                EVENT_INBOUND_MESSAGE_RECORDED,
                InboundMessageRecorded(wid, cmd.sender_party_id, cmd.body, now),
            ),
            DomainEvent(EVENT_WORK_ITEM_STATUS_CHANGED, WorkItemStatusChanged(wid, "", Status.IN_PROGRESS)),
        ]

    def record_assistant_action(self, cmd: AssistantActionCmd) -> list[DomainEvent]:
        """Record an AI assistant action; a pending draft awaits confirmation."""
        if not self.created:
            raise NotCreatedError()
        if self.status == Status.RESOLVED:
            raise AlreadyResolvedError()
        if not _is_action_kind(cmd.action_kind):
            raise InvalidActionKindError()
        now = self._now()
        events = [
            DomainEvent(
                EVENT_ASSISTANT_ACTION_RECORDED,
                AssistantActionRecorded(
                    work_item_id=cmd.work_item_id,
                    actor_id=cmd.actor_id,
                    action_kind=ActionKind(cmd.action_kind),
                    output=cmd.output,
                    draft_status=cmd.draft_status,
                    recorded_at=now,
                ),
            )
        ]
        if cmd.draft_status == DraftStatus.PENDING:
            events.append(
                DomainEvent(
                    EVENT_WORK_ITEM_STATUS_CHANGED,
                    WorkItemStatusChanged(cmd.work_item_id, self.status, Status.PENDING_CONFIRMATION),
                )
            )
        return events

    def confirm_outbound_message(self, cmd: ConfirmCmd) -> list[DomainEvent]:
        """Confirm the pending draft and record it as the outbound message."""
        if not self.created:
            raise NotCreatedError()
        if self.confirmed:
            raise AlreadyConfirmedError()
        if not self.has_pending_draft:
            raise NoPendingDraftError()
        now = self._now()
        return [
            DomainEvent(
                EVENT_OUTBOUND_MESSAGE_RECORDED,
                OutboundMessageRecorded(cmd.work_item_id, cmd.confirmed_by, cmd.body, now),
            ),
            DomainEvent(
                EVENT_WORK_ITEM_STATUS_CHANGED,
                WorkItemStatusChanged(cmd.work_item_id, self.status, Status.RESOLVED),
            ),
        ]

    def add_note(self, cmd: AddNoteCmd) -> list[DomainEvent]:
        """Add a note to an existing timeline entry."""
        if not self.created:
            raise NotCreatedError()
        if not 0 <= cmd.entry_index < self.timeline_entry_count:
            raise InvalidEntryIndexError()
        return [
            DomainEvent(
                EVENT_NOTE_ADDED_TO_TIMELINE_ENTRY,
                NoteAddedToTimelineEntry(
                    work_item_id=cmd.work_item_id,
                    note_id=cmd.note_id,
                    entry_index=cmd.entry_index,
                    author_id=cmd.author_id,
                    body=cmd.body,
                    created_at=self._now(),
                ),
            )
        ]

    def _require_live_note(self, note_id: str) -> None:
        if not self.created:
            raise NotCreatedError()
        if note_id not in self.note_ids:
            raise NoteNotFoundError()
        if self.note_ids[note_id]:
            raise NoteAlreadyDeletedError()

    def edit_note(self, cmd: EditNoteCmd) -> list[DomainEvent]:
        """Edit the body of an existing, undeleted note."""
        self._require_live_note(cmd.note_id)
        return [
            DomainEvent(
                EVENT_NOTE_EDITED_ON_TIMELINE_ENTRY,
                NoteEditedOnTimelineEntry(cmd.work_item_id, cmd.note_id, cmd.body, self._now()),
            )
        ]

    def delete_note(self, cmd: DeleteNoteCmd) -> list[DomainEvent]:
        """Soft-delete an existing, undeleted note."""
        self._require_live_note(cmd.note_id)
        return [
            DomainEvent(
                EVENT_NOTE_DELETED_FROM_TIMELINE_ENTRY,
                NoteDeletedFromTimelineEntry(cmd.work_item_id, cmd.note_id, self._now()),
            )
        ]