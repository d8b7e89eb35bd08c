import json
from datetime import datetime, timedelta, timezone

import pytest

from casework.workitem import domain
from casework.workitem.domain import (
    ActionKind,
    AddNoteCmd,
    AlreadyConfirmedError,
    AlreadyCreatedError,
    AlreadyResolvedError,
    AssistantActionCmd,
    AssistantActionRecorded,
    ConfirmCmd,
    DeleteNoteCmd,
    DraftStatus,
    EditNoteCmd,
    EventDecodeError,
    InboundMessageRecorded,
    IntakeCmd,
    InvalidActionKindError,
    InvalidEntryIndexError,
    NoPendingDraftError,
    NoteAddedToTimelineEntry,
    NoteAlreadyDeletedError,
    NoteNotFoundError,
    NotCreatedError,
    OutboundMessageRecorded,
    PartyLinkedToWorkItem,
    PartyRole,
    Status,
    WorkItem,
    WorkItemCreated,
    WorkItemStatusChanged,
    deserialize_event,
    encode_event,
)

FIXED_TIME = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, at):
        self.at = at

    def now(self):
        return self.at


class StepClock:
    def __init__(self, start, step):
        self.current = start
        self.step = step

    def now(self):
        t = self.current
        self.current = self.current + self.step
        return t


def apply_all(w, events):
    for e in events:
        w.apply(e.event_type, e.payload)


def intake_cmd(body="test"):
    return IntakeCmd(
        work_item_id="wi-1",
        sender_party_id="party-anna-schmidt",
        subject_id="subject-flussufer-12a",
        body=body,
        handler_party_id="party-sarah",
        agent_party_id="party-ki-assistent",
    )


def work_item_with_intake(clock=None):
    w = WorkItem(clock=clock or FixedClock(FIXED_TIME))
    apply_all(w, w.intake_inbound_message(intake_cmd()))
    return w


def lookup_cmd(output="contract data"):
    return AssistantActionCmd(
        work_item_id="wi-1", actor_id="party-ki-assistent", action_kind=ActionKind.LOOKUP, output=output
    )


def draft_cmd(output="draft response"):
    return AssistantActionCmd(
        work_item_id="wi-1",
        actor_id="party-ki-assistent",
        action_kind=ActionKind.DRAFT,
        output=output,
        draft_status=DraftStatus.PENDING,
    )


def work_item_with_draft():
    w = work_item_with_intake()
    apply_all(w, w.record_assistant_action(lookup_cmd()))
    apply_all(w, w.record_assistant_action(draft_cmd()))
    return w


def test_intake_produces_expected_events():
    w = WorkItem(clock=FixedClock(FIXED_TIME))
    events = w.intake_inbound_message(intake_cmd("Ich möchte meinen Mietvertrag verlängern."))
    assert len(events) == 7
    assert events[0].event_type == domain.EVENT_WORK_ITEM_CREATED
    assert events[1].event_type == domain.EVENT_PARTY_LINKED
    assert events[5].event_type == domain.EVENT_INBOUND_MESSAGE_RECORDED
    assert events[6].event_type == domain.EVENT_WORK_ITEM_STATUS_CHANGED
    roles = [e.payload.role for e in events[1:4]]
    assert roles == [PartyRole.SENDER, PartyRole.HANDLER, PartyRole.AGENT]
    assert events[6].payload == WorkItemStatusChanged("wi-1", "", Status.IN_PROGRESS)


def test_intake_already_created():
    w = work_item_with_intake()
    with pytest.raises(AlreadyCreatedError):
        w.intake_inbound_message(IntakeCmd(work_item_id="wi-1"))


def test_record_assistant_action_lookup():
    w = work_item_with_intake()
    events = w.record_assistant_action(lookup_cmd())
    assert len(events) == 1
    assert events[0].event_type == domain.EVENT_ASSISTANT_ACTION_RECORDED
    assert events[0].payload.draft_status == DraftStatus.NONE


def test_record_assistant_action_draft_produces_status_change():
    w = work_item_with_intake()
    apply_all(w, w.record_assistant_action(lookup_cmd()))
    events = w.record_assistant_action(draft_cmd())
    assert len(events) == 2
    assert events[1].event_type == domain.EVENT_WORK_ITEM_STATUS_CHANGED
    assert events[1].payload.new_status == Status.PENDING_CONFIRMATION
    assert events[1].payload.old_status == Status.IN_PROGRESS


def test_record_assistant_action_not_created():
    w = WorkItem(clock=FixedClock(FIXED_TIME))
    with pytest.raises(NotCreatedError):
        w.record_assistant_action(lookup_cmd())


def test_record_assistant_action_invalid_kind():
    w = work_item_with_intake()
    with pytest.raises(InvalidActionKindError):
        w.record_assistant_action(AssistantActionCmd(work_item_id="wi-1", action_kind="bogus"))


def test_record_assistant_action_after_resolution():
    w = work_item_with_draft()
    apply_all(w, w.confirm_outbound_message(ConfirmCmd("wi-1", "party-sarah", "confirmed")))
    with pytest.raises(AlreadyResolvedError):
        w.record_assistant_action(lookup_cmd())


def test_confirm_outbound_message():
    w = work_item_with_draft()
    events = w.confirm_outbound_message(
        ConfirmCmd(work_item_id="wi-1", confirmed_by="party-sarah", body="confirmed response")
    )
    assert len(events) == 2
    assert events[0].event_type == domain.EVENT_OUTBOUND_MESSAGE_RECORDED
    assert events[1].payload.new_status == Status.RESOLVED


def test_confirm_outbound_message_no_pending_draft():
    w = work_item_with_intake()
    with pytest.raises(NoPendingDraftError):
        w.confirm_outbound_message(ConfirmCmd("wi-1", "party-sarah", "response"))


def test_confirm_outbound_message_not_created():
    w = WorkItem(clock=FixedClock(FIXED_TIME))
    with pytest.raises(NotCreatedError):
        w.confirm_outbound_message(ConfirmCmd("wi-1", "party-sarah", "response"))


def test_confirm_outbound_message_already_confirmed():
    w = work_item_with_draft()
    apply_all(w, w.confirm_outbound_message(ConfirmCmd("wi-1", "party-sarah", "confirmed")))
    with pytest.raises(AlreadyConfirmedError):
        w.confirm_outbound_message(ConfirmCmd("wi-1", "party-sarah", "again"))


def test_add_note():
    w = work_item_with_intake()
    events = w.add_note(
        AddNoteCmd(work_item_id="wi-1", note_id="note-1", entry_index=0, author_id="party-sarah", body="Internal remark")
    )
    assert len(events) == 1
    assert events[0].event_type == domain.EVENT_NOTE_ADDED_TO_TIMELINE_ENTRY
    apply_all(w, events)
    assert w.note_ids == {"note-1": False}


def test_add_note_not_created():
    w = WorkItem(clock=FixedClock(FIXED_TIME))
    with pytest.raises(NotCreatedError):
        w.add_note(AddNoteCmd(note_id="note-1", entry_index=0))


@pytest.mark.parametrize("index", [-1, 99, 1])
def test_add_note_invalid_entry_index(index):
    w = work_item_with_intake()
    with pytest.raises(InvalidEntryIndexError):
        w.add_note(AddNoteCmd(note_id="note-1", entry_index=index))


def test_edit_note():
    w = work_item_with_intake()
    apply_all(w, w.add_note(AddNoteCmd("wi-1", "note-1", 0, "party-sarah", "original")))
    events = w.edit_note(EditNoteCmd(work_item_id="wi-1", note_id="note-1", body="updated"))
    assert len(events) == 1
    assert events[0].event_type == domain.EVENT_NOTE_EDITED_ON_TIMELINE_ENTRY
    assert events[0].payload.body == "updated"


def test_edit_note_not_found():
    w = work_item_with_intake()
    with pytest.raises(NoteNotFoundError):
        w.edit_note(EditNoteCmd(note_id="nonexistent", body="x"))


def test_edit_note_already_deleted():
    w = work_item_with_intake()
    apply_all(w, w.add_note(AddNoteCmd("wi-1", "note-1", 0, "party-sarah", "original")))
    apply_all(w, w.delete_note(DeleteNoteCmd("wi-1", "note-1")))
    with pytest.raises(NoteAlreadyDeletedError):
        w.edit_note(EditNoteCmd(note_id="note-1", body="updated"))


def test_delete_note():
    w = work_item_with_intake()
    apply_all(w, w.add_note(AddNoteCmd("wi-1", "note-1", 0, "party-sarah", "to delete")))
    events = w.delete_note(DeleteNoteCmd(work_item_id="wi-1", note_id="note-1"))
    assert len(events) == 1
    assert events[0].event_type == domain.EVENT_NOTE_DELETED_FROM_TIMELINE_ENTRY
    apply_all(w, events)
    assert w.note_ids["note-1"] is True


def test_delete_note_not_found():
    w = work_item_with_intake()
    with pytest.raises(NoteNotFoundError):
        w.delete_note(DeleteNoteCmd(note_id="nonexistent"))


def test_delete_note_already_deleted():
    w = work_item_with_intake()
    apply_all(w, w.add_note(AddNoteCmd("wi-1", "note-1", 0, "party-sarah", "x")))
    apply_all(w, w.delete_note(DeleteNoteCmd("wi-1", "note-1")))
    with pytest.raises(NoteAlreadyDeletedError):
        w.delete_note(DeleteNoteCmd(note_id="note-1"))


def test_golden_path_final_state():
    w = WorkItem(clock=FixedClock(FIXED_TIME))
    apply_all(w, w.intake_inbound_message(intake_cmd("Ich möchte meinen Mietvertrag verlängern.")))
    assert w.status == Status.IN_PROGRESS

    apply_all(w, w.record_assistant_action(lookup_cmd()))
    apply_all(w, w.record_assistant_action(draft_cmd("draft")))
    assert w.status == Status.PENDING_CONFIRMATION
    assert w.has_pending_draft is True

    apply_all(w, w.confirm_outbound_message(ConfirmCmd("wi-1", "party-sarah", "confirmed response")))
    assert w.status == Status.RESOLVED
    assert w.confirmed is True
    assert w.has_pending_draft is False
    assert len(w.party_ids) == 3
    assert w.subject_id == "subject-flussufer-12a"
    assert w.timeline_entry_count == 4
    assert w.version == 12


def test_golden_path_event_timestamps():
    t0 = datetime(2025, 6, 1, 9, 0, 0, tzinfo=timezone.utc)
    minute = timedelta(minutes=1)
    w = WorkItem(clock=StepClock(t0, minute))

    intake = w.intake_inbound_message(intake_cmd("Anfrage Mietvertrag"))
    apply_all(w, intake)
    created_at = intake[0].payload.created_at
    recorded_at = intake[5].payload.recorded_at
    assert created_at == t0
    assert recorded_at == t0

    lookup = w.record_assistant_action(lookup_cmd("Vertragsdaten"))
    apply_all(w, lookup)
    lookup_at = lookup[0].payload.recorded_at
    assert lookup_at == t0 + minute

    draft = w.record_assistant_action(draft_cmd("Entwurf"))
    apply_all(w, draft)
    draft_at = draft[0].payload.recorded_at
    assert draft_at == t0 + 2 * minute

    confirm = w.confirm_outbound_message(ConfirmCmd("wi-1", "party-sarah", "Bestätigte Antwort"))
    apply_all(w, confirm)
    confirm_at = confirm[0].payload.recorded_at
    assert confirm_at == t0 + 3 * minute

    assert created_at < lookup_at < draft_at < confirm_at


def test_apply_unknown_event_type():
    w = WorkItem(clock=FixedClock(FIXED_TIME))
    with pytest.raises(ValueError):
        w.apply("workitem.Unknown.v1", None)


@pytest.mark.parametrize(
    "event_type, payload",
    [
        (domain.EVENT_WORK_ITEM_CREATED, WorkItemCreated("wi-1", FIXED_TIME)),
        (domain.EVENT_PARTY_LINKED, PartyLinkedToWorkItem("wi-1", "party-sarah", PartyRole.HANDLER)),
        (domain.EVENT_INBOUND_MESSAGE_RECORDED, InboundMessageRecorded("wi-1", "p", "Grüße", FIXED_TIME)),
        (
            domain.EVENT_ASSISTANT_ACTION_RECORDED,
            AssistantActionRecorded("wi-1", "a", ActionKind.DRAFT, "out", DraftStatus.PENDING, FIXED_TIME),
        ),
        (
            domain.EVENT_ASSISTANT_ACTION_RECORDED,
            AssistantActionRecorded("wi-1", "a", ActionKind.LOOKUP, "out", DraftStatus.NONE, FIXED_TIME),
        ),
        (domain.EVENT_OUTBOUND_MESSAGE_RECORDED, OutboundMessageRecorded("wi-1", "p", "b", FIXED_TIME)),
        (domain.EVENT_WORK_ITEM_STATUS_CHANGED, WorkItemStatusChanged("wi-1", "", Status.IN_PROGRESS)),
        (domain.EVENT_NOTE_ADDED_TO_TIMELINE_ENTRY, NoteAddedToTimelineEntry("wi-1", "n", 3, "p", "b", FIXED_TIME)),
    ],
)
def test_encode_deserialize_round_trip(event_type, payload):
    assert deserialize_event(event_type, encode_event(payload)) == payload


def test_encode_uses_snake_case_keys():
    data = json.loads(encode_event(WorkItemCreated("wi-1", FIXED_TIME)))
    assert data == {"work_item_id": "wi-1", "created_at": "2025-01-15T10:00:00Z"}


def test_deserialize_handwritten_payload():
    raw = '{"work_item_id":"wi-1","old_status":"in_progress","new_status":"resolved"}'
    event = deserialize_event(domain.EVENT_WORK_ITEM_STATUS_CHANGED, raw)
    assert event == WorkItemStatusChanged("wi-1", Status.IN_PROGRESS, Status.RESOLVED)


def test_deserialize_unknown_type():
    with pytest.raises(EventDecodeError, match="unknown event type"):
        deserialize_event("workitem.Unknown.v1", "{}")


def test_deserialize_malformed_json():
    with pytest.raises(EventDecodeError):
        deserialize_event(domain.EVENT_WORK_ITEM_CREATED, "{not json")


def test_deserialize_wrong_field_type():
    with pytest.raises(EventDecodeError):
        deserialize_event(domain.EVENT_NOTE_ADDED_TO_TIMELINE_ENTRY, '{"entry_index": "zero"}')


def test_replay_from_wire_matches_direct_apply():
    direct = work_item_with_draft()
    replayed = WorkItem(clock=FixedClock(FIXED_TIME))
    source = WorkItem(clock=FixedClock(FIXED_TIME))
    for cmd_events in (
        source.intake_inbound_message(intake_cmd()),
    ):
        for e in cmd_events:
            replayed.apply(e.event_type, deserialize_event(e.event_type, encode_event(e.payload)))
            source.apply(e.event_type, e.payload)
    for cmd in (lookup_cmd(), draft_cmd()):
        for e in source.record_assistant_action(cmd):
            replayed.apply(e.event_type, deserialize_event(e.event_type, encode_event(e.payload)))
            source.apply(e.event_type, e.payload)
    assert replayed == direct