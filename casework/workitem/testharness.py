"""Factories of work item DTOs with golden-path defaults, for tests and demos."""

from __future__ import annotations

from casework.workitem.facade import (
    ActionKind,
    ConfirmOutboundMessageDTO,
    DraftStatus,
    IntakeInboundMessageDTO,
    RecordAssistantActionDTO,
)

_AGENT_PARTY_ID = "party-ki-assistent"
_HANDLER_PARTY_ID = "party-sarah"


def make_intake_dto() -> IntakeInboundMessageDTO:
    """Return an intake DTO with golden-path defaults."""
    return IntakeInboundMessageDTO(
        sender_party_id="party-anna-schmidt",
        subject_id="subject-flussufer-12a",
        body=(
            "Ich möchte meinen Mietvertrag für die Einheit 12A in den Flussufer Apartments "
            "verlängern. Können Sie mir die aktuellen Konditionen mitteilen?"
        ),
        handler_party_id=_HANDLER_PARTY_ID,
        agent_party_id=_AGENT_PARTY_ID,
    )


def make_lookup_dto(output: str) -> RecordAssistantActionDTO:
    """Return a DTO for a lookup action with the given output."""
    return RecordAssistantActionDTO(
        actor_id=_AGENT_PARTY_ID,
        action_kind=ActionKind.LOOKUP,
        output=output,
        draft_status=DraftStatus.NONE,
    )


def make_draft_dto(output: str) -> RecordAssistantActionDTO:
    """Return a DTO for a draft action with the given output."""
    return RecordAssistantActionDTO(
        actor_id=_AGENT_PARTY_ID,
        action_kind=ActionKind.DRAFT,
        output=output,
        draft_status=DraftStatus.PENDING,
    )


def make_confirm_dto(body: str) -> ConfirmOutboundMessageDTO:
    """Return a confirmation DTO with golden-path defaults."""
    return ConfirmOutboundMessageDTO(confirmed_by_party_id=_HANDLER_PARTY_ID, body=body)