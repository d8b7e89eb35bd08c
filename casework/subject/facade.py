"""Public entry point of the subject vertical for other parts of the system."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, Sequence, Union

from casework.subject import domain

logger = logging.getLogger(__name__)


class SubjectNotFoundError(LookupError):
    """A subject ID is not recognized."""

    def __init__(self, message: str = "subject not found") -> None:
        super().__init__(message)


class SubjectKind(str, Enum):
    """Business classification of a subject."""

    DWELLING = "dwelling"


KindLike = Union[SubjectKind, str]


@dataclass(frozen=True)
class SubjectInfoDTO:
    """Subject data for other verticals."""

    id: str
    subject_kind: KindLike
    name: str
    detail: str


@dataclass(frozen=True)
class CreateSubjectDTO:
    """Data for creating a new subject."""

    subject_kind: KindLike
    name: str
    detail: str = ""
    owning_org_id: str = ""
    created_by_account_id: str = ""


@dataclass(frozen=True)
class SubjectRegisteredEvent:
    """Published when a subject has been registered."""

    subject_id: str
    subject_kind: KindLike
    name: str
    detail: str
    org_id: str
    created_by_account_id: str
    registered_at: datetime


class _StoredEvent(Protocol):
    event_type: str
    payload: Union[str, bytes]


class _EventStore(Protocol):
    def append(
        self, stream_id: str, expected_version: int, events: Sequence[domain.DomainEvent]
    ) -> Sequence[_StoredEvent]: ...


class _EventBus(Protocol):
    def publish(self, event: Any) -> None: ...


def _kind_value(kind: KindLike) -> str:
    return kind.value if isinstance(kind, Enum) else str(kind)


def _to_facade_kind(kind: KindLike) -> KindLike:
    value = _kind_value(kind)
    try:
        return SubjectKind(value)
    except ValueError:
        return value


def _to_dto(subject: domain.Subject) -> SubjectInfoDTO:
    return SubjectInfoDTO(
        id=subject.id,
        subject_kind=_to_facade_kind(subject.subject_kind),
        name=subject.name,
        detail=subject.detail,
    )


class SubjectFacade:
    """Writes subjects through the event store and reads them from the read model."""

    def __init__(
        self,
        store: _EventStore,
        bus: _EventBus,
        clock: domain.Clock,
        read_model: domain.Repository,
    ) -> None:
        self._store = store
        self._bus = bus
        self._clock = clock
        self._read_model = read_model

    def create_subject(self, dto: CreateSubjectDTO) -> str:
        """Register a new subject and return its ID."""
        subject_id = str(uuid.uuid4())
        stream_id = f"subject-{subject_id}"
        subject = domain.Subject(clock=self._clock)
        events = subject.register_subject(
            domain.RegisterSubjectCmd(
                subject_id=subject_id,
                subject_kind=_kind_value(dto.subject_kind),
                name=dto.name,
                detail=dto.detail,
                org_id=dto.owning_org_id,
                created_by_account_id=dto.created_by_account_id,
            )
        )
        stored = self._store.append(stream_id, 0, events)
        self._publish_all(stored)
        return subject_id

    def get_subject_info(self, subject_id: str) -> SubjectInfoDTO:
        """Return one subject, or raise SubjectNotFoundError."""
        try:
            subject = self._read_model.find_by_id(subject_id)
        except domain.SubjectNotFoundError as exc:
            raise SubjectNotFoundError() from exc
        return _to_dto(subject)

    def list_subjects_by_org(self, org_id: str) -> list[SubjectInfoDTO]:
        """Return the subjects owned by an organization."""
        return [_to_dto(s) for s in self._read_model.find_by_organization_id(org_id)]

    def list_subjects_by_org_and_kind(self, org_id: str, kind: KindLike) -> list[SubjectInfoDTO]:
        """Return the subjects of one kind owned by an organization."""
        subjects = self._read_model.find_by_org_and_kind(org_id, domain._coerce_kind(_kind_value(kind)))
        return [_to_dto(s) for s in subjects]

    def get_subjects_by_ids(self, ids: Sequence[str]) -> list[SubjectInfoDTO]:
        """Return the subjects with the given IDs that exist."""
        return [_to_dto(s) for s in self._read_model.find_by_ids(ids)]

    def _publish_all(self, stored: Sequence[_StoredEvent]) -> None:
        for record in stored:
            try:
                payload = domain.deserialize_event(record.event_type, record.payload)
            except domain.EventDecodeError:
                logger.exception("failed to deserialize event for publishing: %s", record.event_type)
                continue
            if record.event_type != domain.EVENT_SUBJECT_REGISTERED:
                continue
            event = SubjectRegisteredEvent(
                subject_id=payload.subject_id,
                subject_kind=_to_facade_kind(payload.subject_kind),
                name=payload.name,
                detail=payload.detail,
                org_id=payload.org_id,
                created_by_account_id=payload.created_by_account_id,
                registered_at=payload.registered_at,
            )
            try:
                self._bus.publish(event)
            except Exception:
                logger.exception("failed to publish event: %s", record.event_type)