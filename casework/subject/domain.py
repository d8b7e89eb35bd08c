"""Subject aggregate: registration of tracked objects under management."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol, Sequence, Union

EVENT_SUBJECT_REGISTERED = "subject.SubjectRegistered.v1"

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_FRACTION = re.compile(r"\.(\d+)")


class SubjectError(Exception):
    """Base class for subject domain errors."""


class SubjectNotFoundError(SubjectError, LookupError):
    """No subject exists with the requested ID."""

    def __init__(self, message: str = "subject not found") -> None:
        super().__init__(message)


class InvalidSubjectKindError(SubjectError, ValueError):
    """The subject kind is not one of the known kinds."""

    def __init__(self, message: str = "invalid subject kind") -> None:
        super().__init__(message)


class EmptyNameError(SubjectError, ValueError):
    """The subject name is empty after trimming whitespace."""

    def __init__(self, message: str = "subject name must not be empty") -> None:
        super().__init__(message)


class AlreadyRegisteredError(SubjectError):
    """The subject has already been registered."""

    def __init__(self, message: str = "subject already registered") -> None:
        super().__init__(message)


class EventDecodeError(SubjectError, ValueError):
    """A stored event could not be decoded."""


class SubjectKind(str, Enum):
    """Business classification of a subject."""

    DWELLING = "dwelling"


KindLike = Union[SubjectKind, str]


def valid_subject_kinds() -> list[SubjectKind]:
    """Return every known subject kind."""
    return list(SubjectKind)


def is_valid_subject_kind(kind: KindLike) -> bool:
    """Tell whether ``kind`` names a known subject kind."""
    try:
        SubjectKind(kind)
    except ValueError:
        return False
    return True


def _coerce_kind(value: KindLike) -> KindLike:
    try:
        return SubjectKind(value)
    except ValueError:
        return value


class Clock(Protocol):
    """Provides the current time."""

    def now(self) -> datetime: ...


class Repository(Protocol):
    """Read model interface for subjects."""

    def find_by_id(self, subject_id: str) -> "Subject": ...

    def find_by_ids(self, ids: Sequence[str]) -> list["Subject"]: ...

    def find_by_organization_id(self, org_id: str) -> list["Subject"]: ...

    def find_by_org_and_kind(self, org_id: str, kind: KindLike) -> list["Subject"]: ...


@dataclass(frozen=True)
class DomainEvent:
    """An event produced by a command, before it is stored."""

    event_type: str
    payload: Any


@dataclass(frozen=True)
class SubjectRegistered:
    """Emitted when a subject is registered."""

    subject_id: str
    subject_kind: KindLike
    name: str
    detail: str
    org_id: str
    created_by_account_id: str
    registered_at: datetime


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
    return json.dumps({f.name: _to_json_value(getattr(payload, f.name)) for f in fields(payload)})


def _string_field(data: dict, key: str, event_type: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise EventDecodeError(f"unmarshal {event_type}: field {key} must be a string")
    return value


def _time_field(data: dict, key: str, event_type: str) -> datetime:
    value = data.get(key)
    if value is None:
        return _ZERO_TIME
    if not isinstance(value, str):
        raise EventDecodeError(f"unmarshal {event_type}: field {key} must be a time string")
    try:
        return _parse_time(value)
    except ValueError as exc:
        raise EventDecodeError(f"unmarshal {event_type}: {exc}") from exc


def _decode_subject_registered(data: dict, event_type: str) -> SubjectRegistered:
    return SubjectRegistered(
        subject_id=_string_field(data, "subject_id", event_type),
        subject_kind=_coerce_kind(_string_field(data, "subject_kind", event_type)),
        name=_string_field(data, "name", event_type),
        detail=_string_field(data, "detail", event_type),
        org_id=_string_field(data, "org_id", event_type),
        created_by_account_id=_string_field(data, "created_by_account_id", event_type),
        registered_at=_time_field(data, "registered_at", event_type),
    )


_DECODERS = {
    EVENT_SUBJECT_REGISTERED: _decode_subject_registered,
}


def deserialize_event(event_type: str, raw: Union[str, bytes]) -> Any:
    """Decode a raw JSON payload into the typed event for ``event_type``."""
    decoder = _DECODERS.get(event_type)
    if decoder is None:
        raise EventDecodeError(f"unknown event type: {event_type}")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise EventDecodeError(f"unmarshal {event_type}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise EventDecodeError(f"unmarshal {event_type}: payload must be a JSON object")
    return decoder(data, event_type)


@dataclass(frozen=True)
class RegisterSubjectCmd:
    """Data needed to register a new subject."""

    subject_id: str
    subject_kind: KindLike
    name: str
    detail: str = ""
    org_id: str = ""
    created_by_account_id: str = ""


@dataclass
class Subject:
    """Event-sourced aggregate for tracked objects under management."""

    id: str = ""
    subject_kind: KindLike = ""
    name: str = ""
    detail: str = ""
    owning_organization_id: str = ""
    created_by_account_id: str = ""
    created_at: datetime | None = None
    registered: bool = False
    version: int = 0
    clock: Clock | None = field(default=None, repr=False, compare=False)

    def apply(self, event_type: str, payload: Any) -> None:
        """Reconstitute state from a single event payload."""
        if event_type != EVENT_SUBJECT_REGISTERED:
            raise ValueError(f"subject.apply: unknown event type: {event_type}")
        self.id = payload.subject_id
        self.subject_kind = payload.subject_kind
        self.name = payload.name
        self.detail = payload.detail
        self.owning_organization_id = payload.org_id
        self.created_by_account_id = payload.created_by_account_id
        self.created_at = payload.registered_at
        self.registered = True
        self.version += 1

    def register_subject(self, cmd: RegisterSubjectCmd) -> list[DomainEvent]:
        """Validate the command and return the registration event."""
        if self.registered:
            raise AlreadyRegisteredError()
        if not is_valid_subject_kind(cmd.subject_kind):
            raise InvalidSubjectKindError()
        name = cmd.name.strip()
        if not name:
            raise EmptyNameError()
        if self.clock is None:
            raise RuntimeError("subject has no clock")
        return [
            DomainEvent(
                event_type=EVENT_SUBJECT_REGISTERED,
                payload=SubjectRegistered(
                    subject_id=cmd.subject_id,
                    subject_kind=SubjectKind(cmd.subject_kind),
                    name=name,
                    detail=cmd.detail.strip(),
                    org_id=cmd.org_id,
                    created_by_account_id=cmd.created_by_account_id,
                    registered_at=self.clock.now(),
                ),
            )
        ]