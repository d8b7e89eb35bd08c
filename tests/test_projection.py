from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone

import pytest

from casework.subject import facade
from casework.subject.projection import ProjectionError, register_projection_subscribers


class FakeBus:
    def __init__(self):
        self.handlers = defaultdict(list)

    def subscribe(self, event_type, handler):
        self.handlers[event_type].append(handler)

    def publish(self, event):
        for handler in self.handlers[type(event)]:
            handler(event)


@dataclass
class UpsertCall:
    subject_id: str
    subject_kind: str
    name: str
    detail: str
    org_id: str
    created_by_account_id: str
    created_at: datetime


class FakeWriter:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def upsert_projection(self, subject_id, subject_kind, name, detail, org_id, created_by_account_id, created_at):
        self.calls.append(
            UpsertCall(subject_id, subject_kind, name, detail, org_id, created_by_account_id, created_at)
        )
        if self.error is not None:
            raise self.error


def test_projection_subject_registered():
    bus = FakeBus()
    writer = FakeWriter()
    register_projection_subscribers(bus, writer)
    now = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)

    bus.publish(
        facade.SubjectRegisteredEvent(
            subject_id="subject-1",
            subject_kind=facade.SubjectKind.DWELLING,
            name="Flussufer Apartments",
            detail="Unit 12A",
            org_id="org-1",
            created_by_account_id="account-1",
            registered_at=now,
        )
    )

    assert writer.calls == [
        UpsertCall("subject-1", "dwelling", "Flussufer Apartments", "Unit 12A", "org-1", "account-1", now)
    ]
    assert type(writer.calls[0].subject_kind) is str


def test_projection_subject_registered_writer_error():
    bus = FakeBus()
    writer = FakeWriter(error=RuntimeError("db is down"))
    register_projection_subscribers(bus, writer)

    with pytest.raises(ProjectionError, match="db is down"):
        bus.publish(
            facade.SubjectRegisteredEvent(
                subject_id="subject-1",
                subject_kind=facade.SubjectKind.DWELLING,
                name="Flussufer Apartments",
                detail="Unit 12A",
                org_id="org-1",
                created_by_account_id="",
                registered_at=datetime.now(timezone.utc),
            )
        )
    assert len(writer.calls) == 1