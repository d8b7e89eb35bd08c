"""Keeps the subject read model in step with published subject events."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Protocol

from casework.subject.facade import SubjectRegisteredEvent

logger = logging.getLogger(__name__)


class ProjectionError(Exception):
    """Writing a projection failed."""


class _ProjectionWriter(Protocol):
    def upsert_projection(
        self,
        subject_id: str,
        subject_kind: str,
        name: str,
        detail: str,
        org_id: str,
        created_by_account_id: str,
        created_at: datetime,
    ) -> None: ...


class _EventBus(Protocol):
    def subscribe(self, event_type: type, handler: Callable[[Any], None]) -> None: ...


def register_projection_subscribers(bus: _EventBus, writer: _ProjectionWriter) -> None:
    """Subscribe the read-model writer to subject events on ``bus``."""

    def on_subject_registered(event: SubjectRegisteredEvent) -> None:
        logger.info("projecting SubjectRegisteredEvent subject_id=%s", event.subject_id)
        kind = event.subject_kind
        kind_text = kind.value if isinstance(kind, Enum) else str(kind)
        try:
            writer.upsert_projection(
                event.subject_id,
                kind_text,
                event.name,
                event.detail,
                event.org_id,
                event.created_by_account_id,
                event.registered_at,
            )
        except Exception as exc:
            raise ProjectionError(f"upsert subject projection: {exc}") from exc

    bus.subscribe(SubjectRegisteredEvent, on_subject_registered)