# src/shared/events/base.py
"""
Базовый класс доменных событий.

event_type служит routing_key в exchange, event_id уходит в message_id
и позволяет потребителю отбрасывать дубликаты.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel, Field


class EventMetadata(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: str | None = None
    source_service: str = "payments"


class DomainEvent(BaseModel):
    """Событие выплат или платежей."""

    event_type: str = ""
    metadata: EventMetadata = Field(default_factory=EventMetadata)

    @property
    def event_id(self) -> str:
        return self.metadata.event_id

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls: type[EventT], data: str | bytes) -> EventT:
        return cls.model_validate_json(data)

    @classmethod
    def from_payload(cls: type[EventT], payload: dict[str, Any]) -> EventT:
        """Событие из декодированного сообщения очереди."""
        return cls.model_validate(payload)


EventT = TypeVar("EventT", bound=DomainEvent)
