# src/shared/models/common.py
"""
Пагинация, ошибки и health check для HTTP API.
"""

from __future__ import annotations

import math
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class PaginationParams(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PaginatedResponse(BaseModel, Generic[T]):
    """Страница результатов с общим количеством."""

    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def create(cls, items: list[T], total: int, pagination: PaginationParams) -> "PaginatedResponse[T]":
        return cls(
            items=items,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=math.ceil(total / pagination.page_size),
        )


class ErrorResponse(BaseModel):
    """Тело ответа HTTPException."""

    detail: str


class HealthStatus(BaseModel):
    """Состояние сервиса и его зависимостей (database, redis, rabbitmq, stripe)."""

    service: str
    status: Literal["healthy", "degraded"] = "healthy"
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
