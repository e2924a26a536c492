"""Dispatch queue protocol (durable, at-least-once job delivery)."""
from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID

from src.sms.domain.value_objects.dispatch import EnqueueOptions


class DispatchQueue(Protocol):
    async def enqueue(
        self,
        job_name: str,
        payload: dict[str, Any],
        options: EnqueueOptions,
    ) -> UUID:
        """Persist a job; returns its id. Raises on substrate failure."""
        ...
