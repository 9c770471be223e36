"""Domain models for durable analysis tasks."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class PendingTask(BaseModel):
    """Durable record of an in-flight analysis request."""

    model_config = ConfigDict(frozen=True)

    meal_id: UUID
    transcript: str
    user_id: str
    submitted_at: datetime


@dataclass(frozen=True)
class TaskOutcome:
    """How a pending task was resolved."""

    meal_id: UUID
    status: Literal["success", "failure", "deleted"]
    message: str | None = None
