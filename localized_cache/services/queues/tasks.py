"""
Repair Tasks

Immutable task payloads for background cache repair and a bounded
in-process queue feeding the repair workers.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...constants import get_current_timestamp
from ...domain.localization.value_objects import EntityType

logger = logging.getLogger(__name__)

EntityRef = Union[int, str]


class RepairKind(str, Enum):
    """Mutation that triggered the repair."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class RepairTask(BaseModel):
    """Background repair payload; immutable once built."""

    model_config = ConfigDict(frozen=True)

    task_id: UUID = Field(default_factory=uuid4)
    kind: RepairKind = Field(..., description="Triggering mutation")
    entity_type: EntityType = Field(..., description="Mutated entity type")
    entity_id: EntityRef = Field(..., description="Mutated entity id")
    language: str = Field(..., description="Language of the originating request")
    affected_user_ids: Tuple[EntityRef, ...] = Field(default=())
    affected_parent_ids: Tuple[Tuple[EntityType, EntityRef], ...] = Field(default=())
    user_uids: Tuple[str, ...] = Field(default=())
    actor_user_id: Optional[EntityRef] = Field(default=None)
    audit_action: Optional[str] = Field(default=None, description="Audit log action")
    reward_points: int = Field(default=0, ge=0)
    reward_user_id: Optional[EntityRef] = Field(default=None)
    created_at: datetime = Field(default_factory=get_current_timestamp)

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("language cannot be empty")
        return v

    def parent_ids(self) -> Dict[EntityType, Tuple[EntityRef, ...]]:
        """Parent ids grouped by parent type."""
        grouped: Dict[EntityType, Tuple[EntityRef, ...]] = {}
        for parent_type, parent_id in self.affected_parent_ids:
            grouped[parent_type] = grouped.get(parent_type, ()) + (parent_id,)
        return grouped

    def log_context(self) -> Dict[str, Any]:
        return {
            "task_id": str(self.task_id),
            "kind": self.kind.value,
            "entity_type": self.entity_type.value,
            "entity_id": str(self.entity_id),
        }


class RepairQueue:
    """
    Bounded FIFO of repair tasks.

    submit() never blocks the writer: a full queue drops the task, which
    is safe because invalidation already ran synchronously.
    """

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self._queue: "asyncio.Queue[RepairTask]" = asyncio.Queue(maxsize=max_size)
        self._stats = {"submitted": 0, "dropped": 0}

    def submit(self, task: RepairTask) -> bool:
        try:
            self._queue.put_nowait(task)
        except asyncio.QueueFull:
            self._stats["dropped"] += 1
            logger.error(
                "Repair queue full, dropping task",
                extra={**task.log_context(), "max_size": self.max_size},
            )
            return False
        self._stats["submitted"] += 1
        return True

    async def get(self) -> RepairTask:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        """Wait until every submitted task has been processed."""
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()

    def get_stats(self) -> Dict[str, Any]:
        return {**self._stats, "pending": self.qsize(), "max_size": self.max_size}
