"""
Task Schemas

Units of work handed to the worker pool and the outcome of one batch.
"""
import asyncio
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

ProgressCallback = Callable[[int, int], None]


class Task(BaseModel, Generic[T]):
    """Zero-argument async action, unique by id within a batch"""
    id: str
    name: str
    execute: Callable[[], Awaitable[T]]


class TaskSuccess(BaseModel, Generic[T]):
    id: str
    result: T


class TaskFailure(BaseModel):
    id: str
    error: str


class BatchOutcome(BaseModel, Generic[T]):
    successes: List[TaskSuccess[T]] = Field(default_factory=list)
    failures: List[TaskFailure] = Field(default_factory=list)
    duration: float = 0.0  # seconds

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def succeeded_ids(self) -> List[str]:
        return [s.id for s in self.successes]

    @property
    def failed_ids(self) -> List[str]:
        return [f.id for f in self.failures]


class ExecutionOptions(BaseModel):
    """Every option the worker pool understands."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    max_concurrency: Optional[int] = None
    description: str = "tasks"
    on_progress: Optional[ProgressCallback] = None
    task_timeout: Optional[float] = Field(default=None, description="Seconds per task")
    cancel_event: Optional[asyncio.Event] = None
