"""
Operation Schemas

Static metadata describing what each scan operation is, when it runs and
what it must not overlap with.
"""
from enum import Enum
from typing import FrozenSet, List

from pydantic import BaseModel, ConfigDict, Field


class OperationScope(str, Enum):
    """Whether an operation runs once per run or once per discovered page"""
    SESSION = "session"
    PER_RESOURCE = "per-resource"


class OutputType(str, Enum):
    PER_PAGE = "per-page"
    SITE_WIDE = "site-wide"


class OperationClassification(BaseModel):
    """Scheduling metadata for one operation. Defined once, never mutated."""
    model_config = ConfigDict(frozen=True)

    operation_id: str
    name: str
    description: str = ""
    phase: int = Field(..., ge=1, description="Ascending execution stage")
    scope: OperationScope
    execution_order: int = Field(default=0, description="Sort key inside a phase")
    dependencies: FrozenSet[str] = Field(
        default_factory=frozenset,
        description="Operations that must also be selected"
    )
    conflicts_with: FrozenSet[str] = Field(
        default_factory=frozenset,
        description="Operations that must not run concurrently against the same page"
    )
    resource_intensive: bool = False
    multi_variant: bool = Field(
        default=False,
        description="Repeats once per presentation variant (viewport)"
    )
    output_type: OutputType = OutputType.PER_PAGE

    @property
    def is_exclusive(self) -> bool:
        return bool(self.conflicts_with)


class PhaseDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: int
    name: str
    description: str


class Playlist(BaseModel):
    """A named preset of operations"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    operations: List[str]
    crawl_site: bool = True
