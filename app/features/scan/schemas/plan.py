from typing import List

from pydantic import BaseModel, Field


class PhasePlan(BaseModel):
    """Operations of a single phase, split by scope."""
    phase: int
    session_operations: List[str] = Field(default_factory=list)
    resource_operations: List[str] = Field(default_factory=list)
    max_concurrency: int = Field(default=1, ge=1)
    estimated_duration: int = 0  # seconds

    @property
    def is_empty(self) -> bool:
        return not self.session_operations and not self.resource_operations


class ExecutionStrategy(BaseModel):
    phases: List[PhasePlan] = Field(default_factory=list)
    total_estimated_duration: int = 0  # seconds, reporting only
    parallel_pages: bool = True
    max_concurrent_pages: int = 5

    def get_phase(self, phase: int):
        for plan in self.phases:
            if plan.phase == phase:
                return plan
        return None


class DependencyValidation(BaseModel):
    valid: bool
    missing_dependencies: List[str] = Field(default_factory=list)


class PhaseResourceRequirements(BaseModel):
    memory_intensive: int = 0
    cpu_intensive: int = 0
    network_intensive: int = 0
    recommended_concurrency: int = 1


class PhaseSummary(BaseModel):
    phase: int
    name: str
    description: str
    operation_count: int
    session_operations: List[str]
    resource_operations: List[str]
    estimated_duration: int
