import math
from typing import Callable, Dict, Iterable, List, Optional

from app.features.scan.schemas.operations import OperationClassification, OperationScope
from app.features.scan.schemas.plan import (
    DependencyValidation,
    ExecutionStrategy,
    PhasePlan,
    PhaseResourceRequirements,
    PhaseSummary,
)
from app.features.scan.services.orchestration import registry
from app.platform.config import Settings, settings as default_settings
from app.platform.logger import get_logger

logger = get_logger(__name__)

Classifier = Callable[[str], Optional[OperationClassification]]

MEMORY_INTENSIVE = {"screenshots", "content-scraping"}
CPU_INTENSIVE = {"accessibility", registry.DISCOVERY_OPERATION}
NETWORK_INTENSIVE = {registry.DISCOVERY_OPERATION, "content-scraping"}


class ExecutionStrategyPlanner:
    """Turns a set of selected operations into ordered phase plans."""

    def __init__(self, settings: Settings = default_settings, classifier: Classifier = registry.classify):
        self.settings = settings
        self.classify = classifier

    def _with_discovery(self, selected: Iterable[str], discover_resources: bool) -> List[str]:
        ids = list(dict.fromkeys(selected))
        if discover_resources and registry.DISCOVERY_OPERATION not in ids:
            ids.insert(0, registry.DISCOVERY_OPERATION)
        return ids

    def unknown_operations(self, selected: Iterable[str]) -> List[str]:
        return [op for op in dict.fromkeys(selected) if self.classify(op) is None]

    def organize_into_phases(self, selected: Iterable[str], discover_resources: bool = False) -> ExecutionStrategy:
        """
        Group selected operations into phase plans, ascending by phase.

        Unknown ids are dropped; callers that care ask unknown_operations().
        Phases with nothing to run are not emitted.
        """
        ids = self._with_discovery(selected, discover_resources)
        by_phase: Dict[int, List[OperationClassification]] = {}
        for operation_id in ids:
            classification = self.classify(operation_id)
            if classification is None:
                logger.warning(f"Skipping unknown operation '{operation_id}'")
                continue
            by_phase.setdefault(classification.phase, []).append(classification)

        phases: List[PhasePlan] = []
        for phase in sorted(by_phase):
            ordered = sorted(by_phase[phase], key=lambda c: c.execution_order)
            plan = PhasePlan(
                phase=phase,
                session_operations=[c.operation_id for c in ordered if c.scope == OperationScope.SESSION],
                resource_operations=[c.operation_id for c in ordered if c.scope == OperationScope.PER_RESOURCE],
                max_concurrency=self._phase_concurrency(phase, ordered),
            )
            if plan.is_empty:
                continue
            plan.estimated_duration = self._estimate_phase(plan, discover_resources)
            phases.append(plan)

        strategy = ExecutionStrategy(
            phases=phases,
            total_estimated_duration=sum(p.estimated_duration for p in phases),
            parallel_pages=True,
            max_concurrent_pages=self.settings.DEFAULT_CONCURRENCY,
        )
        logger.info(
            f"Planned {len(phases)} phase(s) for {len(ids)} operation(s), "
            f"estimated {strategy.total_estimated_duration}s"
        )
        return strategy

    def _phase_concurrency(self, phase: int, classifications: List[OperationClassification]) -> int:
        # Resource-intensive operations shrink the budget down to the phase floor
        base = self.settings.PHASE_CONCURRENCY.get(phase, self.settings.DEFAULT_CONCURRENCY)
        floor = self.settings.PHASE_CONCURRENCY_FLOOR.get(phase, 1)
        intensive = sum(1 for c in classifications if c.resource_intensive)
        return max(1, floor, base - intensive)

    def _estimate_phase(self, plan: PhasePlan, discover_resources: bool) -> int:
        pages = self.settings.ESTIMATED_PAGE_COUNT if discover_resources else 1
        session_cost = len(plan.session_operations) * self.settings.SESSION_TASK_COST_SECONDS
        resource_tasks = len(plan.resource_operations) * pages
        resource_cost = math.ceil(resource_tasks / plan.max_concurrency) * self.settings.RESOURCE_TASK_COST_SECONDS
        return session_cost + resource_cost

    def validate_dependencies(self, selected: Iterable[str], discover_resources: bool = False) -> DependencyValidation:
        """Pre-flight check, never raises. Unknown ids are ignored here."""
        ids = self._with_discovery(selected, discover_resources)
        present = set(ids)
        missing: List[str] = []
        for operation_id in ids:
            classification = self.classify(operation_id)
            if classification is None:
                continue
            for dependency in sorted(classification.dependencies):
                if dependency not in present and dependency not in missing:
                    missing.append(dependency)
        return DependencyValidation(valid=not missing, missing_dependencies=missing)

    def can_run_in_parallel(self, first: str, second: str) -> bool:
        a = self.classify(first)
        b = self.classify(second)
        if a is None or b is None:
            return False
        if a.phase != b.phase:
            return False
        return second not in a.conflicts_with and first not in b.conflicts_with

    def execution_order(self, operation_ids: Iterable[str]) -> List[str]:
        known = [op for op in operation_ids if self.classify(op) is not None]
        return sorted(known, key=lambda op: self.classify(op).execution_order)

    def phase_resource_requirements(self, phase: int, operation_ids: Iterable[str]) -> PhaseResourceRequirements:
        in_phase = [
            c for c in (self.classify(op) for op in operation_ids)
            if c is not None and c.phase == phase
        ]
        intensive = [c.operation_id for c in in_phase if c.resource_intensive]
        return PhaseResourceRequirements(
            memory_intensive=sum(1 for op in intensive if op in MEMORY_INTENSIVE),
            cpu_intensive=sum(1 for op in intensive if op in CPU_INTENSIVE),
            network_intensive=sum(1 for c in in_phase if c.operation_id in NETWORK_INTENSIVE),
            recommended_concurrency=self._phase_concurrency(phase, in_phase),
        )

    def phase_summary(self, phase: int, operation_ids: Iterable[str]) -> PhaseSummary:
        definition = registry.phase_definition(phase)
        in_phase = [
            c for c in (self.classify(op) for op in dict.fromkeys(operation_ids))
            if c is not None and c.phase == phase
        ]
        session_ops = [c.operation_id for c in in_phase if c.scope == OperationScope.SESSION]
        resource_ops = [c.operation_id for c in in_phase if c.scope == OperationScope.PER_RESOURCE]
        return PhaseSummary(
            phase=phase,
            name=definition.name,
            description=definition.description,
            operation_count=len(in_phase),
            session_operations=session_ops,
            resource_operations=resource_ops,
            estimated_duration=(
                len(session_ops) * self.settings.SESSION_TASK_COST_SECONDS
                + len(resource_ops) * self.settings.RESOURCE_TASK_COST_SECONDS
            ),
        )
