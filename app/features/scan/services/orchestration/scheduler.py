"""
Scan Scheduler

Drives a run phase by phase:

1. plan the selected operations and reject runs with missing prerequisites
2. discover pages (or scan only the start URL)
3. process every page once for all per-page operations
4. run site-wide operations against the collected session data

Results are merged into a SessionStore owned by the run and summarized
in a RunSummary once every phase has finished.
"""
import asyncio
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from app.features.scan.schemas.content import ScrapedContent, SitemapReport
from app.features.scan.schemas.operations import OutputType
from app.features.scan.schemas.plan import DependencyValidation, ExecutionStrategy, PhasePlan
from app.features.scan.schemas.results import (
    DiscoveredPages,
    OperationResult,
    PageResult,
    RunSummary,
    ScanConfig,
)
from app.features.scan.schemas.tasks import ExecutionOptions, ProgressCallback, Task
from app.features.scan.services.browser.engine import BrowserEngine
from app.features.scan.services.discovery.page_discovery import PageDiscoveryService
from app.features.scan.services.orchestration import registry
from app.features.scan.services.orchestration.capabilities import Capabilities, default_capabilities
from app.features.scan.services.orchestration.executor import CANCELLED_BEFORE_START, WorkerPoolExecutor
from app.features.scan.services.orchestration.planner import ExecutionStrategyPlanner
from app.features.scan.services.orchestration.session_store import SessionStore
from app.features.scan.services.orchestration.unifier import ResourceSessionUnifier
from app.features.scan.services.reporting.renderer import JsonReportRenderer, ReportRenderer
from app.platform.config import Settings, settings as default_settings
from app.platform.exceptions import DependencyValidationError, OperationError
from app.platform.logger import get_logger

logger = get_logger(__name__)

CLASSIFICATION_CONTEXT = "classification"


def new_run_id() -> str:
    return f"{datetime.utcnow():%m-%d-%Y_%H-%M}-{uuid4().hex[:6]}"


class ScanScheduler:

    def __init__(
        self,
        engine: BrowserEngine,
        discovery=PageDiscoveryService,
        capabilities: Optional[Capabilities] = None,
        renderers: Optional[Sequence[ReportRenderer]] = None,
        planner: Optional[ExecutionStrategyPlanner] = None,
        executor: Optional[WorkerPoolExecutor] = None,
        settings: Settings = default_settings,
    ):
        self.engine = engine
        self.discovery = discovery
        self.settings = settings
        self.capabilities = capabilities or default_capabilities(settings)
        self.renderers = list(renderers) if renderers is not None else [JsonReportRenderer(settings.OUTPUT_DIR)]
        self.planner = planner or ExecutionStrategyPlanner(settings)
        self.executor = executor or WorkerPoolExecutor(settings.DEFAULT_CONCURRENCY)

    def plan(self, config: ScanConfig) -> Tuple[ExecutionStrategy, DependencyValidation, List[str]]:
        selected = config.selected_operations
        strategy = self.planner.organize_into_phases(selected, discover_resources=config.crawl_site)
        validation = self.planner.validate_dependencies(selected, discover_resources=config.crawl_site)
        unknown = self.planner.unknown_operations(selected)
        return strategy, validation, unknown

    async def run(
        self,
        config: ScanConfig,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunSummary:
        """
        Execute every phase of a scan.

        Raises:
            DependencyValidationError: A selected operation's prerequisite was not selected
        """
        strategy, validation, unknown = self.plan(config)
        if not validation.valid:
            logger.error(f"Missing required operations: {validation.missing_dependencies}")
            raise DependencyValidationError(validation.missing_dependencies)

        run_id = config.run_id or new_run_id()
        started_at = datetime.utcnow()
        store = SessionStore(config.base_url, run_id)
        results: List[OperationResult] = []

        for operation_id in unknown:
            logger.warning(f"Unknown operation '{operation_id}' will not be scheduled")
            store.add_error(CLASSIFICATION_CONTEXT, f"Unknown operation '{operation_id}'")

        if not config.crawl_site:
            store.set_discovered_resources([config.base_url])

        unifier = ResourceSessionUnifier(
            self.engine,
            self.capabilities,
            executor=self.executor,
            viewports=config.viewports,
            run_id=run_id,
        )

        logger.info(
            f"Starting run {run_id} for {config.base_url}: "
            f"{len(strategy.phases)} phase(s), estimated {strategy.total_estimated_duration}s"
        )
        for plan in strategy.phases:
            await self._run_phase(plan, config, store, unifier, results, on_progress, cancel_event)

        summary = RunSummary(
            run_id=run_id,
            url=config.base_url,
            started_at=started_at,
            ended_at=datetime.utcnow(),
            total_pages=len(store.discovered_resources()),
            operations_run=len(results),
            operations_succeeded=sum(1 for r in results if r.succeeded),
            operations_failed=sum(1 for r in results if not r.succeeded),
            results=results,
            errors=store.all_errors(),
            phases_completed=store.completed_phases(),
            statistics=store.statistics(),
            estimated_duration=strategy.total_estimated_duration,
            strategy=strategy,
        )
        logger.info(
            f"Run {run_id} finished: {summary.operations_succeeded} succeeded, "
            f"{summary.operations_failed} failed across {summary.total_pages} page(s)"
        )
        return summary

    async def _run_phase(
        self,
        plan: PhasePlan,
        config: ScanConfig,
        store: SessionStore,
        unifier: ResourceSessionUnifier,
        results: List[OperationResult],
        on_progress: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        definition = registry.phase_definition(plan.phase)
        logger.info(f"Phase {plan.phase}: {definition.name}")

        session_operations = [op for op in plan.session_operations if op != registry.DISCOVERY_OPERATION]
        if registry.DISCOVERY_OPERATION in plan.session_operations:
            results.append(await self._discover(config, store, cancel_event))

        if plan.resource_operations:
            results.extend(await self._run_pages(plan, store, unifier, on_progress, cancel_event))

        if session_operations:
            results.extend(await self._run_session_operations(session_operations, store, cancel_event))

        store.mark_phase_complete(plan.phase)

    async def _discover(
        self,
        config: ScanConfig,
        store: SessionStore,
        cancel_event: Optional[asyncio.Event],
    ) -> OperationResult:
        operation_id = registry.DISCOVERY_OPERATION
        base_url = config.base_url
        max_pages = config.max_pages or self.settings.MAX_PAGES

        if cancel_event is not None and cancel_event.is_set():
            store.set_discovered_resources([base_url])
            store.add_error(operation_id, CANCELLED_BEFORE_START)
            return OperationResult.failure(operation_id, CANCELLED_BEFORE_START, output_type=OutputType.SITE_WIDE)

        started_at = datetime.utcnow()
        try:
            urls = await self.discovery.crawl_site(base_url, max_pages)
        except Exception as e:
            logger.error(f"Site crawl failed for {base_url}: {e}")
            store.set_discovered_resources([base_url])
            store.add_error(operation_id, str(e) or e.__class__.__name__)
            return OperationResult.failure(
                operation_id, str(e) or e.__class__.__name__, started_at=started_at, output_type=OutputType.SITE_WIDE
            )

        store.set_discovered_resources(list(urls or [base_url])[:max_pages])
        discovered = store.discovered_resources()
        logger.info(f"Discovered {len(discovered)} page(s) on {base_url}")
        result = OperationResult.success(
            operation_id,
            DiscoveredPages(base_url=base_url, urls=discovered),
            started_at=started_at,
            output_type=OutputType.SITE_WIDE,
        )
        self._render(store, result)
        return result

    async def _run_pages(
        self,
        plan: PhasePlan,
        store: SessionStore,
        unifier: ResourceSessionUnifier,
        on_progress: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> List[OperationResult]:
        operations = list(plan.resource_operations)
        results: List[OperationResult] = []

        missing = [op for op in operations if self.capabilities.resource_handler(op) is None]
        for operation_id in missing:
            message = OperationError(operation_id, "no capability registered").message
            store.add_error(operation_id, message)
            results.append(OperationResult.failure(operation_id, message))
        operations = [op for op in operations if op not in missing]

        urls = store.discovered_resources()
        if not operations or not urls:
            return results

        tasks = unifier.build_tasks(urls, operations)
        task_urls: Dict[str, str] = {task.id: url for task, url in zip(tasks, urls)}
        budget = min(plan.max_concurrency, self.settings.PAGE_SESSION_CONCURRENCY_CAP)
        outcome = await self.executor.execute_tasks(
            tasks,
            ExecutionOptions(
                max_concurrency=budget,
                description="pages",
                on_progress=on_progress,
                task_timeout=self.settings.TASK_TIMEOUT,
                cancel_event=cancel_event,
            ),
        )

        pages: Dict[str, PageResult] = {s.id: s.result for s in outcome.successes}
        failures = {f.id: f.error for f in outcome.failures}
        for task in tasks:
            if task.id in pages:
                results.extend(self._merge_page(store, pages[task.id]))
                continue
            error = failures[task.id]
            store.add_error(f"page-processing-{task.id}", error)
            results.extend(
                OperationResult.failure(op, error, resource=task_urls[task.id])
                for op in operations
            )
        return results

    def _merge_page(self, store: SessionStore, page: PageResult) -> List[OperationResult]:
        if page.load_time is not None:
            store.upsert_metrics(page.url, load_time=page.load_time)
        for result in page.results:
            if not result.succeeded:
                store.add_error(result.context, result.error or "Unknown error")
                continue
            if isinstance(result.payload, ScrapedContent):
                store.record_extracted_content(page.url, result.payload)
            self._render(store, result)
        return page.results

    async def _run_session_operations(
        self,
        operation_ids: List[str],
        store: SessionStore,
        cancel_event: Optional[asyncio.Event],
    ) -> List[OperationResult]:
        tasks = [
            Task[OperationResult](
                id=operation_id,
                name=f"Run {operation_id}",
                execute=self._session_action(operation_id, store),
            )
            for operation_id in operation_ids
        ]
        outcome = await self.executor.execute_tasks(
            tasks,
            ExecutionOptions(
                max_concurrency=self.settings.SESSION_TASK_CONCURRENCY,
                description="session operations",
                task_timeout=self.settings.TASK_TIMEOUT,
                cancel_event=cancel_event,
            ),
        )

        by_id: Dict[str, OperationResult] = {s.id: s.result for s in outcome.successes}
        for failure in outcome.failures:
            store.add_error(failure.id, failure.error)
            by_id[failure.id] = OperationResult.failure(failure.id, failure.error, output_type=OutputType.SITE_WIDE)

        results = []
        for operation_id in operation_ids:
            result = by_id[operation_id]
            if result.succeeded:
                if isinstance(result.payload, SitemapReport):
                    store.set_sitemap_entries(result.payload.entries)
                self._render(store, result)
            results.append(result)
        return results

    def _session_action(self, operation_id: str, store: SessionStore):
        async def execute() -> OperationResult:
            handler = self.capabilities.session_handler(operation_id)
            if handler is None:
                raise OperationError(operation_id, "no capability registered")
            started_at = datetime.utcnow()
            payload = await handler(store)
            return OperationResult.success(
                operation_id, payload, started_at=started_at, output_type=OutputType.SITE_WIDE
            )
        return execute

    def _render(self, store: SessionStore, result: OperationResult) -> None:
        if result.payload is None:
            return
        for renderer in self.renderers:
            try:
                result.output_path = str(renderer.render(store.run_id, result))
            except Exception as e:
                logger.error(f"Rendering {result.context} failed: {e}")
                store.add_error(f"render:{result.operation_id}", str(e) or e.__class__.__name__)
