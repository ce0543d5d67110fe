"""
Resource-Session Unifier

Loads each page once and runs every requested per-page operation against
that single load. Operations without conflicts share the context and run
concurrently; conflicting operations run one after another, and
multi-variant operations (screenshots) fan out over fresh copies of the
page, one per viewport.
"""
import asyncio
from datetime import datetime
from typing import Any, Callable, List, NamedTuple, Optional

from app.features.scan.schemas.operations import OperationClassification, OutputType
from app.features.scan.schemas.results import DEFAULT_VIEWPORTS, OperationResult, PageResult, Viewport
from app.features.scan.schemas.tasks import ExecutionOptions, Task
from app.features.scan.services.browser.engine import BrowserEngine
from app.features.scan.services.orchestration import registry
from app.features.scan.services.orchestration.capabilities import Capabilities, PageTarget
from app.features.scan.services.orchestration.executor import WorkerPoolExecutor
from app.features.scan.services.utils.url_utils import page_name
from app.platform.exceptions import ResourceAcquisitionError, UnknownOperationError
from app.platform.logger import get_logger

logger = get_logger(__name__)


class OperationGroups(NamedTuple):
    shared: List[str]
    exclusive: List[str]


class ResourceSessionUnifier:

    def __init__(
        self,
        engine: BrowserEngine,
        capabilities: Capabilities,
        executor: Optional[WorkerPoolExecutor] = None,
        viewports: Optional[List[Viewport]] = None,
        run_id: str = "adhoc",
        classifier: Callable[[str], Optional[OperationClassification]] = registry.classify,
    ):
        self.engine = engine
        self.capabilities = capabilities
        self.executor = executor or WorkerPoolExecutor()
        self.viewports = list(DEFAULT_VIEWPORTS if viewports is None else viewports)
        self.run_id = run_id
        self.classify = classifier

    def _order(self, operation_id: str) -> int:
        classification = self.classify(operation_id)
        return classification.execution_order if classification else 0

    def group_operations(self, operation_ids: List[str]) -> OperationGroups:
        """
        Split operations into those that can share one page context and
        those that must run on their own.

        Raises:
            UnknownOperationError: An operation has no per-page capability
        """
        ids = list(dict.fromkeys(operation_ids))
        unknown = [op for op in ids if self.capabilities.resource_handler(op) is None]
        if unknown:
            raise UnknownOperationError(unknown)

        shared, exclusive = [], []
        for operation_id in sorted(ids, key=self._order):
            classification = self.classify(operation_id)
            if classification is not None and classification.is_exclusive:
                exclusive.append(operation_id)
            else:
                shared.append(operation_id)
        return OperationGroups(shared=shared, exclusive=exclusive)

    def build_tasks(self, urls: List[str], operation_ids: List[str]) -> List[Task[PageResult]]:
        """One task per page, each loading the page exactly once"""
        self.group_operations(operation_ids)
        tasks = []
        for index, url in enumerate(urls):
            tasks.append(Task[PageResult](
                id=f"page-{index}",
                name=f"Process {url}",
                execute=self._page_action(url, operation_ids),
            ))
        return tasks

    def _page_action(self, url: str, operation_ids: List[str]):
        async def execute() -> PageResult:
            return await self.process_page(url, operation_ids)
        return execute

    async def process_page(self, url: str, operation_ids: List[str]) -> PageResult:
        groups = self.group_operations(operation_ids)
        requested = groups.shared + groups.exclusive
        page = PageResult(url=url, page_name=page_name(url))
        target = PageTarget(url=url, run_id=self.run_id, page_name=page.page_name)

        try:
            handle = await self.engine.acquire()
        except Exception as e:
            return self._acquisition_failed(page, requested, e)

        try:
            try:
                page.load_time = await self.engine.navigate(handle, url)
            except Exception as e:
                return self._acquisition_failed(page, requested, e)

            if groups.shared:
                shared = await asyncio.gather(
                    *(self._run_operation(op, handle, target) for op in groups.shared)
                )
                page.results.extend(shared)

            for operation_id in groups.exclusive:
                classification = self.classify(operation_id)
                if classification is not None and classification.multi_variant:
                    page.results.extend(await self._run_variants(operation_id, target))
                else:
                    page.results.append(await self._run_operation(operation_id, handle, target))
        finally:
            await self._release(handle)

        page.summary = page.summarize()
        return page

    def _acquisition_failed(self, page: PageResult, requested: List[str], error: Exception) -> PageResult:
        if isinstance(error, ResourceAcquisitionError):
            message = error.message
        else:
            message = ResourceAcquisitionError(page.url, str(error) or error.__class__.__name__).message
        logger.warning(f"Could not load {page.url}: {message}")
        page.results = [
            OperationResult.failure(op, message, resource=page.url, output_type=self._output_type(op))
            for op in requested
        ]
        page.summary = page.summarize()
        return page

    def _output_type(self, operation_id: str) -> OutputType:
        classification = self.classify(operation_id)
        return classification.output_type if classification else OutputType.PER_PAGE

    async def _run_operation(self, operation_id: str, handle: Any, target: PageTarget) -> OperationResult:
        handler = self.capabilities.resource_handler(operation_id)
        variant = target.viewport.name if target.viewport else None
        started_at = datetime.utcnow()
        try:
            payload = await handler(self.engine, handle, target)
        except Exception as e:
            logger.warning(f"{operation_id} failed on {target.url}: {e}")
            return OperationResult.failure(
                operation_id,
                str(e) or e.__class__.__name__,
                resource=target.url,
                variant=variant,
                started_at=started_at,
                output_type=self._output_type(operation_id),
            )
        return OperationResult.success(
            operation_id,
            payload,
            resource=target.url,
            variant=variant,
            started_at=started_at,
            output_type=self._output_type(operation_id),
        )

    async def _run_variants(self, operation_id: str, target: PageTarget) -> List[OperationResult]:
        if not self.viewports:
            return [OperationResult.failure(
                operation_id,
                "No viewports configured",
                resource=target.url,
                output_type=self._output_type(operation_id),
            )]

        viewports = {f"{operation_id}-{index}": viewport for index, viewport in enumerate(self.viewports)}
        tasks = [
            Task[OperationResult](
                id=task_id,
                name=f"{operation_id} ({viewport.name}) {target.url}",
                execute=self._variant_action(operation_id, target.model_copy(update={"viewport": viewport})),
            )
            for task_id, viewport in viewports.items()
        ]
        outcome = await self.executor.execute_tasks(
            tasks,
            ExecutionOptions(max_concurrency=len(tasks), description=f"{operation_id} variants"),
        )

        results = {s.id: s.result for s in outcome.successes}
        for failure in outcome.failures:
            results[failure.id] = OperationResult.failure(
                operation_id,
                failure.error,
                resource=target.url,
                variant=viewports[failure.id].name,
                output_type=self._output_type(operation_id),
            )
        return [results[task.id] for task in tasks]

    def _variant_action(self, operation_id: str, target: PageTarget):
        async def execute() -> OperationResult:
            return await self._run_variant(operation_id, target)
        return execute

    async def _run_variant(self, operation_id: str, target: PageTarget) -> OperationResult:
        try:
            handle = await self.engine.acquire()
        except Exception as e:
            return self._variant_failed(operation_id, target, e)
        try:
            try:
                await self.engine.set_viewport(handle, target.viewport)
                await self.engine.navigate(handle, target.url)
            except Exception as e:
                return self._variant_failed(operation_id, target, e)
            return await self._run_operation(operation_id, handle, target)
        finally:
            await self._release(handle)

    def _variant_failed(self, operation_id: str, target: PageTarget, error: Exception) -> OperationResult:
        if isinstance(error, ResourceAcquisitionError):
            message = error.message
        else:
            message = ResourceAcquisitionError(target.url, str(error) or error.__class__.__name__).message
        return OperationResult.failure(
            operation_id,
            message,
            resource=target.url,
            variant=target.viewport.name if target.viewport else None,
            output_type=self._output_type(operation_id),
        )

    async def _release(self, handle: Any) -> None:
        try:
            await self.engine.release(handle)
        except Exception as e:
            logger.warning(f"Failed to release page context: {e}")
