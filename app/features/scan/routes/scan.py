from fastapi import APIRouter, Depends, status

from app.features.scan.schemas.scan import (
    OperationCatalog,
    ScanPlanRequest,
    ScanPlanResponse,
    ScanRunRequest,
)
from app.features.scan.schemas.results import ScanConfig
from app.features.scan.services.browser.engine import SeleniumBrowserEngine
from app.features.scan.services.orchestration import registry
from app.features.scan.services.orchestration.scheduler import ScanScheduler
from app.platform.exceptions import DependencyValidationError
from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter(prefix="/scan", tags=["scan"])


def get_scheduler() -> ScanScheduler:
    return ScanScheduler(engine=SeleniumBrowserEngine())


def build_config(data: ScanPlanRequest) -> ScanConfig:
    """
    Turn a request into a ScanConfig.

    Playlist operations come first, followed by any extra operations.

    Raises:
        UnknownPlaylistError: playlist id is not registered
    """
    operations = list(data.operations)
    crawl_site = True
    if data.playlist:
        playlist = registry.get_playlist(data.playlist)
        operations = list(playlist.operations) + operations
        crawl_site = playlist.crawl_site
    if data.crawl_site is not None:
        crawl_site = data.crawl_site

    config = ScanConfig(
        url=data.url,
        crawl_site=crawl_site,
        selected_operations=list(dict.fromkeys(operations)),
        max_pages=data.max_pages,
    )
    if isinstance(data, ScanRunRequest):
        if data.viewports is not None:
            config.viewports = data.viewports
        config.run_id = data.run_id
    return config


@router.get("/operations")
async def list_operations():
    """Every schedulable operation, the phases they run in and the playlists."""
    catalog = OperationCatalog(
        operations=registry.all_classifications(),
        phases=[registry.phase_definition(p) for p in sorted(registry.PHASE_DEFINITIONS)],
        playlists=registry.list_playlists(),
    )
    return api_response(
        data=catalog,
        message="Operations retrieved successfully",
        status_code=status.HTTP_200_OK,
    )


@router.post("/plan")
async def plan_scan(
    data: ScanPlanRequest,
    scheduler: ScanScheduler = Depends(get_scheduler),
):
    """
    Validate the selected operations and return the phased execution strategy.

    Returns 400 when a selected operation's prerequisite is missing and
    404 for an unknown playlist.
    """
    config = build_config(data)
    strategy, validation, unknown = scheduler.plan(config)
    if not validation.valid:
        raise DependencyValidationError(validation.missing_dependencies)

    phase_operations = [
        op for plan in strategy.phases for op in plan.session_operations + plan.resource_operations
    ]
    response = ScanPlanResponse(
        url=config.base_url,
        crawl_site=config.crawl_site,
        operations=config.selected_operations,
        unknown_operations=unknown,
        validation=validation,
        strategy=strategy,
        phases=[scheduler.planner.phase_summary(plan.phase, phase_operations) for plan in strategy.phases],
    )
    return api_response(
        data=response,
        message="Scan plan created successfully",
        status_code=status.HTTP_200_OK,
    )


@router.post("/runs")
async def run_scan(
    data: ScanRunRequest,
    scheduler: ScanScheduler = Depends(get_scheduler),
):
    """Execute a scan to completion and return its summary."""
    config = build_config(data)
    logger.info(f"Starting scan of {config.base_url} with {len(config.selected_operations)} operation(s)")
    summary = await scheduler.run(config)
    return api_response(
        data=summary,
        message="Scan completed successfully",
        status_code=status.HTTP_200_OK,
    )
