from pathlib import Path
from typing import Optional, Protocol

from app.features.scan.schemas.results import OperationResult
from app.features.scan.services.utils.url_utils import page_name
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)


class ReportRenderer(Protocol):
    def render(self, run_id: str, result: OperationResult) -> Path: ...


class JsonReportRenderer:
    """
    Writes each result payload as JSON.

    Layout: <output_dir>/<run_id>/<page-name>/<operation>[-<variant>].json,
    with session results at the run root.
    """

    def __init__(self, output_dir: Optional[str] = None):
        self.output_dir = Path(output_dir or settings.OUTPUT_DIR)

    def path_for(self, run_id: str, result: OperationResult) -> Path:
        filename = result.operation_id
        if result.variant:
            filename = f"{filename}-{result.variant}"
        root = self.output_dir / run_id
        if result.resource:
            root = root / page_name(result.resource)
        return root / f"{filename}.json"

    def render(self, run_id: str, result: OperationResult) -> Path:
        if result.payload is None:
            raise ValueError(f"Result for {result.context} has no payload to render")
        path = self.path_for(run_id, result)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(result.payload.model_dump_json(indent=2), encoding="utf-8")
        logger.debug(f"Wrote {result.context} report to {path}")
        return path
