"""
Result Schemas

Per-operation results, per-page groupings and the run-level summary
returned once a scan finishes.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, HttpUrl, SerializeAsAny

from app.features.scan.schemas.content import SiteStatistics
from app.features.scan.schemas.operations import OutputType
from app.features.scan.schemas.plan import ExecutionStrategy


class Viewport(BaseModel):
    name: str
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


DEFAULT_VIEWPORTS: List[Viewport] = [
    Viewport(name="desktop", width=1920, height=1080),
    Viewport(name="tablet", width=768, height=1024),
    Viewport(name="mobile", width=375, height=667),
]


class OperationStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class OperationResult(BaseModel):
    """Outcome of one operation against one page (or the whole run)"""
    operation_id: str
    resource: Optional[str] = Field(None, description="Page URL, None for session operations")
    variant: Optional[str] = Field(None, description="Viewport name for multi-variant operations")
    status: OperationStatus = OperationStatus.PENDING
    started_at: datetime = Field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = None
    error: Optional[str] = None
    output_path: Optional[str] = None
    output_type: OutputType = OutputType.PER_PAGE
    payload: Optional[SerializeAsAny[BaseModel]] = None

    @property
    def succeeded(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @property
    def context(self) -> str:
        """Error-context key used by the session store"""
        if self.resource:
            return f"{self.operation_id}:{self.resource}"
        return self.operation_id

    @classmethod
    def success(cls, operation_id: str, payload: Optional[BaseModel] = None, **kwargs) -> "OperationResult":
        return cls(
            operation_id=operation_id,
            status=OperationStatus.SUCCESS,
            ended_at=datetime.utcnow(),
            payload=payload,
            **kwargs,
        )

    @classmethod
    def failure(cls, operation_id: str, error: str, **kwargs) -> "OperationResult":
        return cls(
            operation_id=operation_id,
            status=OperationStatus.FAILED,
            ended_at=datetime.utcnow(),
            error=error,
            **kwargs,
        )


class PageResult(BaseModel):
    """All operation results produced by one page session"""
    url: str
    page_name: str
    load_time: Optional[float] = None
    results: List[OperationResult] = Field(default_factory=list)
    summary: str = ""

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == OperationStatus.FAILED)

    def summarize(self) -> str:
        return (
            f"Page: {self.url}\n"
            f"Operations completed: {len(self.results)}\n"
            f"Successful: {self.succeeded}\n"
            f"Failed: {self.failed}"
        )


class DiscoveredPages(BaseModel):
    base_url: str
    urls: List[str] = Field(default_factory=list)


class ScreenshotCapture(BaseModel):
    url: str
    viewport: Viewport
    path: str


class AccessibilityReport(BaseModel):
    url: str
    images_missing_alt: List[str] = Field(default_factory=list)
    inputs_missing_label: List[str] = Field(default_factory=list)
    buttons_missing_label: List[str] = Field(default_factory=list)
    links_missing_label: List[str] = Field(default_factory=list)
    empty_headings: List[str] = Field(default_factory=list)

    @property
    def total_issues(self) -> int:
        return (
            len(self.images_missing_alt)
            + len(self.inputs_missing_label)
            + len(self.buttons_missing_label)
            + len(self.links_missing_label)
            + len(self.empty_headings)
        )


class SecretFinding(BaseModel):
    pattern: str
    match: str  # masked
    risk_level: str = "High"


class SecretScanReport(BaseModel):
    url: str
    findings: List[SecretFinding] = Field(default_factory=list)

    @property
    def exposed(self) -> bool:
        return bool(self.findings)


class ScanConfig(BaseModel):
    """Everything one run needs to know"""
    url: HttpUrl
    crawl_site: bool = True
    selected_operations: List[str] = Field(default_factory=list)
    viewports: List[Viewport] = Field(default_factory=lambda: list(DEFAULT_VIEWPORTS))
    max_pages: Optional[int] = Field(None, ge=1)
    run_id: Optional[str] = None

    @property
    def base_url(self) -> str:
        return str(self.url)


class RunSummary(BaseModel):
    run_id: str
    url: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    total_pages: int = 0
    operations_run: int = 0
    operations_succeeded: int = 0
    operations_failed: int = 0
    results: List[OperationResult] = Field(default_factory=list)
    errors: Dict[str, List[str]] = Field(default_factory=dict)
    phases_completed: List[int] = Field(default_factory=list)
    statistics: SiteStatistics = Field(default_factory=SiteStatistics)
    estimated_duration: int = 0  # seconds
    strategy: Optional[ExecutionStrategy] = None
