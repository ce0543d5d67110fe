"""
Scan Schemas

Request and response models for the scan API endpoints.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, HttpUrl

from app.features.scan.schemas.operations import OperationClassification, PhaseDefinition, Playlist
from app.features.scan.schemas.plan import DependencyValidation, ExecutionStrategy, PhaseSummary
from app.features.scan.schemas.results import Viewport


class ScanPlanRequest(BaseModel):
    """Operations to plan, given directly, through a playlist, or both."""
    url: HttpUrl
    operations: List[str] = Field(default_factory=list)
    playlist: Optional[str] = None
    crawl_site: Optional[bool] = None  # defaults to the playlist's setting, else True
    max_pages: Optional[int] = Field(None, ge=1)

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://example.com",
                "playlist": "content-audit",
                "max_pages": 10
            }
        }


class ScanRunRequest(ScanPlanRequest):
    viewports: Optional[List[Viewport]] = None
    run_id: Optional[str] = None


class OperationCatalog(BaseModel):
    operations: List[OperationClassification]
    phases: List[PhaseDefinition]
    playlists: List[Playlist]


class ScanPlanResponse(BaseModel):
    url: str
    crawl_site: bool
    operations: List[str]
    unknown_operations: List[str] = Field(default_factory=list)
    validation: DependencyValidation
    strategy: ExecutionStrategy
    phases: List[PhaseSummary] = Field(default_factory=list)
