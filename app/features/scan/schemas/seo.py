from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class MetadataIssue(BaseModel):
    """A validation problem with one metadata field"""
    field: str
    severity: str  # "error", "warning", "info"
    message: str


class MetadataField(BaseModel):
    """A length-checked metadata value (title or meta description)"""
    value: Optional[str] = None
    length: int = 0
    is_valid: bool = False
    issues: List[MetadataIssue] = Field(default_factory=list)


class SeoReport(BaseModel):
    url: str
    title: MetadataField
    description: MetadataField
    keywords: Optional[str] = None
    canonical_url: Optional[str] = None
    viewport: Optional[str] = None
    open_graph: Dict[str, Optional[str]] = Field(default_factory=dict)
    h1_count: int = 0

    @property
    def overall_valid(self) -> bool:
        return self.title.is_valid and self.description.is_valid

    @property
    def total_issues(self) -> int:
        return len(self.title.issues) + len(self.description.issues)
