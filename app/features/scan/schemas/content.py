"""
Content Schemas

Page content captured by the content-scraping operation and the
metrics, summaries and site statistics derived from it.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class HeadingData(BaseModel):
    level: int
    text: str
    id: Optional[str] = None


class ListData(BaseModel):
    type: Literal["ordered", "unordered"] = "unordered"
    items: List[str] = Field(default_factory=list)


class ImageData(BaseModel):
    src: str
    alt: str = ""
    title: Optional[str] = None


class LinkData(BaseModel):
    href: str
    text: str = ""
    is_external: bool = False


class PageMetadata(BaseModel):
    description: str = ""
    author: str = ""
    publish_date: str = ""
    modified_date: str = ""
    keywords: List[str] = Field(default_factory=list)


class ScrapedContent(BaseModel):
    """Structural text of a page"""
    url: str
    title: str = ""
    headings: List[HeadingData] = Field(default_factory=list)
    paragraphs: List[str] = Field(default_factory=list)
    lists: List[ListData] = Field(default_factory=list)
    images: List[ImageData] = Field(default_factory=list)
    links: List[LinkData] = Field(default_factory=list)
    metadata: PageMetadata = Field(default_factory=PageMetadata)


class PageMetrics(BaseModel):
    url: str
    word_count: int = 0
    image_count: int = 0
    link_count: int = 0
    title: str = ""
    description: str = ""
    load_time: Optional[float] = None
    errors: List[str] = Field(default_factory=list)


ContentType = Literal["homepage", "blog", "product", "service", "about", "contact", "generic"]


class PageSummary(BaseModel):
    url: str
    title: str
    description: str
    headings: List[str] = Field(default_factory=list)
    word_count: int = 0
    image_count: int = 0
    link_count: int = 0
    last_modified: Optional[str] = None
    content_type: ContentType = "generic"
    depth: int = 0


class SiteStatistics(BaseModel):
    total_words: int = 0
    total_images: int = 0
    total_links: int = 0
    average_words_per_page: int = 0
    content_type_distribution: Dict[str, int] = Field(default_factory=dict)
    depth_distribution: Dict[int, int] = Field(default_factory=dict)


class SiteSummary(BaseModel):
    base_url: str
    total_pages: int
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    pages: List[PageSummary] = Field(default_factory=list)
    statistics: SiteStatistics = Field(default_factory=SiteStatistics)
    max_depth: int = 0
    main_sections: List[str] = Field(default_factory=list)
    orphan_pages: List[str] = Field(default_factory=list)


class SitemapEntry(BaseModel):
    url: str
    lastmod: str
    changefreq: Literal["daily", "weekly", "monthly", "yearly"] = "weekly"
    priority: float = 0.5


class SitemapReport(BaseModel):
    base_url: str
    entries: List[SitemapEntry] = Field(default_factory=list)
