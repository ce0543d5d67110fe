"""
Session Result Store

In-memory state shared by the phases of one run: discovered pages,
scraped content, per-page metrics, sitemap entries, phase flags and
errors grouped by context. Aggregates are computed on demand.
"""
from typing import Dict, List, Optional

from app.features.scan.schemas.content import (
    PageMetrics,
    PageSummary,
    ScrapedContent,
    SiteStatistics,
    SitemapEntry,
)
from app.features.scan.services.utils import url_utils


class SessionStore:

    def __init__(self, base_url: str, run_id: str):
        self.base_url = base_url
        self.run_id = run_id
        self._resources: List[str] = []
        self._content: Dict[str, ScrapedContent] = {}
        self._metrics: Dict[str, PageMetrics] = {}
        self._sitemap: List[SitemapEntry] = []
        self._completed_phases: set = set()
        self._errors: Dict[str, List[str]] = {}

    # Discovered resources

    def set_discovered_resources(self, urls: List[str]) -> None:
        self._resources = list(dict.fromkeys(urls))

    def discovered_resources(self) -> List[str]:
        return list(self._resources)

    # Content and metrics

    def record_extracted_content(self, url: str, content: ScrapedContent) -> None:
        self._content[url] = content
        self.upsert_metrics(
            url,
            word_count=self._word_count(content),
            image_count=len(content.images),
            link_count=len(content.links),
            title=content.title,
            description=content.metadata.description,
        )

    def get_content(self, url: str) -> Optional[ScrapedContent]:
        return self._content.get(url)

    def all_content(self) -> Dict[str, ScrapedContent]:
        return dict(self._content)

    def upsert_metrics(self, url: str, **fields) -> PageMetrics:
        existing = self._metrics.get(url) or PageMetrics(url=url)
        updated = existing.model_copy(update=fields)
        self._metrics[url] = updated
        return updated

    def get_metrics(self, url: str) -> Optional[PageMetrics]:
        return self._metrics.get(url)

    def all_metrics(self) -> Dict[str, PageMetrics]:
        return dict(self._metrics)

    # Sitemap

    def set_sitemap_entries(self, entries: List[SitemapEntry]) -> None:
        self._sitemap = list(entries)

    def sitemap_entries(self) -> List[SitemapEntry]:
        return list(self._sitemap)

    # Phases

    def mark_phase_complete(self, phase: int) -> None:
        self._completed_phases.add(phase)

    def is_phase_complete(self, phase: int) -> bool:
        return phase in self._completed_phases

    def completed_phases(self) -> List[int]:
        return sorted(self._completed_phases)

    # Errors

    def add_error(self, context: str, message: str) -> None:
        self._errors.setdefault(context, []).append(message)

    def get_errors(self, context: str) -> List[str]:
        return list(self._errors.get(context, []))

    def all_errors(self) -> Dict[str, List[str]]:
        return {context: list(messages) for context, messages in self._errors.items()}

    def error_count(self) -> int:
        return sum(len(messages) for messages in self._errors.values())

    # Aggregates

    @property
    def total_word_count(self) -> int:
        return sum(m.word_count for m in self._metrics.values())

    @property
    def total_image_count(self) -> int:
        return sum(m.image_count for m in self._metrics.values())

    @property
    def total_link_count(self) -> int:
        return sum(m.link_count for m in self._metrics.values())

    @property
    def average_words_per_page(self) -> int:
        # pages with only a load time recorded were never scraped
        if not self._content:
            return 0
        return round(self.total_word_count / len(self._content))

    def content_type_distribution(self) -> Dict[str, int]:
        distribution: Dict[str, int] = {}
        for url in self._resources:
            kind = url_utils.content_type(url)
            distribution[kind] = distribution.get(kind, 0) + 1
        return distribution

    def depth_distribution(self) -> Dict[int, int]:
        distribution: Dict[int, int] = {}
        for url in self._resources:
            depth = url_utils.url_depth(url)
            distribution[depth] = distribution.get(depth, 0) + 1
        return distribution

    def statistics(self) -> SiteStatistics:
        return SiteStatistics(
            total_words=self.total_word_count,
            total_images=self.total_image_count,
            total_links=self.total_link_count,
            average_words_per_page=self.average_words_per_page,
            content_type_distribution=self.content_type_distribution(),
            depth_distribution=self.depth_distribution(),
        )

    def generate_page_summaries(self) -> List[PageSummary]:
        """One summary per discovered page, falling back to URL-derived values"""
        summaries = []
        for url in self._resources:
            content = self._content.get(url)
            metrics = self._metrics.get(url)
            summaries.append(PageSummary(
                url=url,
                title=(metrics and metrics.title) or (content and content.title) or url_utils.title_from_url(url),
                description=(
                    (metrics and metrics.description)
                    or (content and content.metadata.description)
                    or f"Page at {url}"
                ),
                headings=[h.text for h in content.headings] if content else [],
                word_count=metrics.word_count if metrics else 0,
                image_count=metrics.image_count if metrics else 0,
                link_count=metrics.link_count if metrics else 0,
                last_modified=(content.metadata.modified_date or None) if content else None,
                content_type=url_utils.content_type(url),
                depth=url_utils.url_depth(url),
            ))
        return summaries

    def session_stats(self) -> dict:
        return {
            "run_id": self.run_id,
            "total_urls": len(self._resources),
            "scraped_pages": len(self._content),
            "pages_with_metrics": len(self._metrics),
            "total_errors": self.error_count(),
            "completed_phases": self.completed_phases(),
        }

    @staticmethod
    def _word_count(content: ScrapedContent) -> int:
        sources = [content.title]
        sources.extend(h.text for h in content.headings)
        sources.extend(content.paragraphs)
        for item_list in content.lists:
            sources.extend(item_list.items)
        return len(" ".join(sources).split())
