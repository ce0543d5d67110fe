"""
Classification Registry

Read-only table of every operation the scheduler knows about: its phase,
scope, prerequisites and conflicts. Callers treat a missing entry as
"unknown operation, do not schedule".
"""
from typing import Dict, List, Optional

from app.features.scan.schemas.operations import (
    OperationClassification,
    OperationScope,
    OutputType,
    PhaseDefinition,
    Playlist,
)
from app.platform.exceptions import UnknownPlaylistError

DISCOVERY_OPERATION = "site-crawling"

PHASE_DISCOVERY = 1
PHASE_ANALYSIS = 2
PHASE_REPORTING = 3


PHASE_DEFINITIONS: Dict[int, PhaseDefinition] = {
    PHASE_DISCOVERY: PhaseDefinition(
        phase=PHASE_DISCOVERY,
        name="Data Discovery & Collection",
        description="Discover pages on the site and build site-wide inventories",
    ),
    PHASE_ANALYSIS: PhaseDefinition(
        phase=PHASE_ANALYSIS,
        name="Page Analysis",
        description="Load every page once and run all per-page checks against it",
    ),
    PHASE_REPORTING: PhaseDefinition(
        phase=PHASE_REPORTING,
        name="Report Generation",
        description="Aggregate collected data into site-wide reports",
    ),
}


def _classification(**kwargs) -> OperationClassification:
    return OperationClassification(
        dependencies=frozenset(kwargs.pop("dependencies", ())),
        conflicts_with=frozenset(kwargs.pop("conflicts_with", ())),
        **kwargs,
    )


_CLASSIFICATIONS: List[OperationClassification] = [
    _classification(
        operation_id=DISCOVERY_OPERATION,
        name="Site Crawling",
        description="Discover same-origin pages starting from the base URL",
        phase=PHASE_DISCOVERY,
        scope=OperationScope.SESSION,
        execution_order=1,
        resource_intensive=True,
        output_type=OutputType.SITE_WIDE,
    ),
    _classification(
        operation_id="sitemap",
        name="Sitemap Generation",
        description="Build sitemap entries from the discovered pages",
        phase=PHASE_DISCOVERY,
        scope=OperationScope.SESSION,
        execution_order=2,
        dependencies=[DISCOVERY_OPERATION],
        output_type=OutputType.SITE_WIDE,
    ),
    _classification(
        operation_id="content-scraping",
        name="Content Scraping",
        description="Extract headings, paragraphs, lists, images and links",
        phase=PHASE_ANALYSIS,
        scope=OperationScope.PER_RESOURCE,
        execution_order=1,
        resource_intensive=True,
    ),
    _classification(
        operation_id="seo",
        name="SEO Scan",
        description="Validate title, meta description and social tags",
        phase=PHASE_ANALYSIS,
        scope=OperationScope.PER_RESOURCE,
        execution_order=2,
    ),
    _classification(
        operation_id="api-key-scan",
        name="API Key Security Scan",
        description="Look for credentials exposed in the page source",
        phase=PHASE_ANALYSIS,
        scope=OperationScope.PER_RESOURCE,
        execution_order=3,
    ),
    _classification(
        operation_id="accessibility",
        name="Accessibility Scan",
        description="Structural accessibility audit of the rendered DOM",
        phase=PHASE_ANALYSIS,
        scope=OperationScope.PER_RESOURCE,
        execution_order=4,
        conflicts_with=["screenshots"],
        resource_intensive=True,
    ),
    _classification(
        operation_id="screenshots",
        name="Screenshots",
        description="Full-page captures for every configured viewport",
        phase=PHASE_ANALYSIS,
        scope=OperationScope.PER_RESOURCE,
        execution_order=5,
        conflicts_with=["accessibility"],
        resource_intensive=True,
        multi_variant=True,
    ),
    _classification(
        operation_id="site-summary",
        name="Site Summary",
        description="Site-wide statistics built from scraped content",
        phase=PHASE_REPORTING,
        scope=OperationScope.SESSION,
        execution_order=1,
        dependencies=["content-scraping"],
        output_type=OutputType.SITE_WIDE,
    ),
]

OPERATION_CLASSIFICATIONS: Dict[str, OperationClassification] = {
    c.operation_id: c for c in _CLASSIFICATIONS
}


PLAYLISTS: Dict[str, Playlist] = {
    "quick-scan": Playlist(
        id="quick-scan",
        name="Quick Scan",
        description="Home page only: content and SEO",
        operations=["content-scraping", "seo"],
        crawl_site=False,
    ),
    "content-audit": Playlist(
        id="content-audit",
        name="Content Audit",
        description="Crawl the site, scrape content and summarize it",
        operations=["site-crawling", "sitemap", "content-scraping", "seo", "site-summary"],
    ),
    "accessibility-audit": Playlist(
        id="accessibility-audit",
        name="Accessibility Audit",
        description="Accessibility checks plus screenshots for visual review",
        operations=["site-crawling", "accessibility", "screenshots"],
    ),
    "full-audit": Playlist(
        id="full-audit",
        name="Full Audit",
        description="Every available operation",
        operations=[c.operation_id for c in _CLASSIFICATIONS],
    ),
}


def classify(operation_id: str) -> Optional[OperationClassification]:
    return OPERATION_CLASSIFICATIONS.get(operation_id)


def all_classifications() -> List[OperationClassification]:
    return sorted(_CLASSIFICATIONS, key=lambda c: (c.phase, c.execution_order))


def phase_definition(phase: int) -> PhaseDefinition:
    definition = PHASE_DEFINITIONS.get(phase)
    if definition is None:
        return PhaseDefinition(phase=phase, name=f"Phase {phase}", description="")
    return definition


def list_playlists() -> List[Playlist]:
    return list(PLAYLISTS.values())


def get_playlist(playlist_id: str) -> Playlist:
    playlist = PLAYLISTS.get(playlist_id)
    if playlist is None:
        raise UnknownPlaylistError(playlist_id)
    return playlist
