import pytest

from app.features.scan.services.orchestration.planner import ExecutionStrategyPlanner
from app.platform.config import Settings


@pytest.fixture
def planner():
    return ExecutionStrategyPlanner(Settings())


class TestOrganizeIntoPhases:

    def test_partitions_by_phase_and_scope(self, planner):
        strategy = planner.organize_into_phases(
            ["site-summary", "seo", "content-scraping", "sitemap"], discover_resources=True
        )

        assert [p.phase for p in strategy.phases] == [1, 2, 3]
        discovery, analysis, reporting = strategy.phases
        assert discovery.session_operations == ["site-crawling", "sitemap"]
        assert discovery.resource_operations == []
        assert analysis.resource_operations == ["content-scraping", "seo"]
        assert analysis.session_operations == []
        assert reporting.session_operations == ["site-summary"]

    def test_discovery_added_only_when_requested(self, planner):
        strategy = planner.organize_into_phases(["seo"], discover_resources=False)

        assert [p.phase for p in strategy.phases] == [2]
        assert strategy.phases[0].resource_operations == ["seo"]

    def test_unknown_operations_are_dropped_and_reported(self, planner):
        selected = ["seo", "made-up", "also-fake"]

        strategy = planner.organize_into_phases(selected)

        assert strategy.phases[0].resource_operations == ["seo"]
        assert planner.unknown_operations(selected) == ["made-up", "also-fake"]

    def test_duplicates_are_removed(self, planner):
        strategy = planner.organize_into_phases(["seo", "seo", "accessibility"])

        assert strategy.phases[0].resource_operations == ["seo", "accessibility"]

    def test_nothing_known_yields_no_phases(self, planner):
        strategy = planner.organize_into_phases(["made-up"])

        assert strategy.phases == []
        assert strategy.total_estimated_duration == 0

    def test_concurrency_reduced_by_intensive_operations_down_to_floor(self, planner):
        light = planner.organize_into_phases(["seo"]).phases[0]
        heavy = planner.organize_into_phases(
            ["content-scraping", "accessibility", "screenshots", "seo"]
        ).phases[0]

        assert light.max_concurrency == 5
        # three intensive operations: 5 - 3 = 2, clamped to the phase 2 floor of 3
        assert heavy.max_concurrency == 3

    def test_estimated_duration(self, planner):
        # phase 2, one light operation, single page: ceil(1 / 5) * 5
        strategy = planner.organize_into_phases(["seo"])
        assert strategy.phases[0].estimated_duration == 5

        # discovering: ten estimated pages, two operations, budget 4 -> ceil(20 / 4) * 5 = 25
        crawl = planner.organize_into_phases(["seo", "content-scraping"], discover_resources=True)
        analysis = crawl.get_phase(2)
        assert analysis.max_concurrency == 4
        assert analysis.estimated_duration == 25
        assert crawl.total_estimated_duration == sum(p.estimated_duration for p in crawl.phases)


class TestDependencyValidation:

    def test_missing_dependency_is_reported(self, planner):
        validation = planner.validate_dependencies(["site-summary"])

        assert validation.valid is False
        assert validation.missing_dependencies == ["content-scraping"]

    def test_selecting_both_is_valid(self, planner):
        validation = planner.validate_dependencies(["site-summary", "content-scraping"])

        assert validation.valid is True
        assert validation.missing_dependencies == []

    def test_discovery_satisfies_sitemap_dependency(self, planner):
        assert planner.validate_dependencies(["sitemap"]).valid is False
        assert planner.validate_dependencies(["sitemap"], discover_resources=True).valid is True

    def test_missing_dependencies_are_deduplicated(self, planner):
        validation = planner.validate_dependencies(["site-summary", "site-summary", "sitemap"])

        assert validation.missing_dependencies == ["content-scraping", "site-crawling"]

    def test_unknown_operations_do_not_fail_validation(self, planner):
        assert planner.validate_dependencies(["made-up"]).valid is True


class TestParallelism:

    def test_conflicting_operations_cannot_run_in_parallel(self, planner):
        assert planner.can_run_in_parallel("accessibility", "screenshots") is False
        assert planner.can_run_in_parallel("screenshots", "accessibility") is False

    def test_same_phase_without_conflict_can_run_in_parallel(self, planner):
        assert planner.can_run_in_parallel("seo", "content-scraping") is True

    def test_different_phases_or_unknown_cannot(self, planner):
        assert planner.can_run_in_parallel("seo", "site-summary") is False
        assert planner.can_run_in_parallel("seo", "made-up") is False

    def test_execution_order(self, planner):
        assert planner.execution_order(["screenshots", "made-up", "seo", "content-scraping"]) == [
            "content-scraping",
            "seo",
            "screenshots",
        ]


class TestPhaseReporting:

    def test_phase_resource_requirements(self, planner):
        requirements = planner.phase_resource_requirements(
            2, ["content-scraping", "screenshots", "accessibility", "seo", "site-summary"]
        )

        assert requirements.memory_intensive == 2
        assert requirements.cpu_intensive == 1
        assert requirements.network_intensive == 1
        assert requirements.recommended_concurrency == 3

    def test_phase_summary(self, planner):
        summary = planner.phase_summary(1, ["site-crawling", "sitemap", "seo"])

        assert summary.name == "Data Discovery & Collection"
        assert summary.operation_count == 2
        assert summary.session_operations == ["site-crawling", "sitemap"]
        assert summary.estimated_duration == 20
