import pytest

from app.features.scan.schemas.operations import OutputType
from app.features.scan.schemas.results import Viewport
from app.features.scan.services.orchestration.executor import WorkerPoolExecutor
from app.features.scan.services.orchestration import registry
from app.features.scan.services.orchestration.unifier import ResourceSessionUnifier
from app.platform.exceptions import UnknownOperationError

URLS = ["https://example.com/r1", "https://example.com/r2", "https://example.com/r3"]
VIEWPORTS = [
    Viewport(name="desktop", width=1920, height=1080),
    Viewport(name="mobile", width=375, height=667),
]


def make_unifier(engine, capabilities, viewports=VIEWPORTS):
    return ResourceSessionUnifier(
        engine,
        capabilities,
        executor=WorkerPoolExecutor(5),
        viewports=viewports,
        run_id="run-1",
    )


class TestGroupOperations:

    def test_shared_and_exclusive(self, fake_engine, capabilities):
        groups = make_unifier(fake_engine, capabilities).group_operations(
            ["screenshots", "seo", "accessibility", "content-scraping"]
        )

        assert groups.shared == ["content-scraping", "seo"]
        assert groups.exclusive == ["accessibility", "screenshots"]

    def test_operation_without_capability_is_rejected(self, fake_engine, capabilities):
        with pytest.raises(UnknownOperationError) as exc_info:
            make_unifier(fake_engine, capabilities).group_operations(["seo", "sitemap"])

        assert exc_info.value.operation_ids == ["sitemap"]


class TestResourceSessions:

    @pytest.mark.asyncio
    async def test_one_task_and_one_acquisition_per_page(self, fake_engine, capabilities):
        unifier = make_unifier(fake_engine, capabilities)
        tasks = unifier.build_tasks(URLS, ["content-scraping", "seo"])

        assert len(tasks) == 3
        outcome = await WorkerPoolExecutor(2).execute_tasks(tasks)

        pages = [s.result for s in outcome.successes]
        assert len(pages) == 3
        assert sum(len(p.results) for p in pages) == 6
        assert all(r.succeeded for p in pages for r in p.results)
        assert fake_engine.acquired == 3
        assert fake_engine.released == 3

    @pytest.mark.asyncio
    async def test_shared_operations_use_the_same_context(self, fake_engine, capabilities):
        page = await make_unifier(fake_engine, capabilities).process_page(URLS[0], ["content-scraping", "seo"])

        handles = {event[3] for event in capabilities.events}
        assert handles == {1}
        assert page.load_time == 0.25
        assert page.page_name == "r1"
        assert "Successful: 2" in page.summary

    @pytest.mark.asyncio
    async def test_acquisition_failure_fails_every_requested_operation(self, engine_factory, capabilities):
        engine = engine_factory(fail_urls={URLS[1]})
        unifier = make_unifier(engine, capabilities)
        outcome = await WorkerPoolExecutor(2).execute_tasks(unifier.build_tasks(URLS, ["content-scraping", "seo"]))

        pages = {s.result.url: s.result for s in outcome.successes}
        failed = pages[URLS[1]].results
        assert len(failed) == 2
        assert all(not r.succeeded for r in failed)
        assert all(r.error == f"Resource acquisition failed: Navigation to {URLS[1]} failed" for r in failed)
        for url in (URLS[0], URLS[2]):
            assert [r.succeeded for r in pages[url].results] == [True, True]
        # the failed context is still released
        assert engine.released == engine.acquired == 3

    @pytest.mark.asyncio
    async def test_engine_that_cannot_start(self, engine_factory, capabilities):
        engine = engine_factory(fail_acquire=True)

        page = await make_unifier(engine, capabilities).process_page(URLS[0], ["seo", "accessibility"])

        assert [r.operation_id for r in page.results] == ["seo", "accessibility"]
        assert all(r.error == "Resource acquisition failed: Could not start browser" for r in page.results)
        assert engine.released == 0

    @pytest.mark.asyncio
    async def test_operation_failure_is_isolated(self, fake_engine, capabilities_factory):
        capabilities = capabilities_factory(failing={("seo", URLS[0]): "bad markup"})

        page = await make_unifier(fake_engine, capabilities).process_page(URLS[0], ["content-scraping", "seo"])

        results = {r.operation_id: r for r in page.results}
        assert results["content-scraping"].succeeded
        assert results["seo"].succeeded is False
        assert results["seo"].error == "bad markup"


class TestExclusiveOperations:

    @pytest.mark.asyncio
    async def test_screenshots_fan_out_over_viewports_on_fresh_copies(self, fake_engine, capabilities):
        page = await make_unifier(fake_engine, capabilities).process_page(URLS[0], ["screenshots"])

        assert [r.variant for r in page.results] == ["desktop", "mobile"]
        assert all(r.succeeded for r in page.results)
        assert sorted(fake_engine.viewports) == ["desktop", "mobile"]
        # original context plus one copy per viewport
        assert fake_engine.acquired == 3
        assert fake_engine.released == 3

    @pytest.mark.asyncio
    async def test_accessibility_and_screenshots_never_overlap(self, fake_engine, capabilities):
        await make_unifier(fake_engine, capabilities).process_page(
            URLS[0], ["screenshots", "accessibility", "seo"]
        )

        events = capabilities.events
        accessibility_end = events.index(("end", "accessibility", URLS[0], 1))
        screenshot_starts = [i for i, e in enumerate(events) if e[0] == "start" and e[1] == "screenshots"]
        assert screenshot_starts
        assert all(i > accessibility_end for i in screenshot_starts)
        # accessibility runs on the original context, captures on copies
        assert all(e[3] != 1 for e in events if e[1] == "screenshots")

    @pytest.mark.asyncio
    async def test_no_viewports_keeps_output_type(self, fake_engine, capabilities):
        def classifier(operation_id):
            classification = registry.classify(operation_id)
            return classification.model_copy(update={"output_type": OutputType.SITE_WIDE})

        unifier = ResourceSessionUnifier(fake_engine, capabilities, viewports=[], classifier=classifier)

        page = await unifier.process_page(URLS[0], ["screenshots"])

        assert page.results[0].error == "No viewports configured"
        assert page.results[0].output_type == OutputType.SITE_WIDE

    @pytest.mark.asyncio
    async def test_variant_acquisition_failure(self, engine_factory, capabilities):
        engine = engine_factory()
        unifier = make_unifier(engine, capabilities)

        async def fail_second_navigation(handle, url, _original=engine.navigate):
            if handle["id"] == 3:
                raise RuntimeError("tab crashed")
            return await _original(handle, url)

        engine.navigate = fail_second_navigation

        page = await unifier.process_page(URLS[0], ["screenshots"])

        by_variant = {r.variant: r for r in page.results}
        assert len(page.results) == 2
        assert sum(1 for r in page.results if r.succeeded) == 1
        failed = [r for r in by_variant.values() if not r.succeeded][0]
        assert failed.error == "Resource acquisition failed: tab crashed"
        assert engine.released == engine.acquired
