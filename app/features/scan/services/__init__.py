"""
Scan Services

Organized by responsibility:

1. orchestration/ - Phased scheduling
   - registry.py: Operation classifications, phases and playlists
   - planner.py: Groups selected operations into phase plans
   - executor.py: Bounded worker pool for task batches
   - unifier.py: One page load per page, shared by every per-page operation
   - session_store.py: Per-run results, metrics and errors
   - capabilities.py: Operation id -> handler table
   - scheduler.py: Runs the phases and builds the RunSummary

2. browser/ - Page contexts
   - engine.py: BrowserEngine protocol and the Selenium implementation

3. discovery/ - URL enumeration and page discovery
   - page_discovery.py: Same-origin breadth-first crawl

4. extraction/ - DOM primitives
   - extractor_service.py: Content, SEO metadata, accessibility, secrets, screenshots

5. reporting/ - Output files
   - renderer.py: JSON report per result

6. utils/ - URL helpers (page names, depth, content type, page filters)
"""
