from pathlib import Path
from typing import Dict, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "Site Scan Scheduler"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = True

    # ── Logging ─────────────────────────────────
    LOG_DIR: str = "logs"
    LOG_FILE: str = "site_scan.log"
    LOG_LEVEL: str = "INFO"

    # ── Browser ─────────────────────────────────
    CHROMEDRIVER_PATH: Optional[str] = None
    USE_WEBDRIVER_MANAGER: bool = False
    BROWSER_HEADLESS: bool = True
    PAGE_LOAD_TIMEOUT: int = 30
    NETWORK_IDLE_TIMEOUT: int = 10

    # ── Discovery ───────────────────────────────
    MAX_PAGES: int = 50

    # ── Scheduling ──────────────────────────────
    DEFAULT_CONCURRENCY: int = 5
    PHASE_CONCURRENCY: Dict[int, int] = {1: 3, 2: 5, 3: 2}
    PHASE_CONCURRENCY_FLOOR: Dict[int, int] = {1: 2, 2: 3, 3: 1}
    PAGE_SESSION_CONCURRENCY_CAP: int = 3
    SESSION_TASK_CONCURRENCY: int = 2
    TASK_TIMEOUT: Optional[float] = None  # seconds, None disables

    # Duration estimates are used for reporting only
    SESSION_TASK_COST_SECONDS: int = 10
    RESOURCE_TASK_COST_SECONDS: int = 5
    ESTIMATED_PAGE_COUNT: int = 10

    # ── Output ──────────────────────────────────
    OUTPUT_DIR: str = "site-scan-sessions"

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
