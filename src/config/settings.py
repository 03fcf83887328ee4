# src/config/settings.py

"""Central configuration for the pagewatch monitor."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the pagewatch monitor."""

    # --- Fetching ---
    REQUEST_TIMEOUT: int = 30           # Seconds before a fetch is aborted
    REQUEST_DELAY: float = 1.0          # Pause between pages in a batch
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/131.0.0.0 Safari/537.36"
        ),
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.5",
    }

    # --- Snapshots ---
    SNAPSHOT_RETENTION: int = 10        # Snapshots kept per page
    FINGERPRINT_LENGTH: int = 16        # Hex chars of the SHA-256 digest

    # --- Price extraction ---
    MIN_VALID_PRICE: float = 0.01
    MAX_VALID_PRICE: float = 1_000_000.0

    # --- Price alert thresholds ---
    MIN_PERCENT_CHANGE: float = 1.0
    MIN_AMOUNT_CHANGE: float = 0.50
    LOW_CONFIDENCE_MIN_PERCENT: float = 5.0
    LOW_CONFIDENCE_MIN_AMOUNT: float = 2.0

    # --- Qualitative analysis (OpenAI) ---
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    ANALYZER_MODEL: str = os.getenv(
        "PAGEWATCH_ANALYZER_MODEL", "gpt-4o-mini"
    )
    ANALYZER_TIMEOUT: float = 60.0
    ANALYZER_MAX_TOKENS: int = 1024
    ANALYZER_TEMPERATURE: float = 0.3

    # --- Notifications ---
    ALERT_WEBHOOK_URL: str = os.getenv("PAGEWATCH_ALERT_WEBHOOK_URL", "")
    NOTIFIER_TIMEOUT: int = 10

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    DB_PATH: Path = Path(
        os.getenv("PAGEWATCH_DB_PATH", str(DATA_DIR / "pagewatch.db"))
    )
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Logging ---
    CONSOLE_LOG_LEVEL: str = os.getenv("PAGEWATCH_LOG_LEVEL", "WARNING")
    LOG_RETENTION: int = 20             # Run log files kept in LOGS_DIR
