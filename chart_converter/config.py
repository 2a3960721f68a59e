"""Configuration constants and .env loading.

WHY: Centralizes every configurable value (database path, transport
endpoints, pacing, catalog naming) so operators can find and override
them in one place, and so the pipeline fails fast when a required
transport setting is missing.

HOW: python-dotenv loads the .env file on import. Constants are module
level values read with os.getenv and a default. load_webhook_url()
provides a clear error when the upload webhook is missing.

RULES:
- WEBHOOK_URL is required for `convert`; it is never defaulted
- All other values have defaults and can be overridden via environment
- Secrets (webhook URL, Slack token) are loaded from .env, never hardcoded
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Archive store
# ---------------------------------------------------------------------------

ARCHIVE_DB_PATH = os.getenv("ARCHIVE_DB_PATH", "./archive.db")

# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

SOURCE_BASE_URL = os.getenv("SOURCE_BASE_URL", "https://fp.sevenc7c.com")
HTTP_TIMEOUT_S = float(os.getenv("HTTP_TIMEOUT_S", "60"))
UPLOAD_MIN_INTERVAL_S = float(os.getenv("UPLOAD_MIN_INTERVAL_S", "1.0"))
RATE_LIMIT_MAX_RETRIES = int(os.getenv("RATE_LIMIT_MAX_RETRIES", "10"))
QUEUE_CAPACITY = int(os.getenv("QUEUE_CAPACITY", "10"))

# ---------------------------------------------------------------------------
# Alerting
# ---------------------------------------------------------------------------

SLACK_BOT_TOKEN = os.getenv("SLACK_BOT_TOKEN", "")
SLACK_ALERT_CHANNEL = os.getenv("SLACK_ALERT_CHANNEL", "")

# ---------------------------------------------------------------------------
# Catalog API
# ---------------------------------------------------------------------------

CATALOG_TITLE = os.getenv("CATALOG_TITLE", "Potato Leaves")
CATALOG_SOURCE_URL = os.getenv("CATALOG_SOURCE_URL", "https://ptlv.sevenc7c.com")
CATALOG_PAGE_SIZE = 20
SONOLUS_VERSION = os.getenv("SONOLUS_VERSION", "1.0.2")
ENGINE_LIST_URL = os.getenv("ENGINE_LIST_URL", "")
BG_DATA_PATH = os.getenv("BG_DATA_PATH", "./assets/bgData.json.gz")
SONOLUS_OPEN_URL = os.getenv("SONOLUS_OPEN_URL", "https://open.sonolus.com")

SOURCE_NAME_PREFIX = os.getenv("SOURCE_NAME_PREFIX", "frpt-")
PUBLIC_NAME_PREFIX = os.getenv("PUBLIC_NAME_PREFIX", "ptlv-")


def load_webhook_url() -> str:
    """Load the upload webhook URL from the environment.

    RULES:
    - Raises ValueError if the URL is missing or empty
    - Never returns a default/placeholder value
    """
    url = os.getenv("WEBHOOK_URL", "").strip()
    if not url:
        raise ValueError(
            "WEBHOOK_URL is not defined. "
            "Add WEBHOOK_URL to the .env file before running the converter."
        )
    return url


def to_public_name(name: str) -> str:
    """Map an archive level name to the name exposed by the catalog."""
    return name.replace(SOURCE_NAME_PREFIX, PUBLIC_NAME_PREFIX, 1)


def to_archive_name(name: str) -> str:
    """Map a catalog level name back to its archive name."""
    return name.replace(PUBLIC_NAME_PREFIX, SOURCE_NAME_PREFIX, 1)
