"""Centralized configuration for the dental voice receptionist.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/dental-voice/<VARIABLE_NAME>``.

Unlike a web service, the voice worker must be able to boot without its
secrets so that operators can inspect it; missing values are logged as
warnings and surface later as "configuration unavailable".
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/dental-voice/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _optional_env(*names: str, purpose: str) -> str | None:
    """Return the first configured value among *names*, or ``None``.

    A missing secret is a warning, not an error: the worker still starts
    and every conversation degrades to a logged abort.
    """
    for name in names:
        value = os.getenv(name)
        if value and not value.startswith("your_"):
            return value

    if _ON_AWS:
        for name in names:
            ssm_value = _get_ssm_parameter(name)
            if ssm_value:
                return ssm_value

    logger.warning("WARNING: Missing %s env var - %s", " / ".join(names), purpose)
    return None


# ── Supabase (business + agent settings store) ───────────────────────
SUPABASE_URL: str | None = _optional_env(
    "SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_URL",
    purpose="agent will fail to load business config",
)
SUPABASE_SERVICE_ROLE_KEY: str | None = _optional_env(
    "SUPABASE_SERVICE_ROLE_KEY",
    purpose="agent will fail to load business config",
)
CONFIG_LOAD_TIMEOUT_SECONDS: float = 10.0

# ── NexHealth (practice management system) ───────────────────────────
# The API key is global; subdomain and location come from each business row.
NEXHEALTH_API_KEY: str | None = _optional_env(
    "NEXHEALTH_API_KEY",
    purpose="booking features will fail",
)
NEXHEALTH_BASE_URL: str = os.getenv("NEXHEALTH_BASE_URL", "https://nexhealth.info")

# ── Voice pipeline ──────────────────────────────────────────────────
STT_MODEL: str = os.getenv("STT_MODEL", "deepgram/nova-2-general")
STT_LANGUAGE: str = os.getenv("STT_LANGUAGE", "en")
LLM_MODEL: str = os.getenv("LLM_MODEL", "gemini-2.0-flash-exp")
TTS_MODEL: str = os.getenv("TTS_MODEL", "gemini-2.5-flash-preview-tts")
DEFAULT_VOICE: str = os.getenv("DEFAULT_VOICE", "Puck")

# ── Diagnostics server ──────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
