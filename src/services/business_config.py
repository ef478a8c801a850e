"""Per-tenant business configuration loaded from Supabase.

A conversation is bound to one business (tenant).  The worker reads the
``businesses`` row and its ``business_agents`` row once, when the call
starts, and turns them into an immutable :class:`BusinessConfig`.

Lookup is deliberately forgiving: an unknown or missing business id falls
back to the first business in the table, which is what single-tenant and
demo deployments rely on.  Loading never raises; every failure is logged
and reported as ``None`` so the caller can end the conversation cleanly.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from postgrest.exceptions import APIError
from supabase import Client, create_client

from src.config import (
    CONFIG_LOAD_TIMEOUT_SECONDS,
    DEFAULT_VOICE,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
)
from src.services.metrics import metrics

logger = logging.getLogger(__name__)

NOT_SPECIFIED = "Not specified"
NOT_PROVIDED = "Not provided"

PMSProvider = Literal["nexhealth", "dental_bridge"]


# ── Configuration model ──────────────────────────────────────────────


@dataclass(frozen=True)
class GeneralInfo:
    """Practice facts, already rendered for use in prompt text."""

    practice_name: str
    phone: str = NOT_PROVIDED
    software: str = NOT_SPECIFIED
    no_show_fee: float = 0
    address: str = NOT_PROVIDED
    hours: str = NOT_SPECIFIED
    services: str = NOT_SPECIFIED
    raw_hours: Mapping[str, str | None] = field(default_factory=dict)


@dataclass(frozen=True)
class AgentSettings:
    agent_name: str | None = None
    greeting: str | None = None
    pretend_human: bool = False
    voice: str = DEFAULT_VOICE

    @property
    def is_complete(self) -> bool:
        return bool(self.agent_name and self.greeting)


@dataclass(frozen=True)
class NexHealthSettings:
    subdomain: str | None = None
    location_id: str | None = None

    @property
    def location_id_int(self) -> int:
        try:
            return int(self.location_id) if self.location_id else 0
        except ValueError:
            logger.warning("Invalid NexHealth location id %r, using 0", self.location_id)
            return 0


@dataclass(frozen=True)
class DentalBridgeSettings:
    location_id: str | None = None


@dataclass(frozen=True)
class BusinessConfig:
    id: str
    name: str
    general_info: GeneralInfo
    agent: AgentSettings = field(default_factory=AgentSettings)
    pms_provider: PMSProvider | None = None
    nexhealth: NexHealthSettings = field(default_factory=NexHealthSettings)
    dental_bridge: DentalBridgeSettings = field(default_factory=DentalBridgeSettings)


# ── Row mapping ──────────────────────────────────────────────────────


def format_operating_hours(hours: Mapping[str, str | None] | None) -> str:
    """Render ``{"monday": "9am-5pm", ...}`` as ``"Monday: 9am-5pm, ..."``.

    Closed and empty days are left out; an empty result reads
    "Not specified" so the prompt stays well-formed.
    """
    if not hours:
        return NOT_SPECIFIED
    formatted = ", ".join(
        f"{day[:1].upper()}{day[1:]}: {time_range}"
        for day, time_range in hours.items()
        if time_range and time_range.strip().lower() != "closed"
    )
    return formatted or NOT_SPECIFIED


def _format_services(services: Any) -> str:
    if isinstance(services, list):
        return ", ".join(str(s) for s in services) or NOT_SPECIFIED
    return services or NOT_SPECIFIED


def business_config_from_rows(
    business: Mapping[str, Any],
    agent: Mapping[str, Any] | None = None,
) -> BusinessConfig:
    """Map a ``businesses`` row and an optional ``business_agents`` row."""
    agent = agent or {}
    raw_hours = business.get("operating_hours") or {}
    pms_provider = business.get("pms_provider")
    if pms_provider not in ("nexhealth", "dental_bridge"):
        pms_provider = None

    return BusinessConfig(
        id=str(business["id"]),
        name=business.get("name") or NOT_SPECIFIED,
        general_info=GeneralInfo(
            practice_name=business.get("name") or NOT_SPECIFIED,
            phone=business.get("phone_no") or NOT_PROVIDED,
            software=business.get("practice_software") or NOT_SPECIFIED,
            no_show_fee=business.get("no_show_fees") or 0,
            address=business.get("address") or NOT_PROVIDED,
            hours=format_operating_hours(raw_hours),
            services=_format_services(business.get("services")),
            raw_hours={str(day).lower(): value for day, value in raw_hours.items()},
        ),
        agent=AgentSettings(
            agent_name=agent.get("agent_name"),
            greeting=agent.get("greeting_text"),
            pretend_human=bool(agent.get("pretendence") or False),
            voice=agent.get("voice") or DEFAULT_VOICE,
        ),
        pms_provider=pms_provider,
        nexhealth=NexHealthSettings(
            subdomain=business.get("nexhealth_subdomain"),
            location_id=_str_or_none(business.get("nexhealth_location_id")),
        ),
        dental_bridge=DentalBridgeSettings(
            location_id=_str_or_none(business.get("dental_bridge_location_id")),
        ),
    )


def _str_or_none(value: Any) -> str | None:
    return None if value is None else str(value)


# ── Supabase client (module-level, lazily created) ───────────────────

_supabase: Client | None = None
_supabase_lock = threading.Lock()


def get_supabase_client() -> Client | None:
    """Return the shared Supabase client, or ``None`` without credentials."""
    global _supabase
    if _supabase is None:
        if not (SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY):
            logger.error("Supabase credentials missing; business configuration unavailable")
            return None
        with _supabase_lock:
            if _supabase is None:
                # Service role key: the worker reads rows regardless of RLS.
                _supabase = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
    return _supabase


# ── Loader ───────────────────────────────────────────────────────────


class BusinessConfigLoader:
    """Loads :class:`BusinessConfig` records with a hard time limit."""

    def __init__(
        self,
        client: Client | None = None,
        *,
        timeout: float = CONFIG_LOAD_TIMEOUT_SECONDS,
    ):
        self._client = client
        self._timeout = timeout

    async def load(self, business_id: str | None = None) -> BusinessConfig | None:
        """Load the config for *business_id* (or any business), else ``None``.

        The blocking Supabase queries run in a worker thread that is raced
        against ``timeout``.  On expiry the caller gets ``None`` straight
        away; the orphaned thread finishes in the background.
        """
        t0 = time.perf_counter()
        try:
            config = await asyncio.wait_for(
                asyncio.to_thread(self._load_blocking, business_id),
                timeout=self._timeout,
            )
        except TimeoutError:
            metrics.record_failure("supabase", "load_business_config", error_type="TimeoutError")
            logger.error("Business config load timed out after %.0fs", self._timeout)
            return None
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "supabase", "load_business_config",
                error_type=type(exc).__name__, latency_ms=elapsed,
            )
            logger.exception("Failed to load business config")
            return None

        if config is not None:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_success("supabase", "load_business_config", latency_ms=elapsed)
        return config

    def _load_blocking(self, business_id: str | None) -> BusinessConfig | None:
        client = self._client or get_supabase_client()
        if client is None:
            return None

        logger.info("Loading business config for %s", business_id)
        businesses: list[dict[str, Any]] = []
        if business_id:
            try:
                businesses = (
                    client.table("businesses").select("*").eq("id", business_id).limit(1).execute().data
                )
            except APIError as exc:
                # A malformed id is treated like an unknown one.
                logger.warning("Lookup of business %s failed: %s", business_id, exc)

        if not businesses:
            logger.info("Business %s not found, using the first available business", business_id)
            businesses = client.table("businesses").select("*").limit(1).execute().data

        if not businesses:
            logger.error("businesses table is empty")
            return None

        business = businesses[0]
        logger.debug("Resolved business %s (%s)", business.get("name"), business.get("id"))

        agents = (
            client.table("business_agents")
            .select("*")
            .eq("business_id", business["id"])
            .limit(1)
            .execute()
            .data
        )
        agent = agents[0] if agents else None
        if agent is None:
            logger.warning("Business %s has no agent row", business["id"])

        config = business_config_from_rows(business, agent)
        logger.info("Loaded %s (PMS: %s)", config.name, config.pms_provider or "none")
        return config


_default_loader = BusinessConfigLoader()


async def load_business_config(business_id: str | None = None) -> BusinessConfig | None:
    """Load a business config with the shared Supabase client."""
    return await _default_loader.load(business_id)
