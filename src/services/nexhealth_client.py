"""HTTP client for the NexHealth Synchronizer API.

NexHealth API docs: https://docs.nexhealth.com/reference

Authentication is a two-step affair: the practice-wide API key is exchanged
at ``POST /authenticates`` for a short-lived bearer token, and every other
call carries that bearer token.  Tenants are selected per call with the
``subdomain`` query parameter (or body field) plus a ``location_id``.

The client performs **no retries**.  Any non-2xx response raises
:class:`NexHealthAPIError` with the status code and body; callers decide
what to do about it (the voice tools turn it into a polite sentence).
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

import httpx

from src.config import NEXHEALTH_BASE_URL
from src.services.metrics import metrics
from src.services.nexhealth_models import (
    Appointment,
    AppointmentSlot,
    AppointmentType,
    Location,
    Patient,
    Provider,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 15.0
ACCEPT_HEADER = "application/vnd.Nexhealth+json;version=2"

# Tokens are valid for 60 minutes in production (24h in sandbox); refresh
# five minutes early so a request never races server-side expiry.
TOKEN_TTL_SECONDS = 55 * 60


class NexHealthAPIError(Exception):
    """Raised when a NexHealth call fails or returns a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class NexHealthAuthError(NexHealthAPIError):
    """Raised when the API key cannot be exchanged for a bearer token."""


@dataclass
class TokenCache:
    """Bearer token plus the clock reading after which it must not be used."""

    token: str | None = None
    expires_at: float = 0.0

    def get(self, now: float) -> str | None:
        if self.token and now < self.expires_at:
            return self.token
        return None

    def store(self, token: str, now: float, ttl_seconds: float) -> None:
        self.token = token
        self.expires_at = now + ttl_seconds


def _normalize_collection(payload: Any, key: str) -> list[dict[str, Any]]:
    """Decode a ``data`` field that is either a bare array or ``{key: [...]}``.

    NexHealth is inconsistent about this between endpoints and API
    versions; this is the only place that knows about it.
    """
    data = payload.get("data") if isinstance(payload, dict) else None
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get(key) or []
    return []


def _as_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _day_count(start: date, end: date) -> int:
    """Number of days NexHealth should scan, inclusive of both ends."""
    return math.ceil((end - start) / timedelta(days=1)) + 1


def _js_weekday(iso_time: str) -> int | None:
    """Weekday of an ISO timestamp with 0 = Sunday … 6 = Saturday."""
    try:
        return datetime.fromisoformat(iso_time.replace("Z", "+00:00")).isoweekday() % 7
    except ValueError:
        logger.warning("Skipping slot with unparseable time %r", iso_time)
        return None


MAX_SPOKEN_DAYS = 3
MAX_SPOKEN_TIMES_PER_DAY = 4


def format_slots_for_agent(slots: Iterable[AppointmentSlot]) -> str:
    """Group slots by day into one short sentence per day for speech.

    Times are read in the slot's own UTC offset.  At most
    ``MAX_SPOKEN_DAYS`` days with ``MAX_SPOKEN_TIMES_PER_DAY`` times each are
    kept; unparseable timestamps are skipped.
    """
    by_day: dict[str, list[str]] = {}
    for slot in slots:
        try:
            start = datetime.fromisoformat(slot.time.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Skipping slot with unparseable time %r", slot.time)
            continue
        day = f"{start:%A}, {start:%B} {start.day}"
        by_day.setdefault(day, []).append(start.strftime("%I:%M %p").lstrip("0"))

    if not by_day:
        return "No available slots found for the requested time period."
    return ". ".join(
        f"{day}: {', '.join(times[:MAX_SPOKEN_TIMES_PER_DAY])}"
        for day, times in list(by_day.items())[:MAX_SPOKEN_DAYS]
    )


class NexHealthClient:
    """Thin wrapper around the NexHealth REST API for one practice subdomain.

    One instance serves one tenant conversation and owns its
    :class:`TokenCache`.  Token refresh is serialised by a lock, so sharing
    an instance across threads still costs a single ``/authenticates`` call
    per expiry window.
    """

    def __init__(
        self,
        api_key: str,
        subdomain: str,
        base_url: str | None = None,
        *,
        token_cache: TokenCache | None = None,
        token_ttl_seconds: float = TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._api_key = api_key
        self._subdomain = subdomain
        self._base_url = base_url or NEXHEALTH_BASE_URL
        self._client = httpx.Client(
            base_url=self._base_url,
            headers={
                "Content-Type": "application/json",
                "Accept": ACCEPT_HEADER,
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        self._token_cache = token_cache or TokenCache()
        self._token_ttl = token_ttl_seconds
        self._clock = clock
        self._token_lock = threading.Lock()

    @property
    def subdomain(self) -> str:
        return self._subdomain

    def close(self) -> None:
        self._client.close()

    # ── Authentication ───────────────────────────────────────────────

    def authenticate(self) -> str:
        """Return a valid bearer token, exchanging the API key if needed."""
        token = self._token_cache.get(self._clock())
        if token:
            return token

        with self._token_lock:
            # Another thread may have refreshed while we waited.
            token = self._token_cache.get(self._clock())
            if token:
                return token

            logger.info("Exchanging NexHealth API key for a bearer token")
            t0 = time.perf_counter()
            try:
                response = self._client.request(
                    "POST",
                    "/authenticates",
                    headers={"Authorization": self._api_key},
                )
            except httpx.HTTPError as exc:
                metrics.record_failure("nexhealth", "POST /authenticates", error_type=type(exc).__name__)
                raise NexHealthAuthError(f"Authentication failed: {exc}") from exc

            elapsed = (time.perf_counter() - t0) * 1000
            if not 200 <= response.status_code < 300:
                metrics.record_failure(
                    "nexhealth", "POST /authenticates",
                    error_type=str(response.status_code), latency_ms=elapsed,
                )
                logger.error("NexHealth authentication returned %d: %s", response.status_code, response.text)
                raise NexHealthAuthError(
                    f"Authentication failed: {response.status_code} - {response.text}",
                    status_code=response.status_code,
                    body=response.text,
                )

            payload = response.json()
            data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
            token = data.get("token") or payload.get("token")
            if not token:
                metrics.record_failure(
                    "nexhealth", "POST /authenticates", error_type="missing_token", latency_ms=elapsed,
                )
                raise NexHealthAuthError("Authentication failed: response did not contain a token")

            metrics.record_success("nexhealth", "POST /authenticates", latency_ms=elapsed)
            self._token_cache.store(token, self._clock(), self._token_ttl)
            logger.debug("NexHealth token cached for %.0fs", self._token_ttl)
            return token

    # ── Internal helpers ─────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Execute one authenticated request and return the decoded JSON."""
        token = self.authenticate()
        operation = f"{method} /{path.strip('/').split('/')[0]}"
        logger.debug("NexHealth %s %s", method, path)

        t0 = time.perf_counter()
        try:
            response = self._client.request(
                method,
                path,
                params=params,
                json=json_body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            metrics.record_failure("nexhealth", operation, error_type=type(exc).__name__)
            raise NexHealthAPIError(f"NexHealth request {method} {path} failed: {exc}") from exc

        elapsed = (time.perf_counter() - t0) * 1000
        if not 200 <= response.status_code < 300:
            metrics.record_failure(
                "nexhealth", operation, error_type=str(response.status_code), latency_ms=elapsed,
            )
            logger.error("NexHealth %s %s returned %d: %s", method, path, response.status_code, response.text)
            raise NexHealthAPIError(
                f"NexHealth API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        metrics.record_success("nexhealth", operation, latency_ms=elapsed)
        if not response.content:
            return None
        return response.json()

    def _scoped(self, **params: Any) -> dict[str, Any]:
        """Query params for a tenant-scoped call, dropping unset values."""
        return {"subdomain": self._subdomain, **{k: v for k, v in params.items() if v is not None}}

    # ── Public API methods ───────────────────────────────────────────

    def list_locations(self) -> list[Location]:
        data = self._request("GET", "/locations", params=self._scoped())
        return [Location.model_validate(item) for item in data["data"]]

    def list_providers(self, location_id: int) -> list[Provider]:
        data = self._request("GET", "/providers", params=self._scoped(location_id=location_id))
        return [Provider.model_validate(item) for item in data["data"]]

    def list_appointment_types(self, location_id: int) -> list[AppointmentType]:
        data = self._request(
            "GET", "/appointment_types", params=self._scoped(location_id=location_id),
        )
        return [AppointmentType.model_validate(item) for item in data["data"]]

    def search_patients(
        self,
        location_id: int,
        *,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> list[Patient]:
        """Search patients by any combination of name, email and phone.

        NexHealth matches more accurately when several fields are given.
        An empty list means no match, not an error.
        """
        if not (name or email or phone):
            raise ValueError("search_patients needs at least one of name, email or phone")

        data = self._request(
            "GET",
            "/patients",
            params=self._scoped(
                location_id=location_id,
                name=name or None,
                email=email or None,
                phone=phone or None,
            ),
        )
        return [Patient.model_validate(item) for item in _normalize_collection(data, "patients")]

    def create_patient(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        date_of_birth: str,
        gender: str,
        location_id: int,
    ) -> Patient:
        data = self._request(
            "POST",
            "/patients",
            json_body={
                "subdomain": self._subdomain,
                "location_id": location_id,
                "patient": {
                    "first_name": first_name,
                    "last_name": last_name,
                    "email": email,
                    "phone": phone,
                    "date_of_birth": date_of_birth,
                    "gender": gender,
                },
            },
        )
        return Patient.model_validate(data["data"])

    def get_appointment_slots(
        self,
        location_id: int,
        start_date: str | date,
        end_date: str | date,
        *,
        provider_id: int | None = None,
        appointment_type_id: int | None = None,
        days_of_week: Iterable[int] | None = None,
    ) -> list[AppointmentSlot]:
        """Open slots between two dates (inclusive).

        The endpoint takes a start date and a number of days rather than an
        end date.  ``days_of_week`` uses 0 = Sunday … 6 = Saturday and is
        applied to the returned slots.
        """
        start = _as_date(start_date)
        end = _as_date(end_date)
        params = self._scoped(
            start_date=start.isoformat(),
            days=_day_count(start, end),
            appointment_type_id=appointment_type_id,
        )
        params["lids[]"] = [location_id]
        if provider_id:
            params["pids[]"] = [provider_id]

        data = self._request("GET", "/appointment_slots", params=params)
        slots = [AppointmentSlot.model_validate(item) for item in _normalize_collection(data, "slots")]

        if days_of_week is not None:
            wanted = set(days_of_week)
            slots = [slot for slot in slots if _js_weekday(slot.time) in wanted]
        return slots

    def create_appointment(
        self,
        location_id: int,
        patient_id: int,
        provider_id: int,
        start_time: str,
        *,
        appointment_type_id: int | None = None,
        operatory_id: int | None = None,
        note: str | None = None,
    ) -> Appointment:
        appointment: dict[str, Any] = {
            "patient_id": patient_id,
            "provider_id": provider_id,
            "start_time": start_time,
        }
        optional = {
            "appointment_type_id": appointment_type_id,
            "operatory_id": operatory_id,
            "note": note,
        }
        appointment.update({k: v for k, v in optional.items() if v is not None})

        data = self._request(
            "POST",
            "/appointments",
            json_body={
                "subdomain": self._subdomain,
                "location_id": location_id,
                "appointment": appointment,
            },
        )
        return Appointment.model_validate(data["data"])

    def cancel_appointment(self, appointment_id: int) -> None:
        self._request(
            "DELETE",
            f"/appointments/{appointment_id}",
            json_body={"subdomain": self._subdomain},
        )

    def get_patient(self, patient_id: int) -> Patient:
        data = self._request("GET", f"/patients/{patient_id}", params=self._scoped())
        return Patient.model_validate(data["data"])
