"""Booking tools backed by the NexHealth API.

Each method wraps one or two ``NexHealthClient`` calls and returns a short
sentence the voice agent can act on or read out.  Nothing here raises: PMS
failures are logged and turned into a polite fallback so the conversation
carries on.

Per-call progress (which patient and provider we are booking for) lives in
an explicit :class:`BookingState` owned by one ``BookingTools`` instance,
i.e. one conversation.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime

from src.config import NEXHEALTH_API_KEY
from src.services.business_config import BusinessConfig, GeneralInfo
from src.services.nexhealth_client import NexHealthClient
from src.tools.practice_info import describe_opening_hours, describe_practice

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Booking system not configured. Please call the office directly."
PATIENT_FOUND = (
    "Patient record found. Proceed directly to asking for appointment preference. "
    "Do not announce the patient's name."
)
PATIENT_NOT_FOUND = (
    "Patient not found in our system. I'll need to collect more information "
    "to create a new patient record."
)
NEED_PATIENT = "I need to have your patient information first. Can you give me your name and email?"

# RFC 5322-ish pattern: covers the vast majority of real-world emails
# without requiring an external dependency.
_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)


def _validate_email(email: str) -> str | None:
    """Return an error message if *email* looks invalid, else ``None``."""
    if not email or not email.strip():
        return "No email address was provided. Please ask the patient for their email."
    email = email.strip()
    if not _EMAIL_RE.match(email):
        return (
            f'"{email}" does not look like a valid email address. '
            "Please ask the patient to double-check and provide a corrected email."
        )
    return None


def _validate_date_of_birth(value: str) -> str | None:
    """Return an error message unless *value* is a past ``YYYY-MM-DD`` date."""
    try:
        dob = date.fromisoformat(value.strip())
    except ValueError:
        return (
            f'"{value}" is not a valid date of birth. '
            "Please confirm it with the patient and pass it as YYYY-MM-DD."
        )
    if dob > datetime.now(UTC).date():
        return "The date of birth is in the future. Please confirm it with the patient."
    return None


def _parse_start_time(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def format_spoken_datetime(dt: datetime) -> str:
    """``2026-03-03T14:30`` -> ``"Tuesday, March 3 at 2:30 PM"``."""
    clock = dt.strftime("%I:%M %p").lstrip("0")
    return f"{dt:%A}, {dt:%B} {dt.day} at {clock}"


@dataclass
class BookingState:
    """What this conversation has resolved so far.  Never persisted."""

    patient_id: int | None = None
    provider_id: int | None = None
    appointment_id: int | None = None


class BookingTools:
    """The tool implementations for one conversation with one business."""

    def __init__(
        self,
        client: NexHealthClient | None,
        location_id: int,
        general_info: GeneralInfo,
        state: BookingState | None = None,
    ):
        self._client = client
        self._location_id = location_id
        self._info = general_info
        self.state = state or BookingState()

    @classmethod
    def for_business(cls, config: BusinessConfig, api_key: str | None = None) -> BookingTools:
        """Build the tools for *config*, with a NexHealth client when possible.

        Without an API key, a NexHealth subdomain, or with a different PMS
        selected, the PMS-backed tools answer with :data:`NOT_CONFIGURED`.
        """
        api_key = api_key if api_key is not None else NEXHEALTH_API_KEY
        client = None
        if config.pms_provider == "dental_bridge":
            logger.warning("Business %s uses Dental Bridge; NexHealth booking disabled", config.id)
        elif api_key and config.nexhealth.subdomain:
            client = NexHealthClient(api_key=api_key, subdomain=config.nexhealth.subdomain)
        else:
            logger.warning("NexHealth not configured for business %s", config.id)
        return cls(client, config.nexhealth.location_id_int, config.general_info)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    # ── Helpers ──────────────────────────────────────────────────────

    def _ensure_provider(self) -> int | None:
        """Cache and return the first provider at this location."""
        if self.state.provider_id is None:
            providers = self._client.list_providers(self._location_id)
            if providers:
                self.state.provider_id = providers[0].id
        return self.state.provider_id

    # ── Patients ─────────────────────────────────────────────────────

    def search_patient(self, first_name: str, last_name: str, phone: str) -> str:
        full_name = f"{first_name.strip()} {last_name.strip()}"
        self.state.patient_id = None
        logger.info("Searching patients by name and phone %s", phone)
        if self._client is None:
            return NOT_CONFIGURED
        try:
            patients = self._client.search_patients(self._location_id, name=full_name, phone=phone)
            if not patients:
                # Phone numbers are often missing or stale in the synced PMS data.
                logger.info("No match with phone, retrying by name only")
                patients = self._client.search_patients(self._location_id, name=full_name)

            if patients:
                self.state.patient_id = patients[0].id
                logger.info("Matched patient %s", self.state.patient_id)
                return PATIENT_FOUND
            return PATIENT_NOT_FOUND
        except Exception:
            logger.exception("Failed to search patients")
            return "I had trouble searching for the patient. Please try again."

    def search_patient_by_email(self, email: str) -> str:
        self.state.patient_id = None
        email_error = _validate_email(email)
        if email_error:
            return email_error
        if self._client is None:
            return NOT_CONFIGURED
        try:
            patients = self._client.search_patients(self._location_id, email=email.strip())
            if patients:
                self.state.patient_id = patients[0].id
                logger.info("Matched patient %s by email", self.state.patient_id)
                return "Patient record found. Proceed directly to asking for appointment preference."
            return "I couldn't find a record with that email. Let me create a new record for you."
        except Exception:
            logger.exception("Failed to search patients by email")
            return "I had trouble searching. Let me create a new record for you."

    def create_patient(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        date_of_birth: str,
        gender: str,
    ) -> str:
        self.state.patient_id = None
        for error in (_validate_email(email), _validate_date_of_birth(date_of_birth)):
            if error:
                return error
        if self._client is None:
            return NOT_CONFIGURED
        try:
            patient = self._client.create_patient(
                first_name=first_name.strip(),
                last_name=last_name.strip(),
                email=email.strip(),
                phone=phone.strip(),
                date_of_birth=date_of_birth.strip(),
                gender=gender,
                location_id=self._location_id,
            )
            self.state.patient_id = patient.id
            logger.info("Created patient %s", patient.id)
            return "The patient record has been created. Now check availability for the appointment."
        except Exception:
            logger.exception("Failed to create patient")
            return (
                "I had trouble creating the patient record. "
                "Please try again or call the office directly."
            )

    # ── Availability & appointments ──────────────────────────────────

    def get_available_slots(self, start_date: str | None = None) -> str:
        """Report opening hours for the requested day.

        The PMS slot endpoint is not consulted; any time inside opening
        hours is offered and the booking call is the real check.
        """
        if self._client is not None:
            try:
                self._ensure_provider()
            except Exception:
                logger.exception("Failed to look up a provider, continuing with opening hours")
        try:
            day = date.fromisoformat(start_date) if start_date else datetime.now(UTC).date()
            logger.info("Checking opening hours for %s", day)
            return describe_opening_hours(self._info.raw_hours, day)
        except Exception:
            logger.exception("Failed to check availability")
            return "I'm having trouble checking availability right now. Please try again."

    def book_appointment(self, start_time: str, reason: str | None = None) -> str:
        logger.info(
            "Booking %s for patient %s", start_time, self.state.patient_id,
        )
        if self._client is None:
            return NOT_CONFIGURED
        if self.state.patient_id is None:
            return NEED_PATIENT

        start = _parse_start_time(start_time)
        if start is None:
            return (
                f'"{start_time}" is not a valid appointment time. '
                "Please confirm the date and time and pass it in ISO format."
            )

        try:
            provider_id = self._ensure_provider()
            if provider_id is None:
                return "I couldn't find an available provider. Please call the office directly."

            appointment = self._client.create_appointment(
                self._location_id,
                self.state.patient_id,
                provider_id,
                start_time.strip(),
                note=reason,
            )
            self.state.appointment_id = appointment.id
            return (
                f"Your appointment is confirmed for {format_spoken_datetime(start)}. "
                "You'll receive a confirmation email shortly."
            )
        except Exception:
            logger.exception("Failed to create booking")
            return "I'm having trouble booking right now. Please try again or call the office directly."

    def cancel_appointment(self) -> str:
        if self._client is None:
            return NOT_CONFIGURED
        if self.state.appointment_id is None:
            return (
                "I don't see an appointment booked during this call. "
                "Please call the office directly to cancel an existing appointment."
            )
        try:
            self._client.cancel_appointment(self.state.appointment_id)
            logger.info("Cancelled appointment %s", self.state.appointment_id)
            self.state.appointment_id = None
            return "The appointment has been cancelled."
        except Exception:
            logger.exception("Failed to cancel appointment")
            return "I'm having trouble cancelling right now. Please try again or call the office directly."

    # ── Practice facts ───────────────────────────────────────────────

    def get_practice_info(self, info_type: str) -> str:
        return describe_practice(self._info, info_type)
