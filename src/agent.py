"""LiveKit voice agent for a dental practice front desk.

One worker job = one phone/web call for one business:

  connect → read ``businessId`` from room metadata → load the business
  config from Supabase → build instructions + NexHealth-backed tools →
  start an STT/LLM/TTS ``AgentSession`` → speak the configured greeting.

Speech detection, transcription, the LLM and speech synthesis are all
provided by LiveKit and its plugins; this module only wires them up.
"""

import asyncio
import json
import logging
from typing import Literal

from livekit.agents import (
    Agent,
    AgentSession,
    JobContext,
    JobProcess,
    function_tool,
    inference,
)
from livekit.plugins import google, silero

from src.config import LLM_MODEL, STT_LANGUAGE, STT_MODEL, TTS_MODEL
from src.prompts import build_instructions
from src.services.business_config import BusinessConfig, load_business_config
from src.tools.booking import BookingTools

logger = logging.getLogger(__name__)


class Receptionist(Agent):
    """The conversational agent; every tool delegates to ``BookingTools``.

    The NexHealth client is synchronous, so tool bodies run in a worker
    thread to keep the audio loop responsive.
    """

    def __init__(self, config: BusinessConfig, tools: BookingTools):
        super().__init__(instructions=build_instructions(config))
        self._tools = tools

    @function_tool
    async def search_patient(self, first_name: str, last_name: str, phone: str) -> str:
        """Search for an existing patient by name and phone in the practice management system.

        Args:
            first_name: Patient's first name
            last_name: Patient's last name
            phone: Patient's phone number
        """
        return await asyncio.to_thread(self._tools.search_patient, first_name, last_name, phone)

    @function_tool
    async def search_patient_by_email(self, email: str) -> str:
        """Search for an existing patient by their registered email address.

        Args:
            email: Patient's registered email address
        """
        return await asyncio.to_thread(self._tools.search_patient_by_email, email)

    @function_tool
    async def create_patient(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        date_of_birth: str,
        gender: Literal["male", "female", "other"],
    ) -> str:
        """Create a new patient record in the system. ALL fields are required.

        Args:
            first_name: Patient's first name
            last_name: Patient's last name
            email: Patient's email address
            phone: Patient's phone number (required)
            date_of_birth: Patient's date of birth in YYYY-MM-DD format (required)
            gender: Patient's gender: male, female, or other (required)
        """
        return await asyncio.to_thread(
            self._tools.create_patient, first_name, last_name, email, phone, date_of_birth, gender,
        )

    @function_tool
    async def get_available_slots(self, start_date: str | None = None) -> str:
        """Get availability for a day. First ask the caller if they want today or a specific date.

        Args:
            start_date: Date in YYYY-MM-DD format. Use today's date if the caller says 'today'.
        """
        return await asyncio.to_thread(self._tools.get_available_slots, start_date)

    @function_tool
    async def book_appointment(self, start_time: str, reason: str | None = None) -> str:
        """Book an appointment for the patient.

        Args:
            start_time: Appointment start time in ISO format
            reason: Reason for the appointment
        """
        return await asyncio.to_thread(self._tools.book_appointment, start_time, reason)

    @function_tool
    async def cancel_appointment(self) -> str:
        """Cancel the appointment that was booked earlier in this call."""
        return await asyncio.to_thread(self._tools.cancel_appointment)

    @function_tool
    async def get_practice_info(self, info_type: str) -> str:
        """Get information about the practice.

        Args:
            info_type: Type of information (hours, location, services, contact, noShowFee)
        """
        return self._tools.get_practice_info(info_type)


def business_id_from_metadata(*raw_metadata: str | None) -> str | None:
    """Return the first ``businessId`` found in the given JSON metadata blobs."""
    for raw in raw_metadata:
        if not raw:
            continue
        try:
            metadata = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed metadata: %r", raw)
            continue
        if isinstance(metadata, dict):
            business_id = metadata.get("businessId") or metadata.get("business_id")
            if business_id:
                return str(business_id)
    return None


def build_session(vad, config: BusinessConfig) -> AgentSession:
    """STT → LLM → TTS pipeline; STT goes through LiveKit Inference."""
    return AgentSession(
        vad=vad,
        stt=inference.STT(model=STT_MODEL, language=STT_LANGUAGE),
        llm=google.LLM(model=LLM_MODEL),
        tts=google.beta.GeminiTTS(model=TTS_MODEL, voice_name=config.agent.voice),
    )


def prewarm(proc: JobProcess) -> None:
    """Load the VAD model once per worker process.

    A failure here is re-raised: a worker that cannot detect speech must
    not accept calls.
    """
    logger.info("Loading Silero VAD")
    try:
        proc.userdata["vad"] = silero.VAD.load(
            min_speech_duration=0.05,
            min_silence_duration=0.5,
            prefix_padding_duration=0.3,
            activation_threshold=0.5,
        )
    except Exception:
        logger.exception("Failed to load VAD model")
        raise
    logger.info("VAD loaded")


async def entrypoint(ctx: JobContext) -> None:
    """Run one conversation.  Never raises: failures end the call, not the worker."""
    logger.info("Job started for room %s", ctx.room.name)
    try:
        await ctx.connect()
        logger.info("Connected to room")

        business_id = business_id_from_metadata(ctx.room.metadata, ctx.job.metadata)
        if business_id is None:
            logger.info("No businessId in metadata, falling back to the first business")

        config = await load_business_config(business_id)
        if config is None:
            logger.error("No business configuration available, ending call")
            return

        logger.info("Loaded configuration for %s (%s)", config.name, config.id)
        if not config.agent.is_complete:
            logger.error("Agent for %s has no name or greeting, ending call", config.id)
            return

        tools = BookingTools.for_business(config)

        async def _close_tools() -> None:
            tools.close()

        ctx.add_shutdown_callback(_close_tools)

        logger.info("Creating agent session with voice %s", config.agent.voice)
        session = build_session(ctx.proc.userdata["vad"], config)
        await session.start(agent=Receptionist(config, tools), room=ctx.room)

        logger.info("Session started, greeting caller")
        await session.say(config.agent.greeting)
        logger.debug("Greeting sent")
    except Exception:
        logger.exception("Call failed")
