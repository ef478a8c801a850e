"""Dental Voice Receptionist — a LiveKit voice agent for dental practices.

Architecture Overview
=====================

Each incoming call is a LiveKit job.  The job reads the ``businessId`` from
the room metadata, loads that practice's configuration from Supabase and
starts a voice session (Silero VAD → Deepgram STT via LiveKit Inference →
Gemini LLM → Gemini TTS) with:

1. **instructions** — a per-practice system prompt (persona, today's date,
   booking procedure, hours, address, services, no-show fee).
2. **tools** — patient lookup/registration, availability, booking and
   cancellation against the practice's NexHealth account.

Key Design Decisions
--------------------
- **Multi-tenant by config, not by code**: everything practice-specific
  comes from the ``businesses`` and ``business_agents`` tables.
- **Forgiving config load**: unknown business ids fall back to the first
  business; a 10 s timeout bounds the lookup; failures end the call but
  never the worker.
- **NexHealth auth**: the API key is exchanged for a bearer token that is
  cached for 55 minutes (the provider honours 60) by one client per call.
- **Voice-safe tools**: every tool returns a sentence, never an exception,
  and never reads the patient's name back.

Package Structure
-----------------
- ``src/agent.py`` — LiveKit ``Agent`` with tools, prewarm and entrypoint
- ``src/main.py`` — worker launcher (``python -m src.main dev``)
- ``src/config.py`` — configuration from env / ``.env`` / SSM
- ``src/prompts.py`` — instruction template
- ``src/server.py`` — FastAPI diagnostics app
- ``src/services/`` — Supabase config loader, NexHealth client, metrics
- ``src/tools/`` — tool implementations (booking, practice info)
- ``src/api/`` — diagnostics routes and Pydantic schemas
"""
