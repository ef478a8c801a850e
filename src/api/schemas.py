"""Pydantic schemas for the diagnostics API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response, including which secrets are configured."""

    status: str = "ok"
    service: str = "dental-voice-agent"
    supabase_configured: bool = Field(..., description="Supabase URL and service key are set")
    nexhealth_configured: bool = Field(..., description="NexHealth API key is set")


class InstructionsResponse(BaseModel):
    """The instructions a call for this business would start with."""

    business_id: str = Field(..., description="The business the loader actually resolved")
    business_name: str
    pms_provider: str | None = None
    agent_name: str | None = None
    agent_ready: bool = Field(..., description="Agent name and greeting are both configured")
    instructions: str | None = Field(None, description="Omitted until the agent is ready to take calls")
