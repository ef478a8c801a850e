"""FastAPI route definitions for the diagnostics API.

These endpoints let operators check a deployed worker without placing a
call: which secrets it sees, and which business and instructions a call
for a given ``businessId`` would end up with.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from src import config
from src.api.schemas import HealthResponse, InstructionsResponse
from src.prompts import build_instructions
from src.services.business_config import BusinessConfigLoader

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_loader(request: Request) -> BusinessConfigLoader:
    """Retrieve the config loader created by the FastAPI lifespan."""
    loader = getattr(request.app.state, "config_loader", None)
    if loader is None:
        raise HTTPException(
            status_code=503,
            detail="The service is still starting up. Please try again in a moment.",
        )
    return loader


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        supabase_configured=bool(config.SUPABASE_URL and config.SUPABASE_SERVICE_ROLE_KEY),
        nexhealth_configured=bool(config.NEXHEALTH_API_KEY),
    )


@router.get("/businesses/{business_id}/instructions", response_model=InstructionsResponse)
async def business_instructions(business_id: str, http_request: Request):
    """Resolve *business_id* the way a call would and render its instructions.

    The loader falls back to the first available business, so the
    response names the business that was actually used.
    Instructions are only rendered once the agent has a name and greeting.
    """
    loader = _get_loader(http_request)
    request_id = getattr(http_request.state, "request_id", "?")

    business = await loader.load(business_id)
    if business is None:
        logger.error("[%s] No business config available for %s", request_id, business_id)
        raise HTTPException(status_code=404, detail="No business configuration could be loaded.")

    if business.id != business_id:
        logger.warning("[%s] Business %s not found, resolved to %s", request_id, business_id, business.id)

    return InstructionsResponse(
        business_id=business.id,
        business_name=business.name,
        pms_provider=business.pms_provider,
        agent_name=business.agent.agent_name,
        agent_ready=business.agent.is_complete,
        instructions=build_instructions(business) if business.agent.is_complete else None,
    )
