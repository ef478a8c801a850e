"""Worker entry point for the dental voice receptionist.

Registers the agent with LiveKit and waits for calls.

Usage:
    python -m src.main dev      # development mode (auto-reload)
    python -m src.main start    # production mode
    LOG_LEVEL=DEBUG python -m src.main dev   # show HTTP requests too
"""

from __future__ import annotations

import logging

from livekit.agents import WorkerOptions, cli

from src.agent import entrypoint, prewarm
from src.config import LOG_LEVEL

# Loading the VAD model can be slow on a cold container.
INITIALIZE_PROCESS_TIMEOUT_SECONDS = 60.0


def _configure_logging(level: str = LOG_LEVEL) -> None:
    """Root logging at *level*; HTTP client chatter only when debugging."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if level != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def main() -> None:
    _configure_logging()
    cli.run_app(
        WorkerOptions(
            entrypoint_fnc=entrypoint,
            prewarm_fnc=prewarm,
            initialize_process_timeout=INITIALIZE_PROCESS_TIMEOUT_SECONDS,
        )
    )


if __name__ == "__main__":
    main()
