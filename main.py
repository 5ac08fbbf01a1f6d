"""
Support orchestrator entry point.

Serves the HTTP API, opens the offline console playground, or runs the
judge harness.

Usage:
    API server:   python main.py serve
    Console mode: python main.py console
    Judge run:    python main.py judge --verbose
"""

import logging
import sys

from support_mas.config import settings

logger = logging.getLogger(__name__)


def _run_server() -> None:
    """Start the FastAPI app under uvicorn with the offline collaborators."""
    import uvicorn

    from support_mas.api.app import create_app

    logger.info("Starting API on %s:%d", settings.api.host, settings.api.port)
    uvicorn.run(
        create_app(),
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower(),
    )


def _run_console_mode(argv: list[str]) -> None:
    """Start the offline console playground (no API keys required)."""
    from console_demo import main as console_main

    console_main(argv)


def _run_judge(argv: list[str]) -> int:
    from support_mas.evaluation.run_eval import main as judge_main

    return judge_main(argv)


if __name__ == "__main__":
    mode = sys.argv[1] if len(sys.argv) > 1 else "serve"
    rest = sys.argv[2:]
    if mode == "console":
        _run_console_mode(rest)
    elif mode == "judge":
        sys.exit(_run_judge(rest))
    elif mode == "serve":
        _run_server()
    else:
        sys.stderr.write(f"Unknown mode: {mode}. Use serve, console or judge.\n")
        sys.exit(2)
