"""Run the reconciliation controller in the foreground."""

import asyncio

from evsrc.application.controller import run_controller
from evsrc.cli.console import get_console
from evsrc.config import Config


def controller() -> None:
    """Reconcile all stored sources until interrupted (Ctrl+C)."""
    config = Config()  # type: ignore[call-arg]
    console = get_console()
    console.info(f"Database: {config.database.url}")
    console.info(f"Secrets: {config.secrets.directory}")
    asyncio.run(run_controller(config))
