"""Observability - Logfire configuration.

The router and the agent loop emit Logfire spans and logs directly
(``logfire.span`` / ``logfire.info``); span attributes come from each
outcome's ``to_logfire_attributes()``. Call ``configure_observability`` once at
the entry-point of the host application.
"""

from __future__ import annotations

import logfire

from .config import Settings, get_settings


def configure_observability(settings: Settings | None = None) -> None:
    """Configure Logfire for the current process.

    With LOGFIRE_SEND="if-token-present" (default) data is only exported when a
    LOGFIRE_TOKEN is available; console output follows LOG_LEVEL.
    """
    settings = settings or get_settings()
    logfire.configure(
        service_name=settings.app_name,
        environment=settings.environment,
        send_to_logfire=settings.logfire_send,
        console=logfire.ConsoleOptions(min_log_level=settings.log_level.lower()),
    )


__all__ = ["configure_observability"]
