from __future__ import annotations

import logging

from ..browser_session import BrowserSession
from ..config import LensConfig
from ..console import ConsoleLog
from ..session_cdp import connect_first_page
from .base import AutomationHandler
from .driver_session import DriverSessionHandler
from .script_injection import CdpPageSurface, ScriptInjectionHandler

logger = logging.getLogger("mcp.lens.handlers")


def open_page_session(config: LensConfig) -> BrowserSession:
    conn, target = connect_first_page(config)
    return BrowserSession(conn, target_id=str(target.get("id") or ""), url=str(target.get("url") or ""))


def select_handler(
    config: LensConfig,
    console: ConsoleLog,
    *,
    session: BrowserSession | None = None,
) -> AutomationHandler:
    """Build the backend named by ``config.backend`` over a page session."""
    backend = LensConfig.normalize_backend(config.backend)
    page = session if session is not None else open_page_session(config)
    if backend == "script":
        surface = CdpPageSurface(page, console=console, load_timeout=config.cdp_timeout)
        handler: AutomationHandler = ScriptInjectionHandler(surface, console)
    else:
        handler = DriverSessionHandler(page, console, load_timeout=config.cdp_timeout)
    logger.info("Automation backend: %s (page %s)", handler.name, page.target_id or page.url or "?")
    return handler


__all__ = ["open_page_session", "select_handler"]
