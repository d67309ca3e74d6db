"""Automation backends bound to the Bridge.

- base: AutomationHandler contract and value types
- page_queries: DOM reads shared by both backends
- script_injection: stateless backend running query scripts in the page
- driver_session: live DevTools-session backend with real input
- selection: backend choice from configuration
"""

from __future__ import annotations

from .base import AutomationHandler, BoundingBox, ElementDescriptor, SessionState
from .driver_session import DriverSessionHandler
from .script_injection import CdpPageSurface, PageSurface, ScriptInjectionHandler
from .selection import select_handler

__all__ = [
    "AutomationHandler",
    "BoundingBox",
    "CdpPageSurface",
    "DriverSessionHandler",
    "ElementDescriptor",
    "PageSurface",
    "ScriptInjectionHandler",
    "SessionState",
    "select_handler",
]
