"""
Host runner: owns the page, binds a backend to the Bridge, serves the catalog.

Attaches to an already running Chrome (``--remote-debugging-port``). While no
page is reachable the Bridge stays up and answers ``NotConnected``; the host
keeps retrying and re-attaches when the page connection drops.
"""

from __future__ import annotations

import contextlib
import logging
import sys
import threading
from collections.abc import Callable

from .bridge.server import BridgeServer
from .config import LensConfig
from .console import ConsoleLog
from .errors import PortUnavailableError
from .handlers.base import AutomationHandler
from .handlers.selection import select_handler
from .server.catalog import ToolCatalogServer

logger = logging.getLogger("mcp.lens")

HandlerFactory = Callable[[], AutomationHandler]

ATTACH_INTERVAL_S = 2.0


class LensHost:
    def __init__(self, config: LensConfig | None = None, *, handler_factory: HandlerFactory | None = None) -> None:
        self.config = config or LensConfig.from_env()
        self.console = ConsoleLog(self.config.console_capacity)
        self.bridge = BridgeServer(self.config)
        self.catalog = ToolCatalogServer(self.config, handler_source=self.bridge.get_handler, console=self.console)
        self._handler_factory = handler_factory or (lambda: select_handler(self.config, self.console))
        self._stop = threading.Event()
        self._last_attach_error: str | None = None

    def start(self) -> None:
        """Bind both servers, then try to attach a page. Raises PortUnavailableError."""
        bridge_port = self.bridge.start()
        try:
            catalog_port = self.catalog.start()
        except Exception:
            self.bridge.stop()
            raise
        logger.info(
            "lens host ready: bridge=%s:%s catalog=%s:%s backend=%s",
            self.config.host,
            bridge_port,
            self.config.host,
            catalog_port,
            self.config.backend,
        )
        self.attach()

    def attach(self) -> bool:
        try:
            handler = self._handler_factory()
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or exc.__class__.__name__
            # Log once per distinct failure; the supervisor retries quietly.
            if message != self._last_attach_error:
                logger.warning("no page attached (%s); retrying every %.0fs", message, ATTACH_INTERVAL_S)
                self._last_attach_error = message
            return False
        self._last_attach_error = None
        previous = self.bridge.set_handler(handler)
        if previous is not None and previous is not handler:
            with contextlib.suppress(Exception):
                previous.close()
        return True

    def detach(self) -> None:
        previous = self.bridge.set_handler(None)
        if previous is not None:
            with contextlib.suppress(Exception):
                previous.close()

    def supervise_once(self) -> None:
        """Attach when unbound; re-attach when the bound page stopped answering."""
        handler = self.bridge.get_handler()
        if handler is None:
            self.attach()
            return
        try:
            handler.current_url()
        except Exception as exc:  # noqa: BLE001
            logger.warning("page connection lost (%s); re-attaching", exc)
            self.detach()
            self.attach()

    def run_forever(self, interval: float = ATTACH_INTERVAL_S) -> None:
        while not self._stop.wait(interval):
            self.supervise_once()

    def stop(self) -> None:
        self._stop.set()
        self.detach()
        self.catalog.stop()
        self.bridge.stop()
        logger.info("lens host stopped")


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    host = LensHost()
    try:
        host.start()
    except PortUnavailableError as exc:
        logger.error("%s (is another lens host running?)", exc.strerror)
        sys.exit(1)
    try:
        host.run_forever()
    except KeyboardInterrupt:
        pass
    finally:
        host.stop()


if __name__ == "__main__":
    main()
