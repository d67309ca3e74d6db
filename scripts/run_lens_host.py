#!/usr/bin/env python3
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

print(
    f"[lens] cdp_port={os.environ.get('MCP_BROWSER_PORT', '9222')} | "
    f"backend={os.environ.get('MCP_LENS_BACKEND', 'driver')} | "
    f"bridge_port={os.environ.get('MCP_LENS_BRIDGE_PORT', '9333')} | "
    f"catalog_port={os.environ.get('MCP_LENS_CATALOG_PORT', '3333')}",
    file=sys.stderr,
)

from mcp_servers.lens.host import main  # noqa: E402

if __name__ == "__main__":
    main()
