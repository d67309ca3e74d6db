#!/usr/bin/env python3
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

print(
    f"[mcp] bridge={os.environ.get('MCP_LENS_HOST', '127.0.0.1')}:{os.environ.get('MCP_LENS_BRIDGE_PORT', '9333')} | "
    f"allow_origins={os.environ.get('MCP_LENS_ALLOW_ORIGINS', '') or 'loopback only'}",
    file=sys.stderr,
)

from mcp_servers.lens.main import main  # noqa: E402

if __name__ == "__main__":
    main()
