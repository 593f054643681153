"""
Compliance toolkit server: stdio JSON-RPC 2.0 loop.

One request per line on stdin, one response per line on stdout. Logging
goes to stderr.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict

from . import __version__
from .config import ComplianceConfig, load_config
from .tools import ToolRegistry
from .utils import setup_logging, text_response

logger = logging.getLogger(__name__)

SERVER_NAME = "soc2-compliance"
PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601


class ComplianceServer:
    """Routes JSON-RPC requests to the tool registry."""

    def __init__(self, config: ComplianceConfig):
        self.config = config
        self.registry = ToolRegistry(config)

    async def handle_rpc(self, req: Dict[str, Any]) -> Dict[str, Any]:
        """Route a single JSON-RPC request."""
        rpc_id = req.get("id")
        method = req.get("method", "")
        params = req.get("params") or {}
        if not isinstance(params, dict):
            params = {}

        if method == "initialize":
            return self._rpc_ok(rpc_id, {
                "protocolVersion": PROTOCOL_VERSION,
                "serverInfo": {"name": SERVER_NAME, "version": __version__},
                "capabilities": {"tools": {}},
            })

        if method == "tools/list":
            return self._rpc_ok(rpc_id, {"tools": self.registry.list_tools()})

        if method == "tools/call":
            name = params.get("name", "")
            arguments = params.get("arguments") or {}
        elif method in self.registry.tools:
            name, arguments = method, params
        else:
            return {
                "jsonrpc": "2.0",
                "id": rpc_id,
                "error": {"code": METHOD_NOT_FOUND, "message": f"Method not found: {method}"},
            }

        try:
            result = await self.registry.call(name, arguments)
        except Exception as e:
            logger.exception(f"Unhandled error in {name}")
            result = text_response(
                {
                    "ok": False,
                    "error": {
                        "code": "E_INTERNAL",
                        "message": "Unhandled server error.",
                        "details": {"exception": str(e)},
                    },
                },
                is_error=True,
            )
        return self._rpc_ok(rpc_id, result)

    def _rpc_ok(self, rpc_id: Any, result: Any) -> Dict[str, Any]:
        return {"jsonrpc": "2.0", "id": rpc_id, "result": result}

    async def handle_line(self, line: str) -> Dict[str, Any]:
        """Decode one input line and handle it."""
        try:
            req = json.loads(line)
        except json.JSONDecodeError:
            return {
                "jsonrpc": "2.0",
                "id": None,
                "error": {"code": PARSE_ERROR, "message": "Parse error"},
            }
        if not isinstance(req, dict):
            return {
                "jsonrpc": "2.0",
                "id": None,
                "error": {"code": PARSE_ERROR, "message": "Parse error"},
            }
        return await self.handle_rpc(req)

    async def serve(self, stdin=None, stdout=None) -> None:
        """Read requests until EOF."""
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout

        logger.info(f"{SERVER_NAME} {__version__} serving on stdio")
        while True:
            line = await asyncio.to_thread(stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue

            resp = await self.handle_line(line)
            stdout.write(json.dumps(resp, ensure_ascii=False) + "\n")
            stdout.flush()

        logger.info("stdin closed, shutting down")


def main() -> None:
    """Entry point: load config, run the stdio loop."""
    config = load_config()
    setup_logging(config.log_level)

    root = config.compliance_root or "./compliance"
    logger.info(f"Compliance root: {root}")

    try:
        asyncio.run(ComplianceServer(config).serve())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
