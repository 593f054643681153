"""
Live-signal checks against infrastructure providers.

Each check shells out to the provider's CLI through executor.exec_cli and
returns a tool payload: an InfraToolResult with per-control findings, or an
infra_error payload when the CLI is missing, unauthenticated or failing.
"""

from typing import Any, Optional, Sequence

from ..config import ComplianceConfig
from ..executor import exec_cli
from ..models import CliOutcome


async def run_cli(
    command: str,
    args: Sequence[str],
    config: Optional[ComplianceConfig] = None,
    parse_json: bool = True,
    **kwargs: Any,
) -> CliOutcome:
    """exec_cli with the timeout and output ceiling taken from config."""
    if config is not None:
        kwargs.setdefault("timeout_ms", config.cli_timeout_ms)
        kwargs.setdefault("max_buffer", config.cli_max_buffer)
    return await exec_cli(command, args, parse_json=parse_json, **kwargs)
