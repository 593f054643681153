"""
External CLI execution for live-signal checks.

Every infrastructure tool (gh, aws, gcloud, gam, terraform, ...) fails in
its own way. exec_cli() folds them into one outcome:

- CliSuccess: exit 0, stdout/stderr captured, stdout JSON-decoded if asked
- CliError(not_installed): executable not on PATH (probed before running)
- CliError(timeout): deadline or output ceiling exceeded, process killed
- CliError(exec_error): non-zero exit or spawn failure
- CliError(not_authenticated): never produced here, reserved for callers

Commands are spawned with an argument vector, never through a shell.
"""

import asyncio
import csv
import io
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .models import CliError, CliOutcome, CliSuccess, InfraToolResult
from .utils import text_response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30000
MAX_BUFFER = 10 * 1024 * 1024
_READ_CHUNK = 64 * 1024


class OutputLimitExceeded(Exception):
    """The process produced more than the allowed number of bytes."""


class _Capture:
    """Output read so far from both streams, bounded by a combined ceiling."""

    def __init__(self, max_buffer: int):
        self.max_buffer = max_buffer
        self.stdout = bytearray()
        self.stderr = bytearray()

    def add(self, buffer: bytearray, chunk: bytes) -> None:
        buffer.extend(chunk)
        if len(self.stdout) + len(self.stderr) > self.max_buffer:
            raise OutputLimitExceeded(len(self.stdout) + len(self.stderr))

    def partial_stderr(self) -> Optional[str]:
        return self.stderr.decode('utf-8', errors='replace') or None


async def cli_available(command: str, env: Optional[Mapping[str, str]] = None) -> bool:
    """
    Check whether an executable can be found on PATH.

    Honors a PATH supplied in the env overlay.
    """
    search_path = (env or {}).get("PATH") or os.environ.get("PATH")
    found = await asyncio.to_thread(shutil.which, command, path=search_path)
    logger.debug(f"PATH probe for {command}: {found or 'missing'}")
    return found is not None


async def exec_cli(
    command: str,
    args: Sequence[str],
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    parse_json: bool = True,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Union[str, Path]] = None,
    max_buffer: int = MAX_BUFFER,
) -> CliOutcome:
    """
    Run an external command and classify the outcome.

    Args:
        command: Executable name or path
        args: Argument vector (not shell-interpreted)
        timeout_ms: Hard deadline; the process is killed when it expires
        parse_json: Decode stdout as JSON into CliSuccess.parsed
        env: Variables overlaid on the current environment
        cwd: Working directory for the process
        max_buffer: Combined stdout and stderr ceiling in bytes

    Returns:
        CliSuccess or CliError; never raises for process failures
    """
    if not await cli_available(command, env):
        return CliError(
            error="not_installed",
            message=(
                f"{command} CLI not found on PATH. Install it and authenticate "
                f"before using infrastructure tools."
            ),
        )

    process_env = {**os.environ, **(env or {})}
    argv = [command, *args]
    logger.info(f"Running {command} {' '.join(args)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=process_env,
            cwd=str(cwd) if cwd is not None else None,
        )
    except OSError as e:
        logger.warning(f"Failed to start {command}: {e}")
        return CliError(
            error="exec_error",
            message=f"{command} command failed: {e}",
            stderr=str(e),
        )

    capture = _Capture(max_buffer)
    try:
        await asyncio.wait_for(
            _collect_output(process, capture),
            timeout=timeout_ms / 1000,
        )
    except asyncio.TimeoutError:
        await _kill(process)
        logger.warning(f"{command} timed out after {timeout_ms}ms")
        return CliError(
            error="timeout",
            message=f"{command} command timed out after {timeout_ms}ms.",
            stderr=capture.partial_stderr(),
        )
    except OutputLimitExceeded:
        await _kill(process)
        logger.warning(f"{command} exceeded output limit of {max_buffer} bytes")
        return CliError(
            error="timeout",
            message=f"{command} command produced more than {max_buffer} bytes of output.",
            stderr=capture.partial_stderr(),
        )

    stdout = capture.stdout.decode('utf-8', errors='replace')
    stderr = capture.stderr.decode('utf-8', errors='replace')

    if process.returncode != 0:
        logger.warning(f"{command} exited with code {process.returncode}")
        return CliError(
            error="exec_error",
            message=f"{command} command failed: {stderr.strip() or f'exit code {process.returncode}'}",
            stderr=stderr,
            exit_code=process.returncode,
        )

    parsed: Any = None
    if parse_json and stdout.strip():
        try:
            parsed = json.loads(stdout)
        except ValueError:
            logger.debug(f"{command} stdout is not JSON")
            parsed = None

    return CliSuccess(stdout=stdout, stderr=stderr, parsed=parsed)


async def _collect_output(process: asyncio.subprocess.Process, capture: _Capture) -> None:
    """Drain stdout and stderr concurrently, then wait for exit."""
    await asyncio.gather(
        _drain(process.stdout, capture, capture.stdout),
        _drain(process.stderr, capture, capture.stderr),
    )
    await process.wait()


async def _drain(stream: Optional[asyncio.StreamReader], capture: _Capture, buffer: bytearray) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        capture.add(buffer, chunk)


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Hard-kill a process and reap it."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


def parse_csv(text: str, delimiter: str = ",") -> List[Dict[str, str]]:
    """
    Decode delimited text with a header row into one dict per row.

    Missing trailing cells become "", surplus cells are dropped.
    """
    if not text.strip():
        return []

    reader = csv.DictReader(io.StringIO(text.strip()), delimiter=delimiter, restval="")
    rows: List[Dict[str, str]] = []
    for row in reader:
        row.pop(None, None)
        rows.append(row)
    return rows


# ============================================================================
# Tool payload helpers
# ============================================================================

AUTH_HELP = (
    "Run the appropriate auth command (e.g., 'gh auth login', "
    "'aws configure', 'gcloud auth login')."
)


def infra_response(result: InfraToolResult) -> Dict[str, Any]:
    """Render a live-signal result as a tool payload."""
    return text_response(result.model_dump())


def infra_error(source: str, tool: str, error: CliError) -> Dict[str, Any]:
    """Render a CLI failure with remediation help where we have some."""
    help_text = None
    if error.error == "not_installed":
        help_text = f"Install the {source} CLI and authenticate before using this tool."
    elif error.error == "not_authenticated":
        help_text = AUTH_HELP

    return text_response(
        {
            "source": source,
            "tool": tool,
            "error": error.error,
            "message": error.message,
            "help": help_text,
        },
        is_error=True,
    )
