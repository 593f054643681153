"""
Utility functions for the compliance toolkit.

Includes:
- Logging setup
- JSON rendering of tool payloads
"""

import json
import logging
import sys
from typing import Any, Dict


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging for the toolkit.

    Logs go to stderr; stdout carries the JSON-RPC stream.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )


def to_json(data: Any) -> str:
    """Pretty-printed JSON as returned to tool callers."""
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def text_response(payload: Any, is_error: bool = False) -> Dict[str, Any]:
    """
    Wrap a payload as a single text content block.

    Strings are passed through; anything else is rendered as JSON.
    """
    text = payload if isinstance(payload, str) else to_json(payload)
    response: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        response["isError"] = True
    return response
