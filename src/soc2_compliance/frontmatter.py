"""
Front matter codec for compliance documents.

A document is UTF-8 markdown with an optional YAML header:

    ---
    id: POL-001
    title: Access Control Policy
    status: draft
    tsc_criteria:
      - CC6.1
    ---

    # Access Control Policy
    ...

parse_document() and serialize_document() are inverses for the metadata
mapping and for the stripped body text.
"""

import asyncio
import re
from pathlib import Path
from typing import Any, Dict

import yaml

from .exceptions import ParseError
from .models import ParsedDocument

_HEADER_RE = re.compile(
    r"\A\ufeff?---[ \t]*\r?\n(?P<header>.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class _MetadataLoader(yaml.SafeLoader):
    """Safe loader that keeps ISO dates as plain strings."""


_MetadataLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def parse_document(raw: str) -> ParsedDocument:
    """
    Split raw document text into metadata and body.

    Args:
        raw: Full file text

    Returns:
        ParsedDocument with metadata ({} when there is no header),
        stripped content and the original text

    Raises:
        ParseError: If the header is not valid YAML or not a mapping
    """
    match = _HEADER_RE.match(raw)
    if not match:
        return ParsedDocument(metadata={}, content=raw.strip(), raw=raw)

    try:
        data = yaml.load(match.group("header"), Loader=_MetadataLoader)
    except yaml.YAMLError as e:
        raise ParseError(str(e)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError(f"header must be a mapping, got {type(data).__name__}")

    return ParsedDocument(
        metadata=data,
        content=raw[match.end():].strip(),
        raw=raw,
    )


def serialize_document(metadata: Dict[str, Any], content: str) -> str:
    """Render metadata and body back to document text."""
    header = ""
    if metadata:
        header = yaml.safe_dump(
            metadata,
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )
    return f"---\n{header}---\n\n{content.strip()}\n"


async def read_document(path: Path) -> ParsedDocument:
    """
    Read and parse a document (async).

    Raises:
        FileNotFoundError: If the file doesn't exist
        ParseError: If the header is malformed (path attached)
    """
    raw = await asyncio.to_thread(_read_text_sync, path)
    try:
        return parse_document(raw)
    except ParseError as e:
        raise ParseError(e.reason, path) from e


async def write_document(path: Path, metadata: Dict[str, Any], content: str) -> None:
    """Serialize and write a document (async), creating parent directories."""
    await asyncio.to_thread(write_text, path, serialize_document(metadata, content))


def _read_text_sync(path: Path) -> str:
    """Synchronous read helper."""
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def write_text(path: Path, text: str) -> None:
    """Write text as UTF-8, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)
