"""
Evidence model and ledger.

Live-signal checks produce InfraToolResult via build_result(). Evidence
artifacts are filed under evidence/<category>/[<subcategory>/] and mapped to
controls in the ledger, evidence/manifest.md, whose body holds a markdown
table:

    | Control | Evidence | Method | Date | Status |
    |---------|----------|--------|------|--------|
    | CC5.1   | automated/github/branch-protection.json | MCP: github | 2026-10-19 | ✅ |

    ## Collection Summary
    ...

New rows are spliced into the text just above the summary heading. The
ledger is the one document many call sites write, so writers race and the
last write wins.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Union

from ._types import (
    EVIDENCE_SYMBOLS,
    ContentType,
    DocumentType,
    EvidenceCategory,
    EvidenceStatus,
    today,
)
from .exceptions import NotFoundError
from .models import (
    EvidenceLedgerRow,
    Finding,
    InfraToolResult,
    ParsedDocument,
)

logger = logging.getLogger(__name__)

MANIFEST_PATH = "evidence/manifest.md"
MANIFEST_ID = "EV-MANIFEST"
MANIFEST_TITLE = "Evidence Manifest"
MANIFEST_MISSING_HINT = "Evidence manifest not found. Run /compliance-init to create it."

SUMMARY_HEADING = re.compile(r"^## Collection Summary", re.MULTILINE)


def build_result(
    source: str,
    tool: str,
    controls: List[str],
    data: Any,
    findings: Optional[List[Union[Finding, Dict[str, Any]]]] = None,
) -> InfraToolResult:
    """Assemble the uniform live-signal result, stamped with today's date."""
    return InfraToolResult(
        source=source,
        tool=tool,
        tsc_controls=list(controls),
        collected_at=today(),
        data=data,
        findings=findings or [],
    )


def append_evidence_row(content: str, row: Union[EvidenceLedgerRow, str]) -> str:
    """
    Splice a table row into ledger body text.

    The row goes directly under the last non-blank line above the first
    "## Collection Summary" heading, keeping the blank separator before the
    heading. Without the heading it goes after the last non-blank line.
    """
    line = row.render() if isinstance(row, EvidenceLedgerRow) else row

    match = SUMMARY_HEADING.search(content)
    if match is None:
        body = content.rstrip()
        return f"{body}\n{line}" if body else line

    head = content[:match.start()]
    table = head.rstrip()
    gap = head[len(table):] or "\n"
    prefix = f"{table}\n{line}" if table else line
    return f"{prefix}{gap}{content[match.start():]}"


def count_statuses(content: str) -> Dict[str, int]:
    """Number of collected/pending/expired symbols in ledger text."""
    return {
        status.value: content.count(symbol)
        for status, symbol in EVIDENCE_SYMBOLS.items()
    }


class EvidenceLedger:
    """
    Evidence artifacts and the manifest that maps them to controls.

    Built on a DocumentStore; every call re-reads the manifest.
    """

    def __init__(self, store):
        """
        Initialize ledger.

        Args:
            store: DocumentStore rooted at the compliance directory
        """
        self.store = store

    async def get_manifest(self) -> ParsedDocument:
        """
        Read the ledger document.

        Raises:
            NotFoundError: If evidence/manifest.md does not exist
        """
        try:
            return await self.store.read_document(MANIFEST_PATH)
        except NotFoundError as e:
            raise NotFoundError(MANIFEST_PATH, MANIFEST_MISSING_HINT) from e

    async def map_evidence_to_control(
        self,
        control_id: str,
        evidence_file: str,
        collection_method: str,
        status: Union[EvidenceStatus, str] = EvidenceStatus.COLLECTED,
    ) -> EvidenceLedgerRow:
        """
        Append a ledger row linking an artifact to a control.

        Raises:
            NotFoundError: If the manifest does not exist yet
        """
        manifest = await self.get_manifest()

        row = EvidenceLedgerRow(
            control_id=control_id,
            evidence_file=evidence_file,
            collection_method=collection_method,
            status=EvidenceStatus(status),
        )
        content = append_evidence_row(manifest.content, row)

        await self.store.write_document(
            MANIFEST_PATH,
            {**manifest.metadata, "last_updated": today()},
            content,
        )
        logger.info(f"Mapped evidence '{evidence_file}' to control {control_id}")
        return row

    async def update_manifest(self, content: str) -> Dict[str, Any]:
        """Replace the ledger body, creating the manifest if needed."""
        try:
            existing = (await self.store.read_document(MANIFEST_PATH)).metadata
        except NotFoundError:
            existing = {}

        metadata = {
            **existing,
            "id": MANIFEST_ID,
            "title": MANIFEST_TITLE,
            "last_updated": today(),
        }
        await self.store.write_document(MANIFEST_PATH, metadata, content)
        logger.info("Evidence manifest updated")
        return metadata

    async def store_evidence(
        self,
        category: Union[EvidenceCategory, str],
        filename: str,
        content: str,
        content_type: Union[ContentType, str] = ContentType.MARKDOWN,
        subcategory: Optional[str] = None,
        control_ids: Optional[List[str]] = None,
    ) -> str:
        """
        File an evidence artifact.

        Markdown artifacts get front matter (draft status, collected_date,
        tsc_criteria); other content types are written verbatim.

        Returns:
            Path relative to the evidence/ directory
        """
        category = EvidenceCategory(category)
        content_type = ContentType(content_type)

        parts = [category.value]
        if subcategory:
            parts.append(subcategory)
        parts.append(filename)
        relative = "/".join(parts)
        target = f"{DocumentType.EVIDENCE.value}/{relative}"

        if content_type == ContentType.MARKDOWN:
            metadata: Dict[str, Any] = {
                "title": re.sub(r"\.md$", "", filename),
                "status": "draft",
                "collected_date": today(),
            }
            if control_ids:
                metadata["tsc_criteria"] = list(control_ids)
            await self.store.write_document(target, metadata, content)
        else:
            await self.store.write_artifact(target, content)

        logger.info(f"Stored evidence: {target}")
        return relative

    async def list_evidence(
        self,
        category: Optional[Union[EvidenceCategory, str]] = None,
        control_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Markdown evidence artifacts, optionally by category or control."""
        entries = [
            e for e in await self.store.list_documents(DocumentType.EVIDENCE)
            if e.relative_path != MANIFEST_PATH
        ]

        if category:
            prefix = f"{DocumentType.EVIDENCE.value}/{EvidenceCategory(category).value}/"
            entries = [e for e in entries if e.relative_path.startswith(prefix)]

        if control_id:
            entries = [
                e for e in entries
                if isinstance(e.metadata.get("tsc_criteria"), list)
                and control_id in e.metadata["tsc_criteria"]
            ]

        return [
            {
                "path": e.relative_path,
                "title": e.metadata.get("title") or e.relative_path,
                "status": e.metadata.get("status"),
                "controls": e.metadata.get("tsc_criteria") or [],
                "collected": e.metadata.get("collected_date"),
            }
            for e in entries
        ]

    async def status_counts(self) -> Dict[str, int]:
        """Ledger status symbol counts; zeros when there is no manifest."""
        try:
            manifest = await self.store.read_document(MANIFEST_PATH)
        except NotFoundError:
            return count_statuses("")
        return count_statuses(manifest.content)

