"""
Control catalog derived from TSC mapping documents.

Control mapping files under controls/ use a heading/bullet layout:

    ## CC5 — Control Activities

    ### CC5.1 — Selection and Development of Control Activities
    - **What the auditor looks for**: documented risk mitigation
    - **Evidence types**: screenshot, log export
    - **Solo-company note**: ...
    - **Compensating control**: ...
    - **MCP discovery targets**: github, cloud

ControlParser turns that text into ControlEntry records. Entries are
recomputed on every query; nothing is cached.
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional

from ._types import DocumentType
from .documents import DocumentStore
from .evidence import MANIFEST_PATH
from .exceptions import NotFoundError
from .models import ControlEntry

logger = logging.getLogger(__name__)

_SEPARATOR = r"\s*[—–-]\s*"
CRITERIA_HEADING = re.compile(rf"^## ([A-Z]{{1,3}}\d+){_SEPARATOR}(.+)")
CONTROL_HEADING = re.compile(rf"^### ([A-Z]{{1,3}}\d+\.\d+(?:\.\d+)?){_SEPARATOR}(.+)")
ANY_CONTROL_HEADING = re.compile(r"^### ")

# Bullet label -> ControlEntry field
FIELD_PATTERNS = [
    (re.compile(r"\*\*What the auditor looks for\*\*:\s*(.+)"), "auditor_looks_for"),
    (re.compile(r"\*\*Evidence types\*\*:\s*(.+)"), "evidence_types"),
    (re.compile(r"\*\*Solo-company note\*\*:\s*(.+)"), "solo_company_note"),
    (re.compile(r"\*\*Compensating control\*\*:\s*(.+)"), "compensating_control"),
    (re.compile(r"\*\*MCP discovery targets\*\*:\s*(.+)"), "mcp_targets"),
]


class ParserState(str, Enum):
    OUTSIDE_CONTROL = "outside_control"
    INSIDE_CONTROL = "inside_control"


class ControlParser:
    """
    Single-pass line scanner with one pending-record slot.

    Criteria headings only move the ambient criteria. A control heading
    flushes the pending record and opens a new one. A ### heading whose ID
    does not parse flushes and drops back to OUTSIDE_CONTROL, so the
    bullets under it are ignored instead of landing on another control.
    """

    def __init__(self):
        self.state = ParserState.OUTSIDE_CONTROL
        self.current_criteria = ""
        self._pending: Optional[Dict[str, Any]] = None
        self._controls: List[ControlEntry] = []

    def feed(self, line: str) -> None:
        criteria_match = CRITERIA_HEADING.match(line)
        if criteria_match:
            self.current_criteria = criteria_match.group(1)
            return

        control_match = CONTROL_HEADING.match(line)
        if control_match:
            self._flush()
            self._pending = {
                "id": control_match.group(1),
                "name": control_match.group(2).strip(),
                "criteria": self.current_criteria,
                "evidence_types": [],
            }
            self.state = ParserState.INSIDE_CONTROL
            return

        if ANY_CONTROL_HEADING.match(line):
            self._flush()
            self.state = ParserState.OUTSIDE_CONTROL
            return

        if self.state == ParserState.INSIDE_CONTROL:
            self._collect_field(line)

    def finish(self) -> List[ControlEntry]:
        self._flush()
        self.state = ParserState.OUTSIDE_CONTROL
        return self._controls

    def _collect_field(self, line: str) -> None:
        for pattern, field_name in FIELD_PATTERNS:
            match = pattern.search(line)
            if not match:
                continue
            value = match.group(1).strip()
            if field_name == "evidence_types":
                self._pending[field_name] = [
                    item.strip() for item in value.split(",") if item.strip()
                ]
            else:
                self._pending[field_name] = value

    def _flush(self) -> None:
        pending, self._pending = self._pending, None
        if pending and pending.get("id"):
            self._controls.append(ControlEntry(**pending))


def parse_controls(content: str) -> List[ControlEntry]:
    """Extract control entries from one mapping document body."""
    parser = ControlParser()
    for line in content.splitlines():
        parser.feed(line)
    return parser.finish()


class ControlCatalog:
    """Queries over every control mapping document in the store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def load_all_controls(self) -> List[ControlEntry]:
        """
        Parse every controls/ document and concatenate the results.

        IDs are not deduplicated across documents.
        """
        controls: List[ControlEntry] = []
        for entry in await self.store.list_documents(DocumentType.CONTROLS):
            doc = await self.store.read_document(entry.path)
            parsed = parse_controls(doc.content)
            logger.debug(f"Parsed {len(parsed)} controls from {entry.relative_path}")
            controls.extend(parsed)
        return controls

    async def list_controls(self, criteria: Optional[str] = None) -> List[Dict[str, Any]]:
        """Summaries, optionally filtered by criteria group or ID prefix."""
        controls = await self.load_all_controls()
        if criteria:
            controls = [
                c for c in controls
                if c.criteria == criteria or c.id.startswith(criteria)
            ]

        return [
            {
                "id": c.id,
                "name": c.name,
                "criteria": c.criteria,
                "hasCompensatingControl": bool(c.compensating_control),
                "hasMcpTargets": bool(c.mcp_targets),
            }
            for c in controls
        ]

    async def get_control(self, control_id: str) -> ControlEntry:
        """
        First control with a matching ID.

        Raises:
            NotFoundError: Lists available IDs in the hint
        """
        controls = await self.load_all_controls()
        for control in controls:
            if control.id == control_id:
                return control

        available = ", ".join(c.id for c in controls) or "none"
        raise NotFoundError(
            f"control {control_id}",
            f"Available controls: {available}",
        )

    async def get_control_coverage(self) -> Dict[str, Any]:
        """
        How many controls are referenced by the evidence ledger.

        A control counts as covered when its ID appears anywhere in the
        manifest body. A missing manifest means nothing is covered.
        """
        controls = await self.load_all_controls()

        try:
            manifest_content = (await self.store.read_document(MANIFEST_PATH)).content
        except NotFoundError:
            manifest_content = ""

        covered_ids = {c.id for c in controls if c.id in manifest_content}

        by_criteria: Dict[str, Dict[str, int]] = {}
        for control in controls:
            bucket = by_criteria.setdefault(control.criteria, {"total": 0, "covered": 0})
            bucket["total"] += 1
            if control.id in covered_ids:
                bucket["covered"] += 1

        total = len(controls)
        covered = len(covered_ids)
        return {
            "total": total,
            "covered": covered,
            "uncovered": total - covered,
            "coveragePercent": int(covered * 100 / total + 0.5) if total else 0,
            "byCriteria": by_criteria,
            "uncoveredControls": [
                {"id": c.id, "name": c.name}
                for c in controls if c.id not in covered_ids
            ],
        }
