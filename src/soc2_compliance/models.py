"""
Data models for the compliance toolkit.

Documents, control entries, live-signal findings, evidence ledger rows and
the process invocation outcomes all live here so that checks, stores and
tool handlers speak one vocabulary.
"""

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ._types import (
    CliErrorKind,
    DocumentStatus,
    DocumentType,
    EvidenceStatus,
    FindingStatus,
    today,
)


# ============================================================================
# Documents
# ============================================================================


class DocumentMetadata(BaseModel):
    """
    Typed view over a document's front matter.

    The recognized fields are optional and any other key is kept as an
    extra field (assessment_date, collected_date, risk_tier, ...).
    """
    model_config = ConfigDict(extra='allow', use_enum_values=True)

    id: Optional[str] = None
    title: Optional[str] = None
    status: Optional[DocumentStatus] = None
    version: Optional[str] = None
    owner: Optional[str] = None
    tsc_criteria: Optional[List[str]] = None
    last_reviewed: Optional[str] = None
    next_review: Optional[str] = None
    last_updated: Optional[str] = None

    def to_metadata(self) -> Dict[str, Any]:
        """Plain mapping for the codec, omitting unset fields."""
        return self.model_dump(exclude_none=True)


class ParsedDocument(BaseModel):
    """A document split into front matter and body."""

    metadata: Dict[str, Any] = Field(default_factory=dict)
    content: str = ""
    raw: str = ""

    @property
    def typed(self) -> DocumentMetadata:
        return DocumentMetadata.model_validate(self.metadata)


class DocumentEntry(BaseModel):
    """A listed document: where it lives and what its header says."""
    model_config = ConfigDict(use_enum_values=True)

    path: Path
    relative_path: str
    type: DocumentType
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def summary(self) -> Dict[str, Any]:
        return {
            "path": self.relative_path,
            "title": self.metadata.get("title") or self.relative_path,
            "status": self.metadata.get("status") or "unknown",
            "id": self.metadata.get("id") or "none",
        }


# ============================================================================
# Controls
# ============================================================================


class ControlEntry(BaseModel):
    """One control parsed out of a TSC mapping document."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    criteria: str = ""
    auditor_looks_for: str = Field(default="", alias="auditorLooksFor")
    evidence_types: List[str] = Field(default_factory=list, alias="evidenceTypes")
    solo_company_note: Optional[str] = Field(default=None, alias="soloCompanyNote")
    compensating_control: Optional[str] = Field(default=None, alias="compensatingControl")
    mcp_targets: Optional[str] = Field(default=None, alias="mcpTargets")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# Live Signals
# ============================================================================


class Finding(BaseModel):
    """A single observation tied to a control."""
    model_config = ConfigDict(use_enum_values=True)

    control_id: str
    status: FindingStatus
    description: str


class InfraToolResult(BaseModel):
    """Uniform result every live-signal check produces."""

    source: str = Field(..., description="Provider name (github, aws, ...)")
    tool: str = Field(..., description="Check name")
    tsc_controls: List[str] = Field(default_factory=list)
    collected_at: str = Field(default_factory=today)
    data: Any = None
    findings: List[Finding] = Field(default_factory=list)


class EvidenceLedgerRow(BaseModel):
    """One row of the evidence manifest table."""
    model_config = ConfigDict(use_enum_values=False)

    control_id: str
    evidence_file: str
    collection_method: str
    date: str = Field(default_factory=today)
    status: EvidenceStatus = EvidenceStatus.COLLECTED

    def render(self) -> str:
        return (
            f"| {self.control_id} | {self.evidence_file} | "
            f"{self.collection_method} | {self.date} | {self.status.symbol} |"
        )


# ============================================================================
# Process Invocation Outcomes
# ============================================================================


class CliSuccess(BaseModel):
    """External command exited 0."""

    ok: Literal[True] = True
    stdout: str = ""
    stderr: str = ""
    parsed: Any = None


class CliError(BaseModel):
    """External command could not produce a usable result."""

    ok: Literal[False] = False
    error: CliErrorKind
    message: str
    stderr: Optional[str] = None
    exit_code: Optional[int] = None

    @classmethod
    def not_authenticated(cls, command: str, stderr: Optional[str] = None) -> "CliError":
        """Build the credential failure kind callers detect from exit text."""
        return cls(
            error="not_authenticated",
            message=f"{command} is installed but not authenticated.",
            stderr=stderr,
        )


CliOutcome = Union[CliSuccess, CliError]
