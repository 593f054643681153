"""
Single source of truth for shared enums and date helpers.

Usage:
    from soc2_compliance._types import (
        DocumentType, DocumentStatus, FindingStatus,
        today  # ISO date string used for every metadata stamp
    )
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Literal


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def now_utc() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def today() -> str:
    """Today's date as YYYY-MM-DD (UTC)."""
    return now_utc().date().isoformat()


def days_between(start: str, end: str) -> int:
    """Whole days from one ISO date string to another."""
    return (date.fromisoformat(end[:10]) - date.fromisoformat(start[:10])).days


# =============================================================================
# ENUMS
# =============================================================================


class DocumentType(str, Enum):
    """
    Top-level document categories.

    Each value is also the directory name under the compliance root.
    """
    CONTROLS = "controls"
    POLICIES = "policies"
    EVIDENCE = "evidence"
    GAPS = "gaps"
    ASSESSMENTS = "assessments"
    INVENTORY = "inventory"
    CONFIG = "config"
    AGENTS = "agents"


class DocumentStatus(str, Enum):
    """Document lifecycle: draft -> review -> approved -> expired."""
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    EXPIRED = "expired"


class FindingStatus(str, Enum):
    """Outcome of a single live-signal observation."""
    PASS = "pass"
    FAIL = "fail"
    WARNING = "warning"
    INFO = "info"


class EvidenceStatus(str, Enum):
    """Evidence ledger row status."""
    COLLECTED = "collected"
    PENDING = "pending"
    EXPIRED = "expired"

    @property
    def symbol(self) -> str:
        return EVIDENCE_SYMBOLS[self]


EVIDENCE_SYMBOLS = {
    EvidenceStatus.COLLECTED: "✅",
    EvidenceStatus.PENDING: "⏳",
    EvidenceStatus.EXPIRED: "❌",
}


class EvidenceCategory(str, Enum):
    """Sub-folders of evidence/ that artifacts are filed under."""
    AUTOMATED = "automated"
    MANUAL = "manual"
    POLICIES = "policies"
    REVIEWS = "reviews"


class ContentType(str, Enum):
    """How an evidence artifact is written to disk."""
    MARKDOWN = "markdown"
    JSON = "json"
    YAML = "yaml"
    TEXT = "text"


class AgentStatus(str, Enum):
    """Agent registry lifecycle."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    DECOMMISSIONED = "decommissioned"


class ContextClassification(str, Enum):
    """Trust level of the context an agent consumes."""
    TRUSTED = "trusted"
    UNTRUSTED = "untrusted"


# Failure kinds of the process invocation layer
CliErrorKind = Literal["not_installed", "not_authenticated", "timeout", "exec_error"]
