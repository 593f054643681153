"""
Gap analysis, readiness assessments and the compliance dashboard.

Reports are authored elsewhere and filed here with standard front matter;
the dashboard and roadmap are computed from whatever is on disk.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from ._types import DocumentStatus, DocumentType, today
from .documents import DocumentStore
from .evidence import MANIFEST_PATH, EvidenceLedger
from .exceptions import NotFoundError
from .models import DocumentEntry

logger = logging.getLogger(__name__)

ROADMAP_SECTION = re.compile(r"## Remediation Roadmap.*?(?=\n## |\Z)", re.DOTALL)


def latest_by_assessment_date(entries: List[DocumentEntry]) -> Optional[DocumentEntry]:
    """Entry with the greatest assessment_date; undated entries sort last."""
    if not entries:
        return None
    ordered = sorted(
        entries,
        key=lambda e: str(e.metadata.get("assessment_date") or ""),
        reverse=True,
    )
    return ordered[0]


def _report_ref(entry: Optional[DocumentEntry]) -> Optional[Dict[str, Any]]:
    if entry is None:
        return None
    return {
        "path": entry.relative_path,
        "date": entry.metadata.get("assessment_date"),
        "status": entry.metadata.get("status"),
    }


class AssessmentService:
    """Files assessment reports and summarizes compliance state."""

    def __init__(self, store: DocumentStore, ledger: EvidenceLedger):
        self.store = store
        self.ledger = ledger

    async def run_gap_analysis(self, report_content: str) -> str:
        """Write gaps/gap-analysis-<date>.md and return its relative path."""
        date = today()
        path = f"{DocumentType.GAPS.value}/gap-analysis-{date}.md"
        await self.store.write_document(
            path,
            {
                "id": f"GAP-{date}",
                "title": f"SOC 2 Gap Assessment Report — {date}",
                "status": DocumentStatus.DRAFT.value,
                "version": "1.0",
                "assessment_date": date,
            },
            report_content,
        )
        logger.info(f"Gap analysis report created: {path}")
        return path

    async def run_readiness_check(self, assessment_content: str) -> str:
        """Write assessments/readiness-check-<date>.md and return its path."""
        date = today()
        path = f"{DocumentType.ASSESSMENTS.value}/readiness-check-{date}.md"
        await self.store.write_document(
            path,
            {
                "id": f"READY-{date}",
                "title": f"Audit Readiness Assessment — {date}",
                "status": DocumentStatus.DRAFT.value,
                "version": "1.0",
                "assessment_date": date,
            },
            assessment_content,
        )
        logger.info(f"Readiness assessment created: {path}")
        return path

    async def get_compliance_dashboard(self) -> Dict[str, Any]:
        policies = await self.store.list_documents(DocumentType.POLICIES)
        gaps = await self.store.list_documents(DocumentType.GAPS)
        assessments = await self.store.list_documents(DocumentType.ASSESSMENTS)
        evidence = [
            e for e in await self.store.list_documents(DocumentType.EVIDENCE)
            if e.relative_path != MANIFEST_PATH
        ]
        counts = await self.ledger.status_counts()

        policy_statuses = {
            status.value: sum(1 for p in policies if p.metadata.get("status") == status.value)
            for status in DocumentStatus
        }

        return {
            "summary": {
                "totalPolicies": len(policies),
                "policyStatuses": policy_statuses,
                "evidenceCollected": counts["collected"],
                "evidencePending": counts["pending"],
                "evidenceExpired": counts["expired"],
                "totalEvidenceArtifacts": len(evidence),
                "gapReports": len(gaps),
                "readinessAssessments": len(assessments),
            },
            "latestGapReport": _report_ref(latest_by_assessment_date(gaps)),
            "latestReadinessCheck": _report_ref(latest_by_assessment_date(assessments)),
        }

    async def get_remediation_roadmap(self) -> Dict[str, Any]:
        """
        Remediation Roadmap section of the latest gap report.

        Raises:
            NotFoundError: If no gap report exists

        Returns:
            source, date and roadmap (None when the section is missing)
        """
        latest = latest_by_assessment_date(
            await self.store.list_documents(DocumentType.GAPS)
        )
        if latest is None:
            raise NotFoundError(
                "gap analysis report",
                "Run /compliance-gap first to generate a gap analysis.",
            )

        doc = await self.store.read_document(latest.path)
        match = ROADMAP_SECTION.search(doc.content)
        if match is None:
            logger.warning(f"No Remediation Roadmap section in {latest.relative_path}")

        return {
            "source": latest.relative_path,
            "date": latest.metadata.get("assessment_date"),
            "roadmap": match.group(0) if match else None,
        }
