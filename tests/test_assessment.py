"""
Tests for gap analysis, readiness checks and the dashboard.
"""

import pytest

from soc2_compliance._types import today
from soc2_compliance.assessment import AssessmentService
from soc2_compliance.exceptions import NotFoundError
from soc2_compliance.frontmatter import serialize_document


@pytest.fixture
def service(store, ledger):
    return AssessmentService(store, ledger)


def write(root, relative, metadata, content="Body"):
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(serialize_document(metadata, content), encoding="utf-8")


class TestReports:
    @pytest.mark.asyncio
    async def test_gap_analysis_written(self, service, store):
        path = await service.run_gap_analysis("# Gaps\n\n## Remediation Roadmap\n\n1. Fix MFA")

        assert path == f"gaps/gap-analysis-{today()}.md"
        doc = await store.read_document(path)
        assert doc.metadata == {
            "id": f"GAP-{today()}",
            "title": f"SOC 2 Gap Assessment Report — {today()}",
            "status": "draft",
            "version": "1.0",
            "assessment_date": today(),
        }

    @pytest.mark.asyncio
    async def test_readiness_check_written(self, service, store):
        path = await service.run_readiness_check("# Ready?")

        assert path == f"assessments/readiness-check-{today()}.md"
        doc = await store.read_document(path)
        assert doc.metadata["id"] == f"READY-{today()}"
        assert doc.content == "# Ready?"


class TestDashboard:
    @pytest.mark.asyncio
    async def test_empty_root(self, service):
        dashboard = await service.get_compliance_dashboard()

        assert dashboard["summary"]["totalPolicies"] == 0
        assert dashboard["summary"]["evidenceCollected"] == 0
        assert dashboard["latestGapReport"] is None
        assert dashboard["latestReadinessCheck"] is None

    @pytest.mark.asyncio
    async def test_counts(self, service, seeded_root):
        write(seeded_root, "policies/a.md", {"status": "approved"})
        write(seeded_root, "policies/b.md", {"status": "draft"})
        write(seeded_root, "policies/c.md", {"status": "approved"})
        write(seeded_root, "evidence/manual/review.md", {"title": "review"})
        write(seeded_root, "gaps/gap-analysis-2026-01-01.md", {"assessment_date": "2026-01-01", "status": "draft"})
        write(seeded_root, "gaps/gap-analysis-2026-03-01.md", {"assessment_date": "2026-03-01", "status": "review"})

        dashboard = await service.get_compliance_dashboard()
        summary = dashboard["summary"]

        assert summary["totalPolicies"] == 3
        assert summary["policyStatuses"] == {"draft": 1, "review": 0, "approved": 2, "expired": 0}
        assert summary["evidenceCollected"] == 1
        assert summary["totalEvidenceArtifacts"] == 1
        assert summary["gapReports"] == 2
        assert summary["readinessAssessments"] == 0
        assert dashboard["latestGapReport"] == {
            "path": "gaps/gap-analysis-2026-03-01.md",
            "date": "2026-03-01",
            "status": "review",
        }


class TestRoadmap:
    @pytest.mark.asyncio
    async def test_no_gap_report(self, service):
        with pytest.raises(NotFoundError):
            await service.get_remediation_roadmap()

    @pytest.mark.asyncio
    async def test_extracts_latest_roadmap(self, service, compliance_root):
        write(compliance_root, "gaps/old.md", {"assessment_date": "2026-01-01"},
              "## Remediation Roadmap\n\nold plan")
        write(compliance_root, "gaps/new.md", {"assessment_date": "2026-02-01"},
              "# Report\n\n## Remediation Roadmap\n\n1. Enable MFA\n2. Branch protection\n\n## Appendix\n\nx")

        roadmap = await service.get_remediation_roadmap()

        assert roadmap["source"] == "gaps/new.md"
        assert roadmap["date"] == "2026-02-01"
        assert roadmap["roadmap"] == "## Remediation Roadmap\n\n1. Enable MFA\n2. Branch protection\n"

    @pytest.mark.asyncio
    async def test_missing_section(self, service, compliance_root):
        write(compliance_root, "gaps/g.md", {"assessment_date": "2026-01-01"}, "# No roadmap")

        roadmap = await service.get_remediation_roadmap()

        assert roadmap["roadmap"] is None
