"""
Tests for control parsing and the control catalog.
"""

import pytest

from soc2_compliance.controls import ControlCatalog, ControlParser, ParserState, parse_controls
from soc2_compliance.exceptions import NotFoundError


# =============================================================================
# PARSER
# =============================================================================

class TestParseControls:
    def test_extracts_all_fields(self):
        content = """## CC6 — Logical Access

### CC6.1 — Logical Access Security
- **What the auditor looks for**: MFA everywhere
- **Evidence types**: MFA report, IdP export
- **Solo-company note**: Founder account only
- **Compensating control**: Hardware keys
- **MCP discovery targets**: google-workspace
"""
        [control] = parse_controls(content)

        assert control.to_dict() == {
            "id": "CC6.1",
            "name": "Logical Access Security",
            "criteria": "CC6",
            "auditorLooksFor": "MFA everywhere",
            "evidenceTypes": ["MFA report", "IdP export"],
            "soloCompanyNote": "Founder account only",
            "compensatingControl": "Hardware keys",
            "mcpTargets": "google-workspace",
        }

    def test_one_entry_per_heading_in_order(self):
        content = "\n".join([
            "## CC1 — Control Environment",
            "### CC1.1 — Integrity",
            "### CC1.2 - Board Oversight",
            "## C1 – Confidentiality",
            "### C1.1.1 — Identify confidential information",
        ])
        controls = parse_controls(content)

        assert [(c.id, c.criteria, c.name) for c in controls] == [
            ("CC1.1", "CC1", "Integrity"),
            ("CC1.2", "CC1", "Board Oversight"),
            ("C1.1.1", "C1", "Identify confidential information"),
        ]

    def test_missing_fields_default(self):
        [control] = parse_controls("### CC2.1 — Information Quality\nSome prose\n")

        assert control.auditor_looks_for == ""
        assert control.evidence_types == []
        assert control.to_dict() == {
            "id": "CC2.1",
            "name": "Information Quality",
            "criteria": "",
            "auditorLooksFor": "",
            "evidenceTypes": [],
        }

    def test_evidence_types_drop_empty_items(self):
        [control] = parse_controls("### CC5.2 — Tech\n- **Evidence types**: a, , b ,\n")
        assert control.evidence_types == ["a", "b"]

    def test_unparsable_heading_discards_its_bullets(self):
        content = "\n".join([
            "### CC5.1 — Good Control",
            "- **What the auditor looks for**: first",
            "### Notes on scope",
            "- **What the auditor looks for**: stray",
            "- **Evidence types**: stray",
            "### CC5.2 — Next Control",
        ])
        controls = parse_controls(content)

        assert [c.id for c in controls] == ["CC5.1", "CC5.2"]
        assert controls[0].auditor_looks_for == "first"
        assert controls[1].auditor_looks_for == ""
        assert controls[1].evidence_types == []

    def test_parser_state_transitions(self):
        parser = ControlParser()
        assert parser.state == ParserState.OUTSIDE_CONTROL

        parser.feed("### CC3.1 — Risk Objectives")
        assert parser.state == ParserState.INSIDE_CONTROL

        parser.feed("### Appendix")
        assert parser.state == ParserState.OUTSIDE_CONTROL

        assert [c.id for c in parser.finish()] == ["CC3.1"]

    def test_empty_document(self):
        assert parse_controls("") == []


# =============================================================================
# CATALOG
# =============================================================================

class TestControlCatalog:
    @pytest.mark.asyncio
    async def test_list_controls(self, store, seeded_root):
        catalog = ControlCatalog(store)

        controls = await catalog.list_controls()

        assert [c["id"] for c in controls] == ["CC5.1", "CC5.2", "CC6.1"]
        cc52 = controls[1]
        assert cc52["hasCompensatingControl"] is True
        assert cc52["hasMcpTargets"] is False

    @pytest.mark.asyncio
    async def test_list_controls_by_criteria(self, store, seeded_root):
        catalog = ControlCatalog(store)

        controls = await catalog.list_controls("CC6")

        assert [c["id"] for c in controls] == ["CC6.1"]

    @pytest.mark.asyncio
    async def test_get_control(self, store, seeded_root):
        control = await ControlCatalog(store).get_control("CC5.2")

        assert control.name == "Technology General Controls"
        assert control.evidence_types == ["branch protection", "CI logs"]
        assert control.solo_company_note.startswith("Self-review")

    @pytest.mark.asyncio
    async def test_get_unknown_control_lists_available(self, store, seeded_root):
        with pytest.raises(NotFoundError) as exc:
            await ControlCatalog(store).get_control("CC9.9")

        assert "CC5.1, CC5.2, CC6.1" in str(exc.value)

    @pytest.mark.asyncio
    async def test_coverage_counts_manifest_references(self, store, seeded_root):
        coverage = await ControlCatalog(store).get_control_coverage()

        assert coverage["total"] == 3
        assert coverage["covered"] == 1
        assert coverage["uncovered"] == 2
        assert coverage["coveragePercent"] == 33
        assert coverage["byCriteria"] == {
            "CC5": {"total": 2, "covered": 1},
            "CC6": {"total": 1, "covered": 0},
        }
        assert [c["id"] for c in coverage["uncoveredControls"]] == ["CC5.2", "CC6.1"]

    @pytest.mark.asyncio
    async def test_coverage_without_manifest(self, store, seeded_root):
        (seeded_root / "evidence" / "manifest.md").unlink()

        coverage = await ControlCatalog(store).get_control_coverage()

        assert coverage["covered"] == 0
        assert coverage["coveragePercent"] == 0

    @pytest.mark.asyncio
    async def test_no_controls(self, store):
        coverage = await ControlCatalog(store).get_control_coverage()

        assert coverage["total"] == 0
        assert coverage["coveragePercent"] == 0


class TestParserCompleteness:
    def test_minimal_mapping_document(self):
        content = "## CC5 — Logical Access\n### CC5.1 — MFA\n- **Evidence types**: screenshot, log export\n"

        assert [c.to_dict() for c in parse_controls(content)] == [{
            "id": "CC5.1",
            "name": "MFA",
            "criteria": "CC5",
            "auditorLooksFor": "",
            "evidenceTypes": ["screenshot", "log export"],
        }]
