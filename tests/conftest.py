"""
Shared fixtures: a throwaway compliance root and the services over it.
"""

import pytest

from soc2_compliance.config import load_config
from soc2_compliance.documents import DocumentStore
from soc2_compliance.evidence import EvidenceLedger


CONTROLS_DOC = """---
id: TSC-SEC
title: Security TSC Mapping
status: approved
---

# Security

## CC5 — Control Activities

### CC5.1 — Selection and Development of Control Activities
- **What the auditor looks for**: Documented risk mitigation activities
- **Evidence types**: risk register, control matrix
- **MCP discovery targets**: github

### CC5.2 — Technology General Controls
- **What the auditor looks for**: Change management over infrastructure
- **Evidence types**: branch protection, , CI logs
- **Solo-company note**: Self-review with automated checks is acceptable
- **Compensating control**: Mandatory CI gates

## CC6 — Logical and Physical Access

### CC6.1 — Logical Access Security
- **What the auditor looks for**: MFA on all production systems
- **Evidence types**: MFA report
"""

MANIFEST_DOC = """---
id: EV-MANIFEST
title: Evidence Manifest
---

# Evidence Manifest

| Control | Evidence | Method | Date | Status |
|---------|----------|--------|------|--------|
| CC5.1 | automated/github/branch-protection.json | MCP: github | 2026-01-01 | ✅ |

## Collection Summary

Collected: 1
"""


@pytest.fixture
def compliance_root(tmp_path):
    """Empty compliance root."""
    root = tmp_path / "compliance"
    root.mkdir()
    return root


@pytest.fixture
def config(compliance_root):
    """Configuration pinned to the temporary root."""
    return load_config(compliance_root=compliance_root)


@pytest.fixture
def store(config):
    return DocumentStore(config)


@pytest.fixture
def ledger(store):
    return EvidenceLedger(store)


@pytest.fixture
def seeded_root(compliance_root):
    """Root with a control mapping and an evidence manifest."""
    (compliance_root / "controls").mkdir()
    (compliance_root / "controls" / "tsc-security.md").write_text(CONTROLS_DOC, encoding="utf-8")
    (compliance_root / "evidence").mkdir()
    (compliance_root / "evidence" / "manifest.md").write_text(MANIFEST_DOC, encoding="utf-8")
    return compliance_root
