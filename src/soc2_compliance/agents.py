"""
AI agent governance registry.

Agents are documents under agents/ whose front matter has
``type: agent-registry``. The body documents data access, tool access,
boundary constraints, context sources and a Credentials table:

    ## Credentials
    | Credential ID | Type | Scope | Last Rotated | Rotation Target | Owner |
    |---|---|---|---|---|---|
    | `gh-token` | PAT | repo:read | 2026-06-01 | 90 days | ops |

Audits map registry content onto the AGT-xx control matrix.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ._types import AgentStatus, ContextClassification, DocumentType, days_between, today
from .documents import DocumentStore
from .exceptions import NotFoundError

logger = logging.getLogger(__name__)

REGISTRY_TYPE = "agent-registry"
CREDENTIALS_SECTION = re.compile(r"#+\s*Credentials.*?\|.*?(?=\n#|\n---|\Z)", re.DOTALL)


def _risk_tier(value: Any, path: str) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        logger.debug(f"Non-numeric risk_tier {value!r} in {path}")
        return 0


class AgentEntry(BaseModel):
    """Registry front matter with defaults for missing fields."""

    id: str = "unknown"
    name: str = ""
    status: str = "unknown"
    purpose: str = ""
    owner: str = ""
    risk_tier: int = 0
    context_classification: str = "unknown"
    control_tier: str = "tier-1"
    last_reviewed: str = "never"
    next_review: str = "unknown"
    blue_team_status: str = "n/a"
    tsc_controls: List[str] = Field(default_factory=list)
    path: str = ""

    @classmethod
    def from_metadata(cls, metadata: Dict[str, Any], path: str) -> "AgentEntry":
        def text(key: str, default: str) -> str:
            value = metadata.get(key)
            return str(value) if value not in (None, "") else default

        return cls(
            id=text("id", "unknown"),
            name=text("name", path),
            status=text("status", "unknown"),
            purpose=text("purpose", ""),
            owner=text("owner", ""),
            risk_tier=_risk_tier(metadata.get("risk_tier"), path),
            context_classification=text("context_classification", "unknown"),
            control_tier=text("control_tier", "tier-1"),
            last_reviewed=text("last_reviewed", "never"),
            next_review=text("next_review", "unknown"),
            blue_team_status=text("blue_team_status", "n/a"),
            tsc_controls=list(metadata.get("tsc_controls") or []),
            path=path,
        )

    @property
    def review_overdue(self) -> bool:
        return self.next_review <= today()

    @property
    def blue_team_done(self) -> bool:
        return self.blue_team_status not in ("n/a", "")


def parse_credentials(content: str) -> List[Dict[str, str]]:
    """Rows of the Credentials table: id and last rotation date."""
    section = CREDENTIALS_SECTION.search(content)
    if not section:
        return []

    rows = []
    for line in section.group(0).split("\n"):
        if not line.startswith("|") or "---" in line or "Credential ID" in line:
            continue
        cells = [c.strip() for c in line.split("|") if c.strip()]
        if len(cells) < 6:
            continue
        rows.append({
            "credential_id": cells[0].replace("`", ""),
            "last_rotated": cells[3],
        })
    return rows


class AgentRegistry:
    """Queries and audits over agent registry documents."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def load_agents(
        self,
        status: Optional[str] = None,
        context_classification: Optional[str] = None,
        risk_tier: Optional[int] = None,
    ) -> List[AgentEntry]:
        agents = []
        for doc in await self._list_registry_documents(status):
            m = doc.metadata
            if context_classification and m.get("context_classification") != context_classification:
                continue
            if risk_tier is not None and m.get("risk_tier") != risk_tier:
                continue
            agents.append(AgentEntry.from_metadata(m, doc.relative_path))
        return agents

    async def _list_registry_documents(self, status: Optional[str] = None):
        entries = await self.store.list_documents(DocumentType.AGENTS)
        return [
            e for e in entries
            if e.metadata.get("type") == REGISTRY_TYPE
            and (status is None or e.metadata.get("status") == status)
        ]

    async def list_agents(
        self,
        status: Optional[str] = None,
        context_classification: Optional[str] = None,
        risk_tier: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        agents = await self.load_agents(status, context_classification, risk_tier)
        return [
            {
                "id": a.id,
                "name": a.name,
                "status": a.status,
                "risk_tier": a.risk_tier,
                "context": a.context_classification,
                "control_tier": a.control_tier,
                "next_review": a.next_review,
            }
            for a in agents
        ]

    async def get_agent(self, agent_id: str) -> Dict[str, Any]:
        """
        Full registry document for one agent.

        Raises:
            NotFoundError: Hint lists the registered agent IDs
        """
        docs = await self.store.list_documents(DocumentType.AGENTS)
        for entry in docs:
            if entry.metadata.get("id") == agent_id:
                doc = await self.store.read_document(entry.path)
                return {"metadata": doc.metadata, "content": doc.content}

        registered = [
            str(d.metadata.get("id")) for d in docs
            if d.metadata.get("type") == REGISTRY_TYPE
        ]
        raise NotFoundError(
            f"agent {agent_id}",
            f"Registered agents: {', '.join(registered) or 'none'}",
        )

    async def get_agent_coverage(self) -> Dict[str, Any]:
        agents = await self.load_agents()

        by_risk_tier: Dict[int, int] = {}
        for a in agents:
            by_risk_tier[a.risk_tier] = by_risk_tier.get(a.risk_tier, 0) + 1

        overdue = [a for a in agents if a.status == AgentStatus.ACTIVE.value and a.review_overdue]
        blue_team_needed = [
            a for a in agents
            if a.context_classification == ContextClassification.UNTRUSTED.value
            and a.status == AgentStatus.ACTIVE.value
            and not a.blue_team_done
        ]

        controls = await self.store.list_documents(DocumentType.CONTROLS)
        has_agent_controls = any(
            c.metadata.get("id") == "TSC-AGT" or "agent-controls" in c.relative_path
            for c in controls
        )
        policies = await self.store.list_documents(DocumentType.POLICIES)
        has_agent_policy = any(
            "POL-013" in str(p.metadata.get("id") or "") or "agent-governance" in p.relative_path
            for p in policies
        )

        return {
            "totalAgents": len(agents),
            "byStatus": {
                s.value: sum(1 for a in agents if a.status == s.value) for s in AgentStatus
            },
            "byContext": {
                c.value: sum(1 for a in agents if a.context_classification == c.value)
                for c in ContextClassification
            },
            "byRiskTier": by_risk_tier,
            "reviewsOverdue": [
                {"id": a.id, "name": a.name, "next_review": a.next_review} for a in overdue
            ],
            "blueTeamNeeded": [{"id": a.id, "name": a.name} for a in blue_team_needed],
            "governanceControls": (
                "defined" if has_agent_controls
                else "missing — create controls/agent-controls.md"
            ),
            "governancePolicy": (
                "exists" if has_agent_policy
                else "missing — generate via /compliance-policy"
            ),
        }

    async def check_credential_rotation(self, threshold_days: int = 90) -> Dict[str, Any]:
        """Age of every credential listed by active agents."""
        current = today()
        credentials = []

        for agent in await self.load_agents(AgentStatus.ACTIVE.value):
            doc = await self.store.read_document(agent.path)
            for row in parse_credentials(doc.content):
                last_rotated = row["last_rotated"]
                if not last_rotated or last_rotated == "N/A":
                    continue
                try:
                    age_days = days_between(last_rotated, current)
                except ValueError:
                    logger.debug(f"Unparseable rotation date '{last_rotated}' for {agent.id}")
                    continue

                credentials.append({
                    "agent_id": agent.id,
                    "agent_name": agent.name,
                    "credential_id": row["credential_id"],
                    "last_rotated": last_rotated,
                    "age_days": age_days,
                    "threshold": threshold_days,
                    "overdue": age_days > threshold_days,
                })

        return {
            "total_credentials": len(credentials),
            "overdue_count": sum(1 for c in credentials if c["overdue"]),
            "threshold_days": threshold_days,
            "credentials": credentials,
        }

    async def run_agent_audit(self) -> Dict[str, Any]:
        """Check active agents against the AGT control matrix."""
        agents = await self.load_agents()
        active = [a for a in agents if a.status == AgentStatus.ACTIVE.value]
        findings: List[Dict[str, str]] = []

        for agent in active:
            content = (await self.store.read_document(agent.path)).content
            findings.extend(_audit_agent(agent, content))

        return {
            "summary": {
                "agents_audited": len(active),
                "checks_passed": sum(1 for f in findings if f["status"] == "pass"),
                "checks_failed": sum(1 for f in findings if f["status"] == "fail"),
                "checks_warning": sum(1 for f in findings if f["status"] == "warning"),
                "total_checks": len(findings),
            },
            "findings": findings,
        }


def _has_section(content: str, title: str) -> bool:
    return f"## {title}" in content or f"#### {title}" in content


def _check(agent: AgentEntry, control: str, passed: bool, ok: str, missing: str,
           failure: str = "fail") -> Dict[str, str]:
    return {
        "agent_id": agent.id,
        "control": control,
        "status": "pass" if passed else failure,
        "detail": ok if passed else missing,
    }


def _audit_agent(agent: AgentEntry, content: str) -> List[Dict[str, str]]:
    findings = [
        _check(agent, "AGT-01", True, "Agent registered in inventory", ""),
        _check(agent, "AGT-02", _has_section(content, "Data Access"),
               "Data access scope documented", "Missing Data Access section"),
        _check(agent, "AGT-03", _has_section(content, "Tool Access"),
               "Tool/MCP access scope documented", "Missing Tool Access section"),
        _check(agent, "AGT-04", _has_section(content, "Boundary Constraints"),
               "Boundary constraints documented", "Missing Boundary Constraints section"),
        _check(agent, "AGT-07", "log" in content or "audit trail" in content,
               "Logging referenced in registry", "No explicit logging documentation found",
               failure="warning"),
        _check(agent, "AGT-08", _has_section(content, "Context Sources"),
               "Context sources enumerated", "Missing Context Sources section"),
        _check(agent, "AGT-09", agent.context_classification != "unknown",
               f"Context classified as: {agent.context_classification}",
               f"Context classified as: {agent.context_classification}"),
        _check(agent, "AGT-10", not agent.review_overdue,
               f"Next review: {agent.next_review}",
               f"Review overdue (was due {agent.next_review})",
               failure="warning"),
    ]

    if agent.context_classification == ContextClassification.UNTRUSTED.value:
        findings.extend([
            _check(agent, "AGT-11",
                   "input validation" in content or "Input validation" in content,
                   "Input validation documented",
                   "UNTRUSTED: Missing input validation documentation"),
            _check(agent, "AGT-13",
                   "prompt injection" in content or "system prompt" in content,
                   "Prompt injection defenses documented",
                   "UNTRUSTED: Missing prompt injection defense documentation"),
            _check(agent, "AGT-17", agent.blue_team_done,
                   f"Blue team testing: {agent.blue_team_status}",
                   "UNTRUSTED: Blue team testing not completed"),
        ])

    return findings
