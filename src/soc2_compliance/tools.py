"""
Tool-call boundary.

Every capability is registered by name with a pydantic input model. A call
validates its arguments, runs the handler and returns a text content
payload. Store errors and invalid arguments come back as structured error
payloads instead of raising.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ._types import (
    AgentStatus,
    ContentType,
    ContextClassification,
    DocumentStatus,
    DocumentType,
    EvidenceCategory,
    EvidenceStatus,
)
from .agents import AgentRegistry
from .assessment import AssessmentService
from .config import ComplianceConfig
from .controls import ControlCatalog
from .documents import DocumentStore
from .evidence import MANIFEST_MISSING_HINT, EvidenceLedger
from .exceptions import ComplianceError, NotFoundError
from .infra import github, workspace
from .utils import text_response

logger = logging.getLogger(__name__)


# ============================================================================
# Input Models
# ============================================================================


class ToolInput(BaseModel):
    model_config = ConfigDict(extra='forbid', use_enum_values=True)


class NoInput(ToolInput):
    pass


class ListDocumentsInput(ToolInput):
    type: DocumentType = Field(..., description="Document type to list")
    status: Optional[DocumentStatus] = Field(None, description="Filter by document status")


class PathInput(ToolInput):
    path: str = Field(
        ...,
        min_length=1,
        description="Relative path within the compliance directory (e.g. 'controls/tsc-security.md')",
    )


class NewDocumentMetadata(BaseModel):
    model_config = ConfigDict(extra='allow', use_enum_values=True)

    id: Optional[str] = None
    title: str
    status: DocumentStatus = DocumentStatus.DRAFT.value
    version: str = "1.0"
    owner: Optional[str] = None
    tsc_criteria: Optional[List[str]] = None


class CreateDocumentInput(ToolInput):
    type: DocumentType = Field(..., description="Document type (determines directory)")
    filename: str = Field(..., min_length=1, description="Filename, e.g. 'access-control-policy.md'")
    metadata: NewDocumentMetadata = Field(..., description="Front matter for the new document")
    content: str = Field(..., description="Markdown body")


class UpdateDocumentInput(PathInput):
    metadata: Optional[Dict[str, Any]] = Field(None, description="Fields merged into existing metadata")
    content: Optional[str] = Field(None, description="New body, replaces the existing one if given")


class UpdateStatusInput(PathInput):
    status: DocumentStatus = Field(..., description="New status")


class ListControlsInput(ToolInput):
    criteria: Optional[str] = Field(None, description="Criteria group, e.g. 'CC1', 'CC5', 'C1'")


class ControlIdInput(ToolInput):
    id: str = Field(..., description="Control ID, e.g. 'CC5.1'")


class MapEvidenceInput(ToolInput):
    control_id: str = Field(..., description="Control ID, e.g. 'CC5.1'")
    evidence_file: str = Field(..., description="Evidence path relative to evidence/")
    collection_method: str = Field(..., description="How it was collected, e.g. 'MCP: github', 'Manual'")
    status: EvidenceStatus = Field(EvidenceStatus.COLLECTED, description="Evidence status")


class StoreEvidenceInput(ToolInput):
    category: EvidenceCategory = Field(..., description="Evidence category")
    subcategory: Optional[str] = Field(None, description="Subfolder, e.g. 'github'")
    filename: str = Field(..., min_length=1, description="e.g. '2026-02-21-mfa-status.json'")
    content: str = Field(..., description="Artifact content")
    content_type: ContentType = Field(ContentType.MARKDOWN, description="Content type")
    control_ids: Optional[List[str]] = Field(None, description="Controls this evidence supports")


class ListEvidenceInput(ToolInput):
    category: Optional[EvidenceCategory] = Field(None, description="Filter by category")
    control_id: Optional[str] = Field(None, description="Filter by control ID")


class ManifestInput(ToolInput):
    content: str = Field(..., description="Full markdown body for the evidence manifest")


class GapAnalysisInput(ToolInput):
    report_content: str = Field(..., description="Full markdown gap analysis report")


class ReadinessInput(ToolInput):
    assessment_content: str = Field(..., description="Full markdown readiness assessment")


class ListAgentsInput(ToolInput):
    status: Optional[AgentStatus] = Field(None, description="Filter by agent status")
    context_classification: Optional[ContextClassification] = Field(
        None, description="Filter by context trust classification"
    )
    risk_tier: Optional[int] = Field(None, ge=1, le=5, description="Filter by risk tier (1-5)")


class AgentIdInput(ToolInput):
    id: str = Field(..., description="Agent ID, e.g. 'AGENT-001'")


class CredentialRotationInput(ToolInput):
    rotation_threshold_days: Optional[int] = Field(
        None, ge=1, description="Rotation threshold in days (default from configuration)"
    )


class RepoInput(ToolInput):
    owner: str = Field(..., min_length=1, description="Repository owner (user or org)")
    repo: str = Field(..., min_length=1, description="Repository name")


class BranchInput(RepoInput):
    branch: str = Field("main", min_length=1, description="Branch to check")


# ============================================================================
# Registry
# ============================================================================


@dataclass
class Tool:
    name: str
    description: str
    input_model: Type[ToolInput]
    handler: Callable[[Any], Awaitable[Dict[str, Any]]]

    def schema(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_model.model_json_schema(),
        }


def error_payload(code: str, message: str) -> Dict[str, Any]:
    return text_response({"ok": False, "error": {"code": code, "message": message}}, is_error=True)


class ToolRegistry:
    """
    Named tools over one compliance root.

    The store, catalog, ledger, assessment service and agent registry are
    built once from the configuration.
    """

    def __init__(self, config: ComplianceConfig):
        self.config = config
        self.store = DocumentStore(config)
        self.catalog = ControlCatalog(self.store)
        self.ledger = EvidenceLedger(self.store)
        self.assessment = AssessmentService(self.store, self.ledger)
        self.agents = AgentRegistry(self.store)
        self.tools: Dict[str, Tool] = {}
        self._register_all()

    def register(self, name: str, description: str, input_model: Type[ToolInput], handler) -> None:
        self.tools[name] = Tool(name, description, input_model, handler)

    def list_tools(self) -> List[Dict[str, Any]]:
        return [tool.schema() for tool in self.tools.values()]

    async def call(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Validate arguments and run a tool.

        Returns:
            Text content payload; errors carry isError and a code
        """
        tool = self.tools.get(name)
        if tool is None:
            return error_payload("E_UNKNOWN_TOOL", f"Unknown tool: {name}")

        try:
            params = tool.input_model.model_validate(arguments or {})
        except ValidationError as e:
            logger.info(f"Invalid arguments for {name}: {e.error_count()} error(s)")
            return error_payload("E_VALIDATION", str(e))

        logger.info(f"Tool invoked: {name}")
        try:
            return await tool.handler(params)
        except ComplianceError as e:
            logger.warning(f"{name} failed: {e}")
            return error_payload(e.code, str(e))

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _register_all(self) -> None:
        r = self.register

        # Documents
        r("list_documents", "List compliance documents by type, optionally filtered by status.",
          ListDocumentsInput, self._list_documents)
        r("read_document", "Read a compliance document: parsed metadata and content.",
          PathInput, self._read_document)
        r("create_document", "Create a compliance document with YAML front matter.",
          CreateDocumentInput, self._create_document)
        r("update_document", "Update a document's content and/or metadata.",
          UpdateDocumentInput, self._update_document)
        r("update_document_status", "Change a document's lifecycle status (draft, review, approved, expired).",
          UpdateStatusInput, self._update_document_status)

        # Controls
        r("list_controls", "List SOC 2 controls from the TSC mappings, optionally by criteria group.",
          ListControlsInput, self._list_controls)
        r("get_control", "Details of one control: auditor expectations, evidence types, notes.",
          ControlIdInput, self._get_control)
        r("get_control_coverage", "Controls with and without evidence in the manifest.",
          NoInput, self._get_control_coverage)
        r("map_evidence_to_control", "Add a manifest row linking an evidence artifact to a control.",
          MapEvidenceInput, self._map_evidence_to_control)

        # Evidence
        r("store_evidence", "Store an evidence artifact (markdown with front matter, or raw JSON/YAML/text).",
          StoreEvidenceInput, self._store_evidence)
        r("list_evidence", "List evidence artifacts, optionally by category or control ID.",
          ListEvidenceInput, self._list_evidence)
        r("get_evidence_manifest", "Read the evidence manifest.",
          NoInput, self._get_evidence_manifest)
        r("update_manifest", "Replace the full content of the evidence manifest.",
          ManifestInput, self._update_manifest)

        # Assessment
        r("run_gap_analysis", "File a gap analysis report under gaps/.",
          GapAnalysisInput, self._run_gap_analysis)
        r("run_readiness_check", "File an audit readiness assessment under assessments/.",
          ReadinessInput, self._run_readiness_check)
        r("get_compliance_dashboard", "Policy, evidence and assessment status overview.",
          NoInput, self._get_compliance_dashboard)
        r("get_remediation_roadmap", "Remediation roadmap from the latest gap analysis.",
          NoInput, self._get_remediation_roadmap)

        # Agents
        r("list_agents", "List registered AI agents, optionally filtered.",
          ListAgentsInput, self._list_agents)
        r("get_agent", "Full registry entry for one agent.",
          AgentIdInput, self._get_agent)
        r("get_agent_coverage", "Agent governance coverage summary.",
          NoInput, self._get_agent_coverage)
        r("check_credential_rotation", "Agent credentials past their rotation threshold.",
          CredentialRotationInput, self._check_credential_rotation)
        r("run_agent_audit", "Audit active agents against the AGT control matrix.",
          NoInput, self._run_agent_audit)

        # Live signals
        r("gh_auth_status", "Check that the GitHub CLI is installed and authenticated.",
          NoInput, lambda p: github.gh_auth_status(self.config))
        r("gh_branch_protection", "Branch protection rules (CC5.2, CC8.1).",
          BranchInput, lambda p: github.gh_branch_protection(p.owner, p.repo, p.branch, self.config))
        r("gh_repo_security", "Secret scanning and Dependabot settings (CC7.1).",
          RepoInput, lambda p: github.gh_repo_security(p.owner, p.repo, self.config))
        r("gh_collaborators", "Repository collaborators and permission levels (CC5.1).",
          RepoInput, lambda p: github.gh_collaborators(p.owner, p.repo, self.config))
        r("gh_workflows", "CI/CD workflows and their state (CC8.1).",
          RepoInput, lambda p: github.gh_workflows(p.owner, p.repo, self.config))
        r("gam_auth_status", "Check that GAM is installed and authenticated.",
          NoInput, lambda p: workspace.gam_auth_status(self.config))
        r("gam_users", "Google Workspace directory users (CC5.1).",
          NoInput, lambda p: workspace.gam_users(self.config))
        r("gam_mfa_status", "2-step verification enrollment for all users (CC6.2).",
          NoInput, lambda p: workspace.gam_mfa_status(self.config))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _list_documents(self, p: ListDocumentsInput):
        docs = await self.store.list_documents(p.type, p.status)
        return text_response([d.summary() for d in docs])

    async def _read_document(self, p: PathInput):
        doc = await self.store.read_document(p.path)
        return text_response({"metadata": doc.metadata, "content": doc.content})

    async def _create_document(self, p: CreateDocumentInput):
        metadata = p.metadata.model_dump(exclude_none=True)
        entry = await self.store.create_document(p.type, p.filename, metadata, p.content)
        return text_response(f"Created document: {entry.relative_path}")

    async def _update_document(self, p: UpdateDocumentInput):
        await self.store.update_document(p.path, p.metadata, p.content)
        return text_response(f"Updated document: {p.path}")

    async def _update_document_status(self, p: UpdateStatusInput):
        await self.store.set_status(p.path, p.status)
        return text_response(f"Updated status of {p.path} to '{p.status}'")

    async def _list_controls(self, p: ListControlsInput):
        return text_response(await self.catalog.list_controls(p.criteria))

    async def _get_control(self, p: ControlIdInput):
        control = await self.catalog.get_control(p.id)
        return text_response(control.to_dict())

    async def _get_control_coverage(self, p: NoInput):
        return text_response(await self.catalog.get_control_coverage())

    async def _map_evidence_to_control(self, p: MapEvidenceInput):
        row = await self.ledger.map_evidence_to_control(
            p.control_id, p.evidence_file, p.collection_method, p.status,
        )
        return text_response(f"Mapped evidence to {p.control_id}:\n{row.render()}")

    async def _store_evidence(self, p: StoreEvidenceInput):
        relative = await self.ledger.store_evidence(
            p.category, p.filename, p.content, p.content_type, p.subcategory, p.control_ids,
        )
        message = f"Stored evidence: evidence/{relative}"
        if p.control_ids:
            message += f"\nLinked to controls: {', '.join(p.control_ids)}"
        return text_response(message)

    async def _list_evidence(self, p: ListEvidenceInput):
        return text_response(await self.ledger.list_evidence(p.category, p.control_id))

    async def _get_evidence_manifest(self, p: NoInput):
        try:
            manifest = await self.ledger.get_manifest()
        except NotFoundError:
            return text_response(MANIFEST_MISSING_HINT)
        return text_response({"metadata": manifest.metadata, "content": manifest.content})

    async def _update_manifest(self, p: ManifestInput):
        await self.ledger.update_manifest(p.content)
        return text_response("Evidence manifest updated")

    async def _run_gap_analysis(self, p: GapAnalysisInput):
        path = await self.assessment.run_gap_analysis(p.report_content)
        return text_response(f"Gap analysis report created: {path}")

    async def _run_readiness_check(self, p: ReadinessInput):
        path = await self.assessment.run_readiness_check(p.assessment_content)
        return text_response(f"Readiness assessment created: {path}")

    async def _get_compliance_dashboard(self, p: NoInput):
        return text_response(await self.assessment.get_compliance_dashboard())

    async def _get_remediation_roadmap(self, p: NoInput):
        roadmap = await self.assessment.get_remediation_roadmap()
        if roadmap["roadmap"] is None:
            return text_response(
                f"Latest gap report ({roadmap['source']}) has no Remediation Roadmap section."
            )
        return text_response(roadmap)

    async def _list_agents(self, p: ListAgentsInput):
        return text_response(
            await self.agents.list_agents(p.status, p.context_classification, p.risk_tier)
        )

    async def _get_agent(self, p: AgentIdInput):
        return text_response(await self.agents.get_agent(p.id))

    async def _get_agent_coverage(self, p: NoInput):
        return text_response(await self.agents.get_agent_coverage())

    async def _check_credential_rotation(self, p: CredentialRotationInput):
        threshold = p.rotation_threshold_days or self.config.credential_rotation_days
        return text_response(await self.agents.check_credential_rotation(threshold))

    async def _run_agent_audit(self, p: NoInput):
        return text_response(await self.agents.run_agent_audit())
