"""SOC 2 Compliance Toolkit - document store, control catalog and live-signal checks"""

__version__ = "0.1.0"

# Configuration and errors
from .config import ComplianceConfig, load_config
from .exceptions import ComplianceError, NotFoundError, ParseError

# Document storage
from .documents import DocumentStore
from .frontmatter import parse_document, serialize_document
from .models import (
    CliError,
    CliSuccess,
    ControlEntry,
    DocumentEntry,
    DocumentMetadata,
    EvidenceLedgerRow,
    Finding,
    InfraToolResult,
    ParsedDocument,
)

# Controls, evidence and assessments
from .controls import ControlCatalog, parse_controls
from .evidence import EvidenceLedger, append_evidence_row, build_result
from .assessment import AssessmentService
from .agents import AgentRegistry

# Process invocation and tool boundary
from .executor import exec_cli, parse_csv
from .tools import ToolRegistry

__all__ = [
    # Version
    "__version__",

    # Configuration
    "ComplianceConfig",
    "load_config",

    # Errors
    "ComplianceError",
    "NotFoundError",
    "ParseError",

    # Documents
    "DocumentStore",
    "parse_document",
    "serialize_document",
    "DocumentMetadata",
    "DocumentEntry",
    "ParsedDocument",

    # Controls
    "ControlCatalog",
    "ControlEntry",
    "parse_controls",

    # Evidence
    "EvidenceLedger",
    "EvidenceLedgerRow",
    "append_evidence_row",
    "build_result",
    "Finding",
    "InfraToolResult",

    # Assessment and agents
    "AssessmentService",
    "AgentRegistry",

    # Process invocation
    "exec_cli",
    "parse_csv",
    "CliSuccess",
    "CliError",

    # Tools
    "ToolRegistry",
]
