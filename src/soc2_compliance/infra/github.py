"""
GitHub checks via the gh CLI.

Branch protection and workflows cover change management (CC8.1, CC5.2),
repository security features cover monitoring (CC7.1) and collaborators
cover logical access (CC5.1).
"""

import logging
from typing import Any, Dict, List, Optional

from .._types import FindingStatus
from ..config import ComplianceConfig
from ..evidence import build_result
from ..executor import infra_error, infra_response
from ..models import Finding
from . import run_cli

logger = logging.getLogger(__name__)

SOURCE = "github"
ADMIN_WARNING_THRESHOLD = 3


def _finding(control_id: str, status: FindingStatus, description: str) -> Finding:
    return Finding(control_id=control_id, status=status, description=description)


async def gh_auth_status(config: Optional[ComplianceConfig] = None) -> Dict[str, Any]:
    """Check that gh is installed and logged in."""
    result = await run_cli("gh", ["auth", "status"], config, parse_json=False)
    if not result.ok:
        return infra_error(SOURCE, "gh_auth_status", result)

    return infra_response(build_result(
        SOURCE, "gh_auth_status", [],
        {"authenticated": True, "output": result.stderr or result.stdout},
    ))


async def gh_branch_protection(
    owner: str,
    repo: str,
    branch: str = "main",
    config: Optional[ComplianceConfig] = None,
) -> Dict[str, Any]:
    """
    Branch protection rules for one branch.

    A 404 from the API means no protection is configured, which is reported
    as failing findings rather than an error.
    """
    controls = ["CC5.2", "CC8.1"]
    result = await run_cli(
        "gh", ["api", f"repos/{owner}/{repo}/branches/{branch}/protection"], config,
    )

    if not result.ok:
        if result.exit_code == 1 and "404" in (result.stderr or ""):
            logger.info(f"No branch protection on {owner}/{repo}@{branch}")
            missing = f"No branch protection configured on {branch}"
            return infra_response(build_result(
                SOURCE, "gh_branch_protection", controls,
                {"protected": False},
                [
                    _finding("CC8.1", FindingStatus.FAIL, missing),
                    _finding("CC5.2", FindingStatus.FAIL, missing),
                ],
            ))
        return infra_error(SOURCE, "gh_branch_protection", result)

    data = result.parsed or {}
    findings: List[Finding] = []

    reviews = data.get("required_pull_request_reviews")
    if reviews:
        count = reviews.get("required_approving_review_count") or 0
        if count > 0:
            findings.append(_finding("CC8.1", FindingStatus.PASS, f"Requires {count} approving review(s)"))
        else:
            findings.append(_finding(
                "CC8.1", FindingStatus.WARNING,
                "Pull request reviews enabled but 0 approvals required",
            ))
    else:
        findings.append(_finding("CC8.1", FindingStatus.FAIL, "No pull request review requirement configured"))

    status_checks = data.get("required_status_checks")
    if status_checks:
        strict = " (strict, branch must be up to date)" if status_checks.get("strict") else ""
        findings.append(_finding("CC8.1", FindingStatus.PASS, f"Status checks required{strict}"))
    else:
        findings.append(_finding("CC8.1", FindingStatus.WARNING, "No required status checks configured"))

    if (data.get("enforce_admins") or {}).get("enabled"):
        findings.append(_finding("CC5.2", FindingStatus.PASS, "Branch protection enforced for administrators"))
    else:
        findings.append(_finding("CC5.2", FindingStatus.WARNING, "Administrators can bypass branch protection"))

    return infra_response(build_result(SOURCE, "gh_branch_protection", controls, data, findings))


async def gh_repo_security(
    owner: str,
    repo: str,
    config: Optional[ComplianceConfig] = None,
) -> Dict[str, Any]:
    """Secret scanning, push protection and Dependabot settings."""
    result = await run_cli("gh", ["api", f"repos/{owner}/{repo}"], config)
    if not result.ok:
        return infra_error(SOURCE, "gh_repo_security", result)

    security = (result.parsed or {}).get("security_and_analysis")
    findings: List[Finding] = []

    if not security:
        findings.append(_finding(
            "CC7.1", FindingStatus.WARNING,
            "Security features data not available (may require admin access or GitHub Advanced Security)",
        ))
    else:
        def feature(name: str) -> Optional[str]:
            return (security.get(name) or {}).get("status")

        if feature("secret_scanning") == "enabled":
            findings.append(_finding("CC7.1", FindingStatus.PASS, "Secret scanning is enabled"))
        else:
            findings.append(_finding("CC7.1", FindingStatus.FAIL, "Secret scanning is not enabled"))

        push_protection = feature("secret_scanning_push_protection")
        if push_protection == "enabled":
            findings.append(_finding("CC7.1", FindingStatus.PASS, "Secret scanning push protection is enabled"))
        elif push_protection:
            findings.append(_finding("CC7.1", FindingStatus.WARNING, "Secret scanning push protection is not enabled"))

        dependabot = feature("dependabot_security_updates")
        if dependabot == "enabled":
            findings.append(_finding("CC7.1", FindingStatus.PASS, "Dependabot security updates are enabled"))
        elif dependabot:
            findings.append(_finding("CC7.1", FindingStatus.WARNING, "Dependabot security updates are not enabled"))

    return infra_response(build_result(
        SOURCE, "gh_repo_security", ["CC7.1"],
        {"security_and_analysis": security or None},
        findings,
    ))


async def gh_collaborators(
    owner: str,
    repo: str,
    config: Optional[ComplianceConfig] = None,
) -> Dict[str, Any]:
    """Collaborators and how many of them hold admin rights."""
    result = await run_cli(
        "gh", ["api", f"repos/{owner}/{repo}/collaborators", "--paginate"], config,
    )
    if not result.ok:
        return infra_error(SOURCE, "gh_collaborators", result)

    collaborators = result.parsed or []
    admins = [
        c for c in collaborators
        if c.get("role_name") == "admin" or (c.get("permissions") or {}).get("admin") is True
    ]

    findings = [_finding(
        "CC5.1", FindingStatus.INFO,
        f"{len(collaborators)} collaborator(s), {len(admins)} with admin access",
    )]
    if len(admins) > ADMIN_WARNING_THRESHOLD:
        findings.append(_finding(
            "CC5.1", FindingStatus.WARNING,
            f"{len(admins)} admin users, consider reducing to least privilege",
        ))

    data = [
        {
            "login": c.get("login"),
            "role": c.get("role_name") or "unknown",
            "admin": (c.get("permissions") or {}).get("admin", False),
        }
        for c in collaborators
    ]
    return infra_response(build_result(SOURCE, "gh_collaborators", ["CC5.1"], data, findings))


async def gh_workflows(
    owner: str,
    repo: str,
    config: Optional[ComplianceConfig] = None,
) -> Dict[str, Any]:
    """CI/CD workflows and whether any are active."""
    result = await run_cli(
        "gh",
        ["workflow", "list", "--repo", f"{owner}/{repo}", "--json", "id,name,path,state"],
        config,
    )
    if not result.ok:
        return infra_error(SOURCE, "gh_workflows", result)

    workflows = result.parsed or []
    active = [w for w in workflows if w.get("state") == "active"]
    inactive = len(workflows) - len(active)

    findings: List[Finding] = []
    if active:
        findings.append(_finding("CC8.1", FindingStatus.PASS, f"{len(active)} active CI/CD workflow(s) configured"))
    else:
        findings.append(_finding("CC8.1", FindingStatus.WARNING, "No active CI/CD workflows found"))
    if inactive:
        findings.append(_finding("CC8.1", FindingStatus.INFO, f"{inactive} disabled/inactive workflow(s)"))

    return infra_response(build_result(SOURCE, "gh_workflows", ["CC8.1"], workflows, findings))
