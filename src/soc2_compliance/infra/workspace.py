"""
Google Workspace checks via GAM.

GAM prints CSV rather than JSON, so output is decoded with parse_csv.
GAM writes booleans as "True"/"False".
"""

import logging
from typing import Any, Dict, List, Optional

from .._types import FindingStatus
from ..config import ComplianceConfig
from ..evidence import build_result
from ..executor import infra_error, infra_response, parse_csv
from ..models import Finding
from . import run_cli

logger = logging.getLogger(__name__)

SOURCE = "google-workspace"
ADMIN_WARNING_THRESHOLD = 3


def _is_true(value: Optional[str]) -> bool:
    return value == "True"


async def gam_auth_status(config: Optional[ComplianceConfig] = None) -> Dict[str, Any]:
    """Check that gam is installed and configured."""
    result = await run_cli("gam", ["version"], config, parse_json=False)
    if not result.ok:
        return infra_error(SOURCE, "gam_auth_status", result)

    version = result.stdout.strip().split("\n")[0]
    return infra_response(build_result(
        SOURCE, "gam_auth_status", [],
        {"authenticated": True, "version": version},
    ))


async def gam_users(config: Optional[ComplianceConfig] = None) -> Dict[str, Any]:
    """Directory users with suspension and admin flags (CC5.1)."""
    result = await run_cli(
        "gam",
        ["print", "users", "fields", "primaryEmail,name.fullName,suspended,isAdmin,creationTime"],
        config,
        parse_json=False,
    )
    if not result.ok:
        return infra_error(SOURCE, "gam_users", result)

    users = parse_csv(result.stdout)
    suspended = [u for u in users if _is_true(u.get("suspended"))]
    admins = [u for u in users if _is_true(u.get("isAdmin"))]
    active_count = len(users) - len(suspended)

    findings = [Finding(
        control_id="CC5.1",
        status=FindingStatus.INFO,
        description=f"{active_count} active user(s), {len(suspended)} suspended, {len(admins)} admin(s)",
    )]
    if len(admins) > ADMIN_WARNING_THRESHOLD:
        findings.append(Finding(
            control_id="CC5.1",
            status=FindingStatus.WARNING,
            description=f"{len(admins)} admin users, consider reducing to least privilege",
        ))

    data = [
        {
            "email": u.get("primaryEmail"),
            "name": u.get("name.fullName") or u.get("name"),
            "suspended": _is_true(u.get("suspended")),
            "admin": _is_true(u.get("isAdmin")),
        }
        for u in users
    ]
    return infra_response(build_result(SOURCE, "gam_users", ["CC5.1"], data, findings))


async def gam_mfa_status(config: Optional[ComplianceConfig] = None) -> Dict[str, Any]:
    """2-step verification enrollment and enforcement per user (CC6.2)."""
    result = await run_cli(
        "gam",
        ["print", "users", "fields", "primaryEmail,isEnrolledIn2Sv,isEnforcedIn2Sv"],
        config,
        parse_json=False,
    )
    if not result.ok:
        return infra_error(SOURCE, "gam_mfa_status", result)

    users = parse_csv(result.stdout)
    enrolled = [u for u in users if _is_true(u.get("isEnrolledIn2Sv"))]
    not_enrolled = [u for u in users if not _is_true(u.get("isEnrolledIn2Sv"))]
    enforced = [u for u in users if _is_true(u.get("isEnforcedIn2Sv"))]

    findings: List[Finding] = []
    if not_enrolled:
        emails = ", ".join(u.get("primaryEmail") or "" for u in not_enrolled)
        findings.append(Finding(
            control_id="CC6.2",
            status=FindingStatus.FAIL,
            description=f"{len(not_enrolled)} user(s) without 2-step verification: {emails}",
        ))
    if enrolled:
        findings.append(Finding(
            control_id="CC6.2",
            status=FindingStatus.PASS,
            description=f"{len(enrolled)} user(s) enrolled in 2-step verification",
        ))
    if enforced:
        findings.append(Finding(
            control_id="CC6.2",
            status=FindingStatus.PASS,
            description=f"2-step verification enforced for {len(enforced)} user(s)",
        ))
    else:
        findings.append(Finding(
            control_id="CC6.2",
            status=FindingStatus.WARNING,
            description="2-step verification is not enforced via admin policy",
        ))

    logger.debug(f"MFA: {len(enrolled)}/{len(users)} users enrolled")

    data = [
        {
            "email": u.get("primaryEmail"),
            "enrolled": _is_true(u.get("isEnrolledIn2Sv")),
            "enforced": _is_true(u.get("isEnforcedIn2Sv")),
        }
        for u in users
    ]
    return infra_response(build_result(SOURCE, "gam_mfa_status", ["CC6.2"], data, findings))
