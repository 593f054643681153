"""
Tests for the GitHub and Google Workspace live-signal checks.

The CLI layer is mocked; each test feeds a canned CliSuccess/CliError.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from soc2_compliance.infra import github, workspace
from soc2_compliance.models import CliError, CliSuccess


def body(payload):
    return json.loads(payload["content"][0]["text"])


def findings(payload):
    return [(f["control_id"], f["status"]) for f in body(payload)["findings"]]


def mock_cli(result):
    return patch("soc2_compliance.infra.exec_cli", new=AsyncMock(return_value=result))


# =============================================================================
# GITHUB
# =============================================================================

class TestGitHub:
    @pytest.mark.asyncio
    async def test_auth_status(self):
        with mock_cli(CliSuccess(stderr="Logged in to github.com as octocat")) as cli:
            payload = await github.gh_auth_status()

        assert body(payload)["data"] == {
            "authenticated": True,
            "output": "Logged in to github.com as octocat",
        }
        cli.assert_awaited_once_with("gh", ["auth", "status"], parse_json=False)

    @pytest.mark.asyncio
    async def test_auth_status_not_installed(self):
        error = CliError(error="not_installed", message="gh CLI not found on PATH.")
        with mock_cli(error):
            payload = await github.gh_auth_status()

        assert payload["isError"] is True
        assert body(payload)["error"] == "not_installed"

    @pytest.mark.asyncio
    async def test_config_timeout_passed_through(self, config):
        with mock_cli(CliSuccess(stdout="ok")) as cli:
            await github.gh_auth_status(config)

        assert cli.await_args.kwargs["timeout_ms"] == config.cli_timeout_ms
        assert cli.await_args.kwargs["max_buffer"] == config.cli_max_buffer

    @pytest.mark.asyncio
    async def test_branch_protection_missing_is_finding(self):
        error = CliError(error="exec_error", message="HTTP 404", stderr="gh: Branch not protected (HTTP 404)", exit_code=1)
        with mock_cli(error):
            payload = await github.gh_branch_protection("acme", "api")

        assert "isError" not in payload
        assert body(payload)["data"] == {"protected": False}
        assert findings(payload) == [("CC8.1", "fail"), ("CC5.2", "fail")]

    @pytest.mark.asyncio
    async def test_branch_protection_other_error(self):
        error = CliError(error="exec_error", message="HTTP 403", stderr="HTTP 403", exit_code=1)
        with mock_cli(error):
            payload = await github.gh_branch_protection("acme", "api")

        assert payload["isError"] is True

    @pytest.mark.asyncio
    async def test_branch_protection_configured(self):
        rules = {
            "required_pull_request_reviews": {"required_approving_review_count": 1},
            "required_status_checks": {"strict": True},
            "enforce_admins": {"enabled": True},
        }
        with mock_cli(CliSuccess(parsed=rules)) as cli:
            payload = await github.gh_branch_protection("acme", "api", "release")

        assert cli.await_args.args[1] == ["api", "repos/acme/api/branches/release/protection"]
        assert findings(payload) == [("CC8.1", "pass"), ("CC8.1", "pass"), ("CC5.2", "pass")]
        assert body(payload)["tsc_controls"] == ["CC5.2", "CC8.1"]

    @pytest.mark.asyncio
    async def test_branch_protection_weak(self):
        rules = {"required_pull_request_reviews": {"required_approving_review_count": 0}}
        with mock_cli(CliSuccess(parsed=rules)):
            payload = await github.gh_branch_protection("acme", "api")

        assert findings(payload) == [("CC8.1", "warning"), ("CC8.1", "warning"), ("CC5.2", "warning")]

    @pytest.mark.asyncio
    async def test_repo_security(self):
        repo = {"security_and_analysis": {
            "secret_scanning": {"status": "enabled"},
            "secret_scanning_push_protection": {"status": "disabled"},
            "dependabot_security_updates": {"status": "enabled"},
        }}
        with mock_cli(CliSuccess(parsed=repo)):
            payload = await github.gh_repo_security("acme", "api")

        assert findings(payload) == [("CC7.1", "pass"), ("CC7.1", "warning"), ("CC7.1", "pass")]

    @pytest.mark.asyncio
    async def test_repo_security_unavailable(self):
        with mock_cli(CliSuccess(parsed={"name": "api"})):
            payload = await github.gh_repo_security("acme", "api")

        assert findings(payload) == [("CC7.1", "warning")]
        assert body(payload)["data"] == {"security_and_analysis": None}

    @pytest.mark.asyncio
    async def test_collaborators(self):
        people = [
            {"login": f"admin{i}", "role_name": "admin", "permissions": {"admin": True}}
            for i in range(4)
        ] + [{"login": "dev", "role_name": "write", "permissions": {"admin": False}}]
        with mock_cli(CliSuccess(parsed=people)):
            payload = await github.gh_collaborators("acme", "api")

        result = body(payload)
        assert findings(payload) == [("CC5.1", "info"), ("CC5.1", "warning")]
        assert "5 collaborator(s), 4 with admin access" in result["findings"][0]["description"]
        assert result["data"][-1] == {"login": "dev", "role": "write", "admin": False}

    @pytest.mark.asyncio
    async def test_workflows(self):
        flows = [
            {"id": 1, "name": "ci", "path": ".github/workflows/ci.yml", "state": "active"},
            {"id": 2, "name": "old", "path": ".github/workflows/old.yml", "state": "disabled_manually"},
        ]
        with mock_cli(CliSuccess(parsed=flows)):
            payload = await github.gh_workflows("acme", "api")

        assert findings(payload) == [("CC8.1", "pass"), ("CC8.1", "info")]

    @pytest.mark.asyncio
    async def test_no_workflows(self):
        with mock_cli(CliSuccess(parsed=[])):
            payload = await github.gh_workflows("acme", "api")

        assert findings(payload) == [("CC8.1", "warning")]


# =============================================================================
# GOOGLE WORKSPACE
# =============================================================================

USERS_CSV = """primaryEmail,name.fullName,suspended,isAdmin,creationTime
alice@example.com,Alice A,False,True,2024-01-01
bob@example.com,Bob B,True,False,2024-02-01
carol@example.com,Carol C,False,False,2024-03-01
"""

MFA_CSV = """primaryEmail,isEnrolledIn2Sv,isEnforcedIn2Sv
alice@example.com,True,False
bob@example.com,False,False
"""


class TestWorkspace:
    @pytest.mark.asyncio
    async def test_auth_status(self):
        with mock_cli(CliSuccess(stdout="GAMADV-XTD3 6.80\nPython 3.12\n")):
            payload = await workspace.gam_auth_status()

        assert body(payload)["data"] == {"authenticated": True, "version": "GAMADV-XTD3 6.80"}
        assert body(payload)["source"] == "google-workspace"

    @pytest.mark.asyncio
    async def test_users(self):
        with mock_cli(CliSuccess(stdout=USERS_CSV)):
            payload = await workspace.gam_users()

        result = body(payload)
        assert result["findings"][0]["description"] == "2 active user(s), 1 suspended, 1 admin(s)"
        assert result["data"][0] == {
            "email": "alice@example.com",
            "name": "Alice A",
            "suspended": False,
            "admin": True,
        }

    @pytest.mark.asyncio
    async def test_mfa_status(self):
        with mock_cli(CliSuccess(stdout=MFA_CSV)):
            payload = await workspace.gam_mfa_status()

        assert findings(payload) == [("CC6.2", "fail"), ("CC6.2", "pass"), ("CC6.2", "warning")]
        assert "bob@example.com" in body(payload)["findings"][0]["description"]

    @pytest.mark.asyncio
    async def test_mfa_status_error(self):
        error = CliError(error="timeout", message="gam command timed out after 30000ms.")
        with mock_cli(error):
            payload = await workspace.gam_mfa_status()

        assert payload["isError"] is True
        assert body(payload)["help"] is None
