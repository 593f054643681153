"""
Configuration management for the compliance toolkit.

Loads settings from environment variables and provides typed access.
The resulting object is passed explicitly to the store, ledger and tool
registry; nothing else reads the environment.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ComplianceConfig(BaseSettings):
    """Toolkit configuration loaded from environment."""

    # ========================================================================
    # Storage
    # ========================================================================

    compliance_root: Optional[Path] = Field(
        default=None,
        description="Compliance root directory (defaults to ./compliance)"
    )

    # ========================================================================
    # Process Invocation
    # ========================================================================

    cli_timeout_ms: int = Field(
        default=30000,
        ge=1000,
        le=600000,
        description="Default timeout for external CLI calls in milliseconds"
    )

    cli_max_buffer: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Maximum captured stdout+stderr bytes before the call is killed"
    )

    # ========================================================================
    # Agent Governance
    # ========================================================================

    credential_rotation_days: int = Field(
        default=90,
        ge=1,
        description="Default credential rotation threshold in days"
    )

    # ========================================================================
    # Logging
    # ========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in valid:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid}")
        return v_upper

    @field_validator('compliance_root', mode='before')
    @classmethod
    def empty_root_is_unset(cls, v):
        """An empty COMPLIANCE_ROOT behaves like an absent one."""
        if v == "":
            return None
        return v

    model_config = SettingsConfigDict(
        validate_assignment=True,
        extra='forbid'
    )


def load_config(**overrides) -> ComplianceConfig:
    """
    Load configuration from environment variables.

    Keyword overrides win over the environment (used by tests and embedders).

    Raises:
        pydantic.ValidationError: If a setting is invalid
    """
    return ComplianceConfig(**overrides)
