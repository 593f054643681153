"""
Error taxonomy for the document store and tool layer.

Process invocation failures are not exceptions: they come back as
``CliError`` values from ``executor.exec_cli`` so every caller renders them
the same way.
"""

from pathlib import Path
from typing import Optional, Union


class ComplianceError(Exception):
    """Base class for errors surfaced to tool callers."""

    code = "E_COMPLIANCE"


class NotFoundError(ComplianceError):
    """Requested document, control, or agent does not exist."""

    code = "E_NOT_FOUND"

    def __init__(self, target: Union[str, Path], hint: Optional[str] = None):
        self.target = str(target)
        self.hint = hint
        message = f"Not found: {self.target}"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class ParseError(ComplianceError):
    """Document front matter could not be parsed."""

    code = "E_PARSE"

    def __init__(self, reason: str, path: Optional[Union[str, Path]] = None):
        self.reason = reason
        self.path = str(path) if path is not None else None
        if self.path:
            super().__init__(f"Malformed front matter in {self.path}: {reason}")
        else:
            super().__init__(f"Malformed front matter: {reason}")
