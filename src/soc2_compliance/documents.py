"""
Document store over the compliance directory tree.

Layout:
    <root>/
    ├── controls/      TSC mapping documents
    ├── policies/
    ├── evidence/
    │   └── manifest.md   evidence ledger
    ├── gaps/
    ├── assessments/
    ├── inventory/
    ├── config/
    └── agents/

Every call re-reads from disk. Mutations are read-then-write with no
locking, so concurrent writers to one path race and the last write wins.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from . import frontmatter
from ._types import DocumentStatus, DocumentType, today
from .config import ComplianceConfig
from .exceptions import NotFoundError, ParseError
from .models import DocumentEntry, ParsedDocument

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".md"


class DocumentStore:
    """
    Typed access to markdown documents under the compliance root.

    Paths handed to read/update/set_status are relative to the root
    (e.g. ``policies/access.md``); absolute paths are accepted as-is.
    """

    def __init__(self, config: ComplianceConfig):
        """
        Initialize document store.

        Args:
            config: Toolkit configuration (compliance_root may be unset)
        """
        self.config = config

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def resolve_root(self) -> Path:
        """Configured compliance root, else ./compliance under the cwd."""
        if self.config.compliance_root is not None:
            return Path(self.config.compliance_root)
        return Path.cwd() / "compliance"

    def type_path(self, doc_type: Union[DocumentType, str]) -> Path:
        return self.resolve_root() / DocumentType(doc_type).value

    def resolve_path(self, path: Union[str, Path]) -> Path:
        """
        Turn a root-relative path into an absolute one.

        Absolute paths are accepted only when they lie under the root.

        Raises:
            NotFoundError: If the path escapes the root
        """
        candidate = Path(path)
        root = self.resolve_root()
        full = candidate if candidate.is_absolute() else root / candidate
        root_abs = os.path.abspath(root)
        full_abs = os.path.abspath(full)
        if os.path.commonpath([root_abs, full_abs]) != root_abs:
            raise NotFoundError(path, "Path is outside the compliance root")
        return full

    def relative_path(self, path: Path) -> str:
        return Path(os.path.relpath(path, self.resolve_root())).as_posix()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_documents(
        self,
        doc_type: Union[DocumentType, str],
        status: Optional[Union[DocumentStatus, str]] = None,
    ) -> List[DocumentEntry]:
        """
        List every document of a type, optionally filtered by status.

        Unparsable files are skipped. A missing type directory yields [].
        """
        doc_type = DocumentType(doc_type)
        status_filter = DocumentStatus(status).value if status else None
        files = await asyncio.to_thread(_find_markdown_files, self.type_path(doc_type))

        entries: List[DocumentEntry] = []
        for file_path in files:
            try:
                doc = await frontmatter.read_document(file_path)
            except (ParseError, OSError, UnicodeDecodeError) as e:
                logger.debug(f"Skipping unreadable document {file_path}: {e}")
                continue

            if status_filter and doc.metadata.get("status") != status_filter:
                continue

            entries.append(DocumentEntry(
                path=file_path,
                relative_path=self.relative_path(file_path),
                type=doc_type,
                metadata=doc.metadata,
            ))

        return entries

    async def read_document(self, path: Union[str, Path]) -> ParsedDocument:
        """
        Read one document.

        Raises:
            NotFoundError: If the file does not exist
            ParseError: If its front matter is malformed
        """
        full_path = self.resolve_path(path)
        try:
            return await frontmatter.read_document(full_path)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise NotFoundError(path) from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def write_document(
        self,
        path: Union[str, Path],
        metadata: Dict[str, Any],
        content: str,
    ) -> Path:
        """Overwrite a document, creating parent directories."""
        full_path = self.resolve_path(path)
        await frontmatter.write_document(full_path, metadata, content)
        logger.debug(f"Wrote document {full_path}")
        return full_path

    async def write_artifact(self, path: Union[str, Path], text: str) -> Path:
        """Write a non-markdown artifact verbatim (JSON, YAML, plain text)."""
        full_path = self.resolve_path(path)
        await asyncio.to_thread(frontmatter.write_text, full_path, text)
        logger.debug(f"Wrote artifact {full_path}")
        return full_path

    async def create_document(
        self,
        doc_type: Union[DocumentType, str],
        filename: str,
        metadata: Dict[str, Any],
        content: str,
    ) -> DocumentEntry:
        """
        Create a document under its type directory.

        Stamps last_reviewed with today's date.
        """
        doc_type = DocumentType(doc_type)
        type_dir = self.type_path(doc_type)
        await asyncio.to_thread(type_dir.mkdir, parents=True, exist_ok=True)

        full_path = self.resolve_path(f"{doc_type.value}/{filename}")
        stamped = {**metadata, "last_reviewed": today()}
        await frontmatter.write_document(full_path, stamped, content)

        logger.info(f"Created document {doc_type.value}/{filename}")

        return DocumentEntry(
            path=full_path,
            relative_path=self.relative_path(full_path),
            type=doc_type,
            metadata=stamped,
        )

    async def update_document(
        self,
        path: Union[str, Path],
        metadata: Optional[Dict[str, Any]] = None,
        content: Optional[str] = None,
    ) -> ParsedDocument:
        """
        Merge a metadata patch and optionally replace the body.

        Patch keys win, other keys are kept. last_updated is always stamped.
        """
        existing = await self.read_document(path)

        merged = {**existing.metadata, **(metadata or {}), "last_updated": today()}
        new_content = existing.content if content is None else content

        await self.write_document(path, merged, new_content)
        logger.info(f"Updated document {path}")

        return ParsedDocument(metadata=merged, content=new_content.strip())

    async def set_status(
        self,
        path: Union[str, Path],
        status: Union[DocumentStatus, str],
    ) -> ParsedDocument:
        """
        Move a document through its lifecycle.

        last_reviewed is stamped only when the new status is approved.
        """
        status = DocumentStatus(status)
        existing = await self.read_document(path)

        merged = {**existing.metadata, "status": status.value, "last_updated": today()}
        if status == DocumentStatus.APPROVED:
            merged["last_reviewed"] = today()

        await self.write_document(path, merged, existing.content)
        logger.info(f"Set status of {path} to '{status.value}'")

        return ParsedDocument(metadata=merged, content=existing.content)


def _find_markdown_files(directory: Path) -> List[Path]:
    """All .md files below a directory, sorted; [] if it is missing."""
    if not directory.is_dir():
        return []
    return sorted(
        p for p in directory.rglob(f"*{DOCUMENT_SUFFIX}") if p.is_file()
    )
