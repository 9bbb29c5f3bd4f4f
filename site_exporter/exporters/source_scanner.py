"""Source scanner listing the vault documents handed to the exporter.

Documents are matched against include/exclude glob patterns, their YAML
frontmatter is parsed, and they are returned in a stable (sorted) order.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from tqdm import tqdm

from ..models import MediaKind, SourceDocument
from ..renderers.markdown_renderer import extract_frontmatter


class SourceScanner:
    """Scans a vault directory for exportable documents."""

    def __init__(
        self,
        vault_path: Union[str, Path],
        include: Optional[List[str]] = None,
        exclude: Optional[List[str]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the scanner.

        Args:
            vault_path: Root directory of the vault
            include: Glob patterns of exported documents
            exclude: Glob patterns to leave out
            logger: Logger instance
        """
        self.vault_path = Path(vault_path)
        self.include = include if include is not None else ['**/*.md']
        self.exclude = exclude or []
        self.logger = logger or logging.getLogger('site_exporter.exporters.source_scanner')

        self.stats = {
            'files_scanned': 0,
            'documents_found': 0,
            'files_excluded': 0,
            'frontmatter_errors': 0,
        }

    def scan(self, show_progress: bool = False) -> List[SourceDocument]:
        """
        List the vault documents to export.

        Args:
            show_progress: Display a progress bar while reading frontmatter

        Returns:
            SourceDocuments sorted by path

        Raises:
            ValueError: If the vault directory does not exist
        """
        if not self.vault_path.is_dir():
            raise ValueError(f"Vault directory does not exist: {self.vault_path}")

        self.logger.info(f"Scanning {self.vault_path} for documents")

        included = self._glob(self.include)
        excluded = self._glob(self.exclude)

        candidates = []
        for file_path in sorted(self.vault_path.rglob('*')):
            if not file_path.is_file():
                continue
            self.stats['files_scanned'] += 1
            relative = file_path.relative_to(self.vault_path).as_posix()
            if relative not in included:
                continue
            if self._is_excluded(relative, excluded):
                self.stats['files_excluded'] += 1
                continue
            candidates.append((relative, file_path))

        documents = []
        for relative, file_path in tqdm(candidates, desc="Scanning vault", unit="file", disable=not show_progress):
            documents.append(self._read_document(relative, file_path))

        self.stats['documents_found'] = len(documents)
        self.logger.info(f"Found {len(documents)} document(s) to export")
        return documents

    def _read_document(self, relative: str, file_path: Path) -> SourceDocument:
        stat = file_path.stat()
        frontmatter: Dict[str, Any] = {}

        if MediaKind.from_path(relative) == MediaKind.DOCUMENT:
            try:
                content = file_path.read_text(encoding='utf-8')
            except (OSError, UnicodeDecodeError) as e:
                self.logger.warning(f"Failed to read frontmatter of {relative}: {e}")
                self.stats['frontmatter_errors'] += 1
            else:
                frontmatter, _ = extract_frontmatter(content)

        return SourceDocument(
            path=relative,
            size=stat.st_size,
            modified_time=int(stat.st_mtime * 1000),
            frontmatter=frontmatter,
            absolute_path=str(file_path)
        )

    def _glob(self, patterns: List[str]) -> Set[str]:
        """Vault-relative paths (files and folders) matched by glob patterns.

        `*` stays within one path segment; `**` spans folders, including none,
        so `**/*.md` also matches notes at the vault root.
        """
        matched: Set[str] = set()
        for pattern in patterns:
            for path in self.vault_path.glob(pattern):
                matched.add(path.relative_to(self.vault_path).as_posix())
        return matched

    @staticmethod
    def _is_excluded(relative: str, excluded: Set[str]) -> bool:
        if relative in excluded:
            return True
        # A matched folder excludes everything below it
        return any(relative.startswith(path + '/') for path in excluded)

    def get_stats(self) -> Dict[str, Any]:
        """Get scanning statistics."""
        return self.stats.copy()


__all__ = ['SourceScanner']
