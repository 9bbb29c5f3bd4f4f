"""Attachment manager for loading vault files referenced by exported pages."""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from ..config_loader import ExportOptions
from ..errors import AttachmentMissing
from ..models import Attachment, normalize_path


class AttachmentManager:
    """
    Loads attachments from the vault for the pages of one export batch.

    This manager:
    1. Checks exclusion criteria (file size, type)
    2. Reads the file content and its modification time
    3. Builds an Attachment targeted at the same relative path
    4. Caches loaded attachments by source path
    """

    def __init__(
        self,
        vault_path: Union[str, Path],
        options: Optional[ExportOptions] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the attachment manager.

        Args:
            vault_path: Root directory of the source vault
            options: Export options (size limit and skipped types are read)
            logger: Logger instance
        """
        self.vault_path = Path(vault_path)
        self.options = options or ExportOptions()
        self.logger = logger or logging.getLogger('site_exporter.exporters.attachment_manager')

        self.max_file_size = self.options.max_attachment_size
        self.skip_file_types = [ext.lower() for ext in self.options.skip_file_types]

        self._cache: Dict[str, Attachment] = {}

        self.stats = {
            'total_attachments': 0,
            'loaded': 0,
            'skipped': 0,
            'failed': 0,
            'total_size_bytes': 0
        }

    def clear_cache(self) -> None:
        """Forget loaded attachments so the next batch re-reads the files."""
        self._cache.clear()

    def exists(self, source_path: str) -> bool:
        """Check whether a vault-relative path names an existing file."""
        return (self.vault_path / normalize_path(source_path)).is_file()

    def create_attachment(self, source_path: str, target_path: Optional[str] = None) -> Attachment:
        """
        Load a vault file as an attachment.

        Args:
            source_path: Vault-relative path of the file
            target_path: Output path (defaults to the source path)

        Returns:
            Attachment with content, byte length and modification time

        Raises:
            AttachmentMissing: If the file does not exist, is excluded or unreadable
        """
        source_path = normalize_path(source_path)
        if source_path in self._cache:
            return self._cache[source_path]

        self.stats['total_attachments'] += 1
        file_path = self.vault_path / source_path

        if not file_path.is_file():
            self.stats['failed'] += 1
            raise AttachmentMissing(source_path)

        stat = file_path.stat()
        should_skip, skip_reason = self._should_skip_attachment(file_path, stat.st_size)
        if should_skip:
            self.logger.info(f"Skipping attachment '{source_path}': {skip_reason}")
            self.stats['skipped'] += 1
            raise AttachmentMissing(source_path, skip_reason)

        try:
            content = file_path.read_bytes()
        except OSError as e:
            self.logger.error(f"Error reading attachment '{source_path}': {e}")
            self.stats['failed'] += 1
            raise AttachmentMissing(source_path, str(e)) from e

        attachment = Attachment(
            source_path=source_path,
            target_path=target_path or source_path,
            content=content,
            modified_time=int(stat.st_mtime * 1000)
        )
        self._cache[source_path] = attachment

        self.stats['loaded'] += 1
        self.stats['total_size_bytes'] += attachment.byte_length
        self.logger.debug(f"Loaded attachment '{source_path}' ({attachment.byte_length} bytes)")
        return attachment

    def _should_skip_attachment(self, file_path: Path, file_size: int) -> Tuple[bool, str]:
        """
        Check if an attachment should be skipped based on exclusion criteria.

        Args:
            file_path: Absolute path of the file
            file_size: Size in bytes

        Returns:
            Tuple of (should_skip, reason)
        """
        # 0 means unlimited
        if self.max_file_size > 0 and file_size > self.max_file_size:
            return (
                True,
                f"File size ({file_size} bytes) exceeds limit ({self.max_file_size} bytes)"
            )

        suffixes = file_path.suffixes
        extensions_to_check = []
        if suffixes:
            extensions_to_check.append(suffixes[-1].lower())
            # Multi-part extensions such as '.tar.gz'
            if len(suffixes) > 1:
                extensions_to_check.append(''.join(suffixes).lower())

        for ext in extensions_to_check:
            if ext in self.skip_file_types or ext.lstrip('.') in self.skip_file_types:
                return True, f"File type '{ext}' is in skip list"

        return False, ""

    def get_stats(self) -> Dict[str, int]:
        """Get attachment loading statistics."""
        return self.stats.copy()


__all__ = ['AttachmentManager']
