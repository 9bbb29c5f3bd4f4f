"""Site writer saving the final pages and attachments of a batch to disk."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from ..models import Attachment, Page

OutputItem = Union[Attachment, Page]


class SiteWriter:
    """
    Writes exported files below an output directory.

    Files whose bytes are identical to the existing file are left untouched.
    Write errors are logged and counted per file; they never stop the batch.
    """

    def __init__(self, output_directory: Union[str, Path], logger: Optional[logging.Logger] = None):
        """
        Initialize the site writer.

        Args:
            output_directory: Root directory of the exported site
            logger: Logger instance
        """
        self.output_directory = Path(output_directory)
        self.logger = logger or logging.getLogger('site_exporter.exporters.site_writer')

        self.stats = {
            'written': 0,
            'unchanged': 0,
            'failed': 0,
            'total_size_bytes': 0,
            'errors': []
        }

    def write(self, files: Iterable[OutputItem]) -> Dict[str, Any]:
        """
        Write every file of the final output set.

        Args:
            files: Pages and attachments (an ExportResult's `files`)

        Returns:
            Statistics dictionary
        """
        for item in files:
            self._write_file(item)

        self.logger.info(
            f"Wrote {self.stats['written']} file(s) to {self.output_directory} "
            f"({self.stats['unchanged']} unchanged, {self.stats['failed']} failed, "
            f"{self._format_bytes(self.stats['total_size_bytes'])})"
        )
        return self.get_stats()

    def _write_file(self, item: OutputItem) -> bool:
        target = self.output_directory / item.target_path
        content = item.content

        try:
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError as e:
                parent = target.parent.parent
                self.logger.error(
                    f"Permission denied creating directory {target.parent}: {e}. "
                    f"Parent exists: {parent.exists()}, "
                    f"writable: {os.access(str(parent), os.W_OK) if parent.exists() else False}"
                )
                raise

            if target.is_file() and target.stat().st_size == len(content):
                if target.read_bytes() == content:
                    self.logger.debug(f"Unchanged, not rewriting {target}")
                    self.stats['unchanged'] += 1
                    return False

            target.write_bytes(content)
        except PermissionError as e:
            self.logger.error(f"Permission denied writing to {target}: {e}")
            self._record_error(item, f"Permission denied: {e}")
            return False
        except OSError as e:
            self.logger.error(f"IO error writing to {target}: {e}")
            self._record_error(item, f"IO error: {e}")
            return False

        self.stats['written'] += 1
        self.stats['total_size_bytes'] += len(content)
        self.logger.debug(f"Successfully wrote {len(content)} bytes to {target}")
        return True

    def _record_error(self, item: OutputItem, message: str) -> None:
        self.stats['failed'] += 1
        self.stats['errors'].append({'path': item.target_path, 'error': message})

    def get_stats(self) -> Dict[str, Any]:
        """Get writer statistics."""
        stats = self.stats.copy()
        stats['errors'] = list(self.stats['errors'])
        return stats

    @staticmethod
    def _format_bytes(bytes_val: float) -> str:
        """Format bytes to human-readable string."""
        if bytes_val == 0:
            return "0 B"

        for unit in ['B', 'KB', 'MB', 'GB']:
            if bytes_val < 1024.0:
                return f"{bytes_val:.1f} {unit}"
            bytes_val /= 1024.0

        return f"{bytes_val:.1f} TB"


__all__ = ['SiteWriter']
