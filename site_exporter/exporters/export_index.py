"""Export index recording the state of every file emitted by previous runs."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Union

from ..errors import IndexCorruptError
from ..models import (
    Attachment,
    IndexRecord,
    Page,
    SourceDocument,
    is_page_path,
    normalize_path,
)

INDEX_FORMAT_VERSION = 1

OutputItem = Union[Attachment, Page]


class ExportIndex:
    """
    In-memory view of the export index: output path -> IndexRecord.

    Keys are forward-slash relative target paths. The index answers "has this
    output changed since the last export?" by comparing modified time and byte
    length. Equal size with an equal or older mtime is reported as unchanged
    even when the bytes differ.
    """

    def __init__(self, records: Optional[Iterable[IndexRecord]] = None, existed: bool = False):
        """
        Initialize the index.

        Args:
            records: Records loaded from a previous run
            existed: Whether a persisted index was found for this site
        """
        self._records: Dict[str, IndexRecord] = {}
        for record in records or []:
            self._records[record.path] = record
        self.existed = existed

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, path: str) -> bool:
        return self.has_record(path)

    def __iter__(self) -> Iterator[IndexRecord]:
        return iter(self._records.values())

    @property
    def is_empty(self) -> bool:
        return not self._records

    def paths(self) -> List[str]:
        return sorted(self._records)

    def lookup(self, path: str) -> Optional[IndexRecord]:
        """Return the record for an output path, if any."""
        return self._records.get(normalize_path(path))

    def has_record(self, path: str) -> bool:
        return normalize_path(path) in self._records

    def has_changed(self, item: Union[OutputItem, SourceDocument], target_path: Optional[str] = None) -> bool:
        """
        Check whether an output differs from its recorded state.

        Args:
            item: Attachment, Page, or SourceDocument (the latter needs target_path)
            target_path: Output path to compare against; defaults to item.target_path

        Returns:
            True if unrecorded, newer than the record, or of a different size
        """
        if isinstance(item, SourceDocument):
            if target_path is None:
                raise ValueError("target_path is required for source documents")
            modified_time, byte_length = item.modified_time, item.size
        else:
            target_path = target_path or item.target_path
            modified_time, byte_length = item.modified_time, item.byte_length

        record = self.lookup(target_path)
        if record is None:
            return True
        if modified_time > record.modified_time:
            return True
        return byte_length != record.source_byte_length

    def has_document_changed(self, document: SourceDocument, target_path: str) -> bool:
        return self.has_changed(document, target_path)

    def commit(
        self,
        final_output_set: Iterable[OutputItem],
        retain_paths: Optional[Iterable[str]] = None,
        prune: bool = False
    ) -> 'ExportIndex':
        """
        Build the index for the end of a run.

        Every item of the final output set gets a fresh record. Records of
        paths not produced this run are carried over unchanged, unless
        `prune` is set, in which case page records that are neither produced
        nor listed in `retain_paths` are dropped. Non-page records are always
        carried over.

        Args:
            final_output_set: Deduplicated pages and attachments of this run
            retain_paths: Page paths still valid although not rebuilt
            prune: Drop stale page records

        Returns:
            New ExportIndex (this instance is left unchanged)
        """
        produced: Dict[str, IndexRecord] = {}
        for item in final_output_set:
            record = IndexRecord(
                path=item.target_path,
                modified_time=item.modified_time,
                source_byte_length=item.byte_length
            )
            produced[record.path] = record

        retained: Set[str] = {normalize_path(path) for path in retain_paths or []}
        records: Dict[str, IndexRecord] = {}
        for path, record in self._records.items():
            if path in produced:
                continue
            if prune and is_page_path(path) and path not in retained:
                continue
            records[path] = record
        records.update(produced)

        return ExportIndex(records.values(), existed=True)

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        """Serialize records in the persisted layout, sorted by path."""
        return {path: self._records[path].to_dict() for path in sorted(self._records)}


class IndexStore:
    """Reads and writes the export index as a JSON document."""

    def __init__(self, index_path: Union[str, Path], logger: Optional[logging.Logger] = None):
        """
        Initialize the store.

        Args:
            index_path: Location of the JSON index file
            logger: Logger instance
        """
        self.index_path = Path(index_path)
        self.logger = logger or logging.getLogger('site_exporter.exporters.export_index')

    def exists(self) -> bool:
        return self.index_path.is_file()

    def load(self) -> ExportIndex:
        """
        Load the persisted index.

        Returns:
            ExportIndex (empty with existed=False when no index file exists)

        Raises:
            IndexCorruptError: If the file cannot be parsed
            OSError: If the file exists but cannot be read
        """
        if not self.exists():
            self.logger.info(f"No export index at {self.index_path}")
            return ExportIndex(existed=False)

        raw = self.index_path.read_bytes()
        try:
            data = json.loads(raw.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise IndexCorruptError(f"Export index {self.index_path} is not valid JSON: {e}") from e

        files = data.get('files') if isinstance(data, dict) else None
        if not isinstance(files, dict):
            raise IndexCorruptError(f"Export index {self.index_path} has no 'files' mapping")

        records = []
        for path, entry in files.items():
            if not isinstance(entry, dict):
                raise IndexCorruptError(f"Export index entry for '{path}' is not an object")
            try:
                records.append(IndexRecord(
                    path=path,
                    modified_time=int(entry['modifiedTime']),
                    source_byte_length=int(entry['sourceSize'])
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise IndexCorruptError(f"Export index entry for '{path}' is malformed: {e}") from e

        self.logger.info(f"Loaded export index with {len(records)} records from {self.index_path}")
        return ExportIndex(records, existed=True)

    def save(self, index: ExportIndex) -> None:
        """
        Persist the index atomically.

        The document is written to a temporary file in the same directory and
        moved over the previous index, so readers see either the old or the
        new index.

        Args:
            index: Index to persist

        Raises:
            OSError: If the index cannot be written
        """
        self.index_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {'version': INDEX_FORMAT_VERSION, 'files': index.to_dict()}

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.index_path.name}.", suffix=".tmp", dir=str(self.index_path.parent)
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.index_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        self.logger.info(f"Saved export index with {len(index)} records to {self.index_path}")


__all__ = ['ExportIndex', 'IndexStore', 'INDEX_FORMAT_VERSION']
