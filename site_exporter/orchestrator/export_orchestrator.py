"""
Export orchestrator coordinating one incremental export batch.

A batch moves through Init → PerFileLoop → Aggregate → Dedup/Filter →
Commit → Done. Cancellation is checked at every document boundary and leads
to the Cancelled state without touching the persisted export index.
"""

import logging
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Union

from tqdm import tqdm

from ..config_loader import ExportOptions
from ..errors import ExportAbortedError, IndexCorruptError, PageBuildSkipped
from ..exporters.asset_provider import StaticAssetProvider
from ..exporters.attachment_manager import AttachmentManager
from ..exporters.export_index import ExportIndex, IndexStore
from ..exporters.link_resolver import LinkResolver, PathRegistry
from ..exporters.page_builder import PageBuilder
from ..logger import ProgressTracker, log_section
from ..models import (
    Attachment,
    DocumentStatus,
    ExportSummary,
    MediaKind,
    Page,
    SourceDocument,
    is_page_path,
)
from ..renderers import BaseRenderer

OutputItem = Union[Attachment, Page]


class ExportState(Enum):
    """States of one export batch."""
    INIT = "init"
    PER_FILE_LOOP = "per_file_loop"
    AGGREGATE = "aggregate"
    DEDUP_FILTER = "dedup_filter"
    COMMIT = "commit"
    DONE = "done"
    CANCELLED = "cancelled"


class CancellationToken:
    """Cooperative cancellation signal shared with the caller."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled


@dataclass
class ExportResult:
    """Final page and attachment set of a batch, handed to the file writer."""

    pages: List[Page] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    files: List[OutputItem] = field(default_factory=list)
    summary: ExportSummary = field(default_factory=ExportSummary)
    incremental: bool = False
    state: ExportState = ExportState.INIT
    cancelled: bool = False
    index: Optional[ExportIndex] = None
    duration: float = 0.0

    @property
    def index_records(self) -> int:
        return len(self.index) if self.index is not None else 0

    @property
    def unresolved_links(self) -> int:
        return sum(len(page.unresolved_links) for page in self.pages)


def dedup_and_filter(
    items: Iterable[OutputItem],
    index: ExportIndex,
    incremental: bool,
    immutable_fonts: bool = True
) -> List[OutputItem]:
    """
    Reduce the aggregated output list to the files that must be written.

    The first pass keeps the first item of every target path. In incremental
    runs the second pass keeps all pages, drops recorded fonts whose byte
    length is unchanged (fonts are immutable once published), and keeps other
    files only when the index reports them as changed.

    Args:
        items: Aggregated pages, attachments and shared assets
        index: Export index loaded at the start of the batch
        incremental: Whether the batch is incremental
        immutable_fonts: Apply the font rule

    Returns:
        Final output list in aggregate order
    """
    seen = set()
    unique: List[OutputItem] = []
    for item in items:
        if item.target_path in seen:
            continue
        seen.add(item.target_path)
        unique.append(item)

    if not incremental:
        return unique

    kept: List[OutputItem] = []
    for item in unique:
        if is_page_path(item.target_path):
            kept.append(item)
            continue

        record = index.lookup(item.target_path)
        if immutable_fonts and item.media_kind == MediaKind.FONT and record is not None:
            if item.byte_length != record.source_byte_length:
                kept.append(item)
            continue

        if index.has_changed(item):
            kept.append(item)

    return kept


class ExportOrchestrator:
    """Runs export batches over a set of source documents."""

    def __init__(
        self,
        options: ExportOptions,
        renderer: BaseRenderer,
        index_store: IndexStore,
        attachment_manager: Optional[AttachmentManager] = None,
        asset_provider: Optional[StaticAssetProvider] = None,
        logger: Optional[logging.Logger] = None,
        show_progress: bool = True
    ):
        """
        Initialize the export orchestrator.

        Args:
            options: Export options
            renderer: Renderer used for every rebuilt document
            index_store: Persistence of the export index
            attachment_manager: Loads attachments referenced by pages
            asset_provider: Shared assets appended to every batch
            logger: Optional logger instance
            show_progress: Show a progress bar on interactive terminals
        """
        self.options = options
        self.renderer = renderer
        self.index_store = index_store
        self.attachment_manager = attachment_manager
        self.asset_provider = asset_provider
        self.logger = logger or logging.getLogger('site_exporter.orchestrator.export_orchestrator')
        self.show_progress = show_progress
        self.state = ExportState.INIT

    def export(
        self,
        documents: Sequence[SourceDocument],
        force_full: bool = False,
        cancel_token: Optional[CancellationToken] = None
    ) -> ExportResult:
        """
        Run one export batch.

        Args:
            documents: Source documents in a stable order
            force_full: Rebuild every document even if unchanged
            cancel_token: Cooperative cancellation signal

        Returns:
            ExportResult with the final output set (cancelled=True and no
            files when the batch was cancelled)

        Raises:
            ExportAbortedError: If the export index cannot be loaded or persisted
        """
        start_time = time.time()
        token = cancel_token or CancellationToken()
        self.state = ExportState.INIT
        log_section("Export")

        index = self._load_index()
        incremental = self.options.incremental_export and not force_full and index.existed
        self.logger.info(
            f"Exporting {len(documents)} document(s) "
            f"({'incremental' if incremental else 'full'} export)"
        )

        if self.attachment_manager is not None:
            self.attachment_manager.clear_cache()
        if self.asset_provider is not None:
            self.asset_provider.clear_cache()

        registry = PathRegistry()
        builder = PageBuilder(
            self.options,
            registry,
            LinkResolver(registry, self.options),
            self.attachment_manager,
            self.asset_provider,
        )
        for document in documents:
            registry.register_document(document.path, builder.target_path_for(document))

        summary = ExportSummary()
        pages: List[Page] = []
        retained: List[str] = []

        self.state = ExportState.PER_FILE_LOOP
        with ProgressTracker(total_items=len(documents), item_type='documents') as tracker:
            for document in tqdm(documents, desc="Exporting", unit="doc",
                                 disable=not self._should_show_progress()):
                if token.is_cancelled:
                    return self._cancelled(summary, incremental, start_time)

                target_path = builder.target_path_for(document)
                if incremental and not index.has_changed(document, target_path):
                    self.logger.debug(f"Unchanged, skipping {document.path}")
                    summary.mark(document.path, DocumentStatus.SKIPPED_UNCHANGED)
                    retained.append(target_path)
                    tracker.increment(skipped=True)
                    continue

                try:
                    render_result = self.renderer.render(document, self.options)
                    page = builder.build(document, render_result)
                except PageBuildSkipped as e:
                    self.logger.warning(f"No page produced for {document.path}: {e.reason}")
                    summary.mark(document.path, DocumentStatus.FAILED, e.reason)
                    retained.append(target_path)
                    tracker.increment(success=False)
                    continue
                except Exception as e:
                    self.logger.error(f"Failed to export {document.path}: {e}", exc_info=True)
                    summary.mark(document.path, DocumentStatus.FAILED, str(e))
                    retained.append(target_path)
                    tracker.increment(success=False)
                    continue

                pages.append(page)
                summary.mark(document.path, DocumentStatus.REBUILT)
                tracker.increment(success=True)

        if token.is_cancelled:
            return self._cancelled(summary, incremental, start_time)

        self.state = ExportState.AGGREGATE
        items: List[OutputItem] = []
        for page in pages:
            items.extend(page.attachments)
            items.append(page)
        if self.asset_provider is not None:
            items.extend(self.asset_provider.get_asset_downloads())

        self.state = ExportState.DEDUP_FILTER
        final_files = dedup_and_filter(items, index, incremental, self.options.immutable_fonts)
        self.logger.info(f"{len(final_files)} of {len(items)} output file(s) need writing")

        self.state = ExportState.COMMIT
        new_index = index.commit(
            final_files,
            retain_paths=retained,
            prune=self.options.prune_stale_records
        )
        try:
            self.index_store.save(new_index)
        except OSError as e:
            raise ExportAbortedError(f"Cannot persist export index: {e}") from e

        self.state = ExportState.DONE
        result = ExportResult(
            pages=[item for item in final_files if isinstance(item, Page)],
            attachments=[item for item in final_files if isinstance(item, Attachment)],
            files=final_files,
            summary=summary,
            incremental=incremental,
            state=self.state,
            index=new_index,
            duration=time.time() - start_time
        )
        self.logger.info(
            f"Export complete: {len(summary.rebuilt)} rebuilt, "
            f"{len(summary.skipped)} unchanged, {len(summary.failed)} failed"
        )
        return result

    def _load_index(self) -> ExportIndex:
        try:
            return self.index_store.load()
        except IndexCorruptError as e:
            self.logger.warning(f"{e}; falling back to a full export")
            return ExportIndex(existed=False)
        except Exception as e:
            raise ExportAbortedError(f"Cannot load export index: {e}") from e

    def _cancelled(self, summary: ExportSummary, incremental: bool, start_time: float) -> ExportResult:
        self.state = ExportState.CANCELLED
        self.logger.warning("Export cancelled; export index left unchanged")
        return ExportResult(
            summary=summary,
            incremental=incremental,
            state=self.state,
            cancelled=True,
            duration=time.time() - start_time
        )

    def _should_show_progress(self) -> bool:
        """Check if progress bars should be displayed."""
        return self.show_progress and sys.stdout.isatty()


__all__ = [
    'ExportState',
    'CancellationToken',
    'ExportResult',
    'ExportOrchestrator',
    'dedup_and_filter',
]
