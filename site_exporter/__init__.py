"""Vault Site Exporter

Exports a vault of markdown notes, canvases and media to a static HTML site.
Repeated exports are incremental: an export index records the modified time
and size of every emitted file, so only changed documents are rebuilt.

Features:
- Incremental export with a persisted, atomically written export index
- Link resolution with heading slugs and visible unresolved-link markers
- Page titles and icons from frontmatter, with redundant heading collapse
- Attachment discovery, size/type exclusion and optional media inlining
- Head metadata with OpenGraph tags
- Comprehensive logging, progress tracking and export reports

Basic Usage:
    site-export --vault ./notes --output ./site

Example Configuration (config.yaml):
    source:
        vault_path: "./notes"

    export:
        output_directory: "./site"
        site_url: ${SITE_URL}
        incremental_export: true
"""

__version__ = "1.0.0"
__description__ = "Incremental static site exporter for markdown vaults"

from .models import (
    Attachment,
    DocumentStatus,
    ExportSummary,
    IndexRecord,
    LinkKind,
    MediaKind,
    OutboundLink,
    Page,
    RenderResult,
    SourceDocument,
    TitleInfo,
)
from .config_loader import ConfigLoader, ExportOptions, get_nested
from .errors import (
    AttachmentMissing,
    ExportAbortedError,
    IndexCorruptError,
    PageBuildSkipped,
    SiteExportError,
    UnresolvedLinkWarning,
)
from .logger import setup_logging, ProgressTracker, log_section, log_config

__all__ = [
    # Version info
    '__version__',
    '__description__',

    # Core data models
    'Attachment',
    'DocumentStatus',
    'ExportSummary',
    'IndexRecord',
    'LinkKind',
    'MediaKind',
    'OutboundLink',
    'Page',
    'RenderResult',
    'SourceDocument',
    'TitleInfo',

    # Configuration
    'ConfigLoader',
    'ExportOptions',
    'get_nested',

    # Errors
    'SiteExportError',
    'IndexCorruptError',
    'ExportAbortedError',
    'PageBuildSkipped',
    'AttachmentMissing',
    'UnresolvedLinkWarning',

    # Logging
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config',
]
