"""Site export package turning vault documents into static HTML pages.

Package Structure:
- export_index: Persisted record of every emitted file (modified time, size)
- link_resolver: Classifies and resolves hrefs/srcs against the batch registry
- page_builder: Builds one HTML page (title, links, attachments, head) per document
- attachment_manager: Loads referenced vault files with size/type exclusion
- asset_provider: Shared style sheets, scripts and fonts emitted with every batch
- source_scanner: Lists the vault documents to export with their frontmatter
- site_writer: Writes the final output set to the output directory

Configuration Referenced:
- export.*: Export options (see ExportOptions)
- export.attachment_handling: Size limits and skipped file types
- assets.directory: Shared asset bundle
"""

from .export_index import ExportIndex, IndexStore
from .link_resolver import LinkResolver, PathRegistry, heading_slug, is_external_link
from .attachment_manager import AttachmentManager
from .asset_provider import StaticAssetProvider
from .page_builder import PageBuilder
from .site_writer import SiteWriter
from .source_scanner import SourceScanner

__all__ = [
    'ExportIndex',
    'IndexStore',
    'LinkResolver',
    'PathRegistry',
    'heading_slug',
    'is_external_link',
    'AttachmentManager',
    'StaticAssetProvider',
    'PageBuilder',
    'SiteWriter',
    'SourceScanner'
]
