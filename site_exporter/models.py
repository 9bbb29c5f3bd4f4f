"""Data models for the incremental site export pipeline."""

import logging
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pathlib import PurePath

logger = logging.getLogger('site_exporter')

PAGE_EXTENSION = ".html"


def normalize_path(path: Union[str, PurePath]) -> str:
    """
    Convert a host path into a forward-slash relative path.

    Args:
        path: Relative path using any separator convention

    Returns:
        Normalized path without leading './' or '/' ('' for the root)
    """
    text = str(path).replace('\\', '/')
    while text.startswith('./'):
        text = text[2:]
    text = text.lstrip('/')
    if not text:
        return ''

    normalized = posixpath.normpath(text)
    return '' if normalized == '.' else normalized


def is_page_path(path: str) -> bool:
    """Check whether a target path is a page output."""
    return path.lower().endswith(PAGE_EXTENSION)


class MediaKind(Enum):
    """Closed set of file kinds, decided once from the file extension."""
    DOCUMENT = "document"
    CANVAS = "canvas"
    MEDIA = "media"
    FONT = "font"
    STYLE = "style"
    SCRIPT = "script"
    HTML = "html"
    OTHER = "other"

    @classmethod
    def from_path(cls, path: str) -> 'MediaKind':
        """Classify a file by its extension."""
        extension = posixpath.splitext(str(path).lower())[1].lstrip('.')
        return _EXTENSION_KINDS.get(extension, cls.OTHER)


_EXTENSION_KINDS = {
    'md': MediaKind.DOCUMENT,
    'markdown': MediaKind.DOCUMENT,
    'canvas': MediaKind.CANVAS,
    'woff': MediaKind.FONT,
    'woff2': MediaKind.FONT,
    'otf': MediaKind.FONT,
    'ttf': MediaKind.FONT,
    'css': MediaKind.STYLE,
    'js': MediaKind.SCRIPT,
    'html': MediaKind.HTML,
    'htm': MediaKind.HTML,
}
for _ext in ('png', 'jpg', 'jpeg', 'gif', 'bmp', 'svg', 'webp', 'avif', 'ico',
             'mp3', 'wav', 'm4a', 'ogg', 'flac', 'webm', 'mp4', 'mkv', 'mov',
             'ogv', 'pdf'):
    _EXTENSION_KINDS[_ext] = MediaKind.MEDIA


class LinkKind(Enum):
    """Classification of a resolved href/src."""
    EXTERNAL = "external"
    HEADING = "heading"
    INTERNAL = "internal"
    UNRESOLVED = "unresolved"


class DocumentStatus(Enum):
    """Per-document outcome of one export batch."""
    REBUILT = "rebuilt"
    SKIPPED_UNCHANGED = "skipped_unchanged"
    FAILED = "failed"


@dataclass
class SourceDocument:
    """A source file handed to the exporter; read-only to the core."""

    path: str
    size: int
    modified_time: int
    frontmatter: Dict[str, Any] = field(default_factory=dict)
    absolute_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Normalize the vault-relative path."""
        self.path = normalize_path(self.path)

    @property
    def basename(self) -> str:
        """File name without extension."""
        return posixpath.splitext(posixpath.basename(self.path))[0]

    @property
    def extension(self) -> str:
        """Lowercase extension without the dot."""
        return posixpath.splitext(self.path)[1].lstrip('.').lower()

    @property
    def media_kind(self) -> MediaKind:
        return MediaKind.from_path(self.path)


@dataclass
class Attachment:
    """A non-page output file shared between the pages that reference it."""

    source_path: str
    target_path: str
    content: bytes
    modified_time: int
    byte_length: int = -1
    media_kind: Optional[MediaKind] = None

    def __post_init__(self) -> None:
        """Normalize paths and derive defaults."""
        self.source_path = normalize_path(self.source_path)
        self.target_path = normalize_path(self.target_path)
        if self.byte_length < 0:
            self.byte_length = len(self.content)
        if self.media_kind is None:
            self.media_kind = MediaKind.from_path(self.target_path)

    @property
    def filename(self) -> str:
        return posixpath.basename(self.target_path)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize attachment metadata (without content)."""
        return {
            'source_path': self.source_path,
            'target_path': self.target_path,
            'modified_time': self.modified_time,
            'byte_length': self.byte_length,
            'media_kind': self.media_kind.value,
        }


@dataclass
class OutboundLink:
    """One href/src found in a page, with its resolution."""

    raw_href: str
    resolved_href: Optional[str]
    kind: LinkKind
    attribute: str = "href"

    @property
    def is_unresolved(self) -> bool:
        return self.kind == LinkKind.UNRESOLVED


@dataclass
class TitleInfo:
    """Resolved title and icon of a document."""

    title: str
    icon: str
    is_default_title: bool
    is_default_icon: bool


@dataclass
class RenderResult:
    """Output of the external renderer for one document."""

    body_html: str
    document_kind: str = "markdown"
    resource_references: List[str] = field(default_factory=list)


@dataclass
class Page:
    """An exportable HTML page built from one rendered document."""

    source_path: str
    target_path: str
    title: str = ""
    icon: str = ""
    head_metadata: Dict[str, Any] = field(default_factory=dict)
    body_content: str = ""
    outbound_links: List[OutboundLink] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    modified_time: int = 0
    byte_length: int = 0
    document_kind: str = "markdown"
    warnings: List[Warning] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Normalize paths."""
        self.source_path = normalize_path(self.source_path)
        self.target_path = normalize_path(self.target_path)

    @property
    def content(self) -> bytes:
        """The emitted bytes of the page."""
        return self.body_content.encode('utf-8')

    @property
    def media_kind(self) -> MediaKind:
        return MediaKind.HTML

    @property
    def unresolved_links(self) -> List[OutboundLink]:
        return [link for link in self.outbound_links if link.is_unresolved]

    def add_attachment(self, attachment: Attachment) -> bool:
        """Add an attachment unless one with the same source path exists."""
        if any(existing.source_path == attachment.source_path for existing in self.attachments):
            return False
        self.attachments.append(attachment)
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize page metadata (without the HTML body)."""
        return {
            'source_path': self.source_path,
            'target_path': self.target_path,
            'title': self.title,
            'icon': self.icon,
            'head_metadata': self.head_metadata,
            'document_kind': self.document_kind,
            'outbound_links': [
                {'raw_href': link.raw_href, 'resolved_href': link.resolved_href, 'kind': link.kind.value}
                for link in self.outbound_links
            ],
            'attachments': [att.target_path for att in self.attachments],
            'warnings': [str(warning) for warning in self.warnings],
        }


@dataclass
class IndexRecord:
    """Persisted export state of one output path."""

    path: str
    modified_time: int
    source_byte_length: int

    def __post_init__(self) -> None:
        self.path = normalize_path(self.path)

    def to_dict(self) -> Dict[str, int]:
        """Serialize in the persisted index layout."""
        return {
            'modifiedTime': int(self.modified_time),
            'sourceSize': int(self.source_byte_length),
        }


@dataclass
class ExportSummary:
    """Per-document outcome of one export batch."""

    statuses: Dict[str, DocumentStatus] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def mark(self, path: str, status: DocumentStatus, error: Optional[str] = None) -> None:
        """Record the outcome of one document."""
        self.statuses[path] = status
        if error:
            self.errors[path] = error

    def _with_status(self, status: DocumentStatus) -> List[str]:
        return [path for path, value in self.statuses.items() if value == status]

    @property
    def rebuilt(self) -> List[str]:
        return self._with_status(DocumentStatus.REBUILT)

    @property
    def skipped(self) -> List[str]:
        return self._with_status(DocumentStatus.SKIPPED_UNCHANGED)

    @property
    def failed(self) -> List[str]:
        return self._with_status(DocumentStatus.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize summary to dictionary."""
        return {
            'rebuilt': self.rebuilt,
            'skipped_unchanged': self.skipped,
            'failed': self.failed,
            'errors': dict(self.errors),
        }


__all__ = [
    'PAGE_EXTENSION',
    'normalize_path',
    'is_page_path',
    'MediaKind',
    'LinkKind',
    'DocumentStatus',
    'SourceDocument',
    'Attachment',
    'OutboundLink',
    'TitleInfo',
    'RenderResult',
    'Page',
    'IndexRecord',
    'ExportSummary',
]
