"""Link resolver mapping hrefs/srcs of rendered documents to output paths."""

import logging
import posixpath
import re
from typing import Dict, List, Optional
from urllib.parse import unquote

from ..config_loader import ExportOptions
from ..models import Attachment, LinkKind, OutboundLink, is_page_path, normalize_path

logger = logging.getLogger('site_exporter.exporters.link_resolver')

# Any "scheme:" prefix; single letters are left out so "C:\..." stays a path.
EXTERNAL_LINK_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9+.\-]+:')


def heading_slug(heading: Optional[str]) -> str:
    """
    Convert heading text (or a '#fragment') into an anchor id.

    Spaces become underscores and colons are removed.
    """
    if not heading:
        return ""
    return heading.replace(" ", "_").replace(":", "")


def is_external_link(link: str) -> bool:
    """Check whether a link is an external URL or a data URI.

    Obsidian "app://" links point into the desktop app and are not external.
    """
    link = (link or "").strip()
    if link.lower().startswith("app://"):
        return False
    return bool(EXTERNAL_LINK_PATTERN.match(link))


class PathRegistry:
    """
    Per-batch registry of known source paths and their output paths.

    Holds every document of the batch (so links to pages that are not rebuilt
    this run still resolve) and every attachment discovered so far.
    """

    def __init__(self):
        self._targets: Dict[str, str] = {}
        self._attachments: Dict[str, Attachment] = {}
        self._folded: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, source_path: str) -> bool:
        return self.find(source_path) is not None

    def register_document(self, source_path: str, target_path: str) -> None:
        """Register a source document and its page target path."""
        self._register(normalize_path(source_path), normalize_path(target_path))

    def register_attachment(self, attachment: Attachment) -> None:
        """Register an attachment under its source path."""
        self._register(attachment.source_path, attachment.target_path)
        self._attachments[attachment.source_path] = attachment

    def _register(self, source_path: str, target_path: str) -> None:
        self._targets[source_path] = target_path
        self._folded.setdefault(source_path.lower(), source_path)

    def find(self, source_path: str) -> Optional[str]:
        """
        Find the registered spelling of a source path.

        Exact match first, then case-insensitive.
        """
        normalized = normalize_path(source_path)
        if normalized in self._targets:
            return normalized
        return self._folded.get(normalized.lower())

    def get_target(self, source_path: str) -> Optional[str]:
        known = self.find(source_path)
        return self._targets[known] if known else None

    def get_attachment(self, source_path: str) -> Optional[Attachment]:
        known = self.find(source_path)
        return self._attachments.get(known) if known else None

    @staticmethod
    def candidate_paths(link_path: str, from_source_path: str) -> List[str]:
        """
        List the vault paths a link may refer to, most specific first.

        Args:
            link_path: Link without fragment or query
            from_source_path: Source path of the referencing document

        Returns:
            Candidate vault-relative paths (relative to the document's
            folder first, then to the vault root)
        """
        decoded = unquote(link_path).replace('\\', '/').strip()
        if not decoded:
            return []

        candidates = []
        if not decoded.startswith('/'):
            folder = posixpath.dirname(normalize_path(from_source_path))
            if folder:
                candidates.append(normalize_path(posixpath.join(folder, decoded)))
        candidates.append(normalize_path(decoded))

        unique = []
        for candidate in candidates:
            if candidate and not candidate.startswith('..') and candidate not in unique:
                unique.append(candidate)
        return unique

    def resolve_source_path(self, link_path: str, from_source_path: str) -> Optional[str]:
        """Return the registered source path a link refers to, if any."""
        for candidate in self.candidate_paths(link_path, from_source_path):
            known = self.find(candidate)
            if known:
                return known
        return None


class LinkResolver:
    """
    Classifies and resolves links found in rendered documents.

    Resolution is a pure function of the link, the referencing page and the
    batch registry. Priority order: external URLs and data URIs pass through;
    '#fragment' links become heading slugs; anything else is looked up in the
    registry and is unresolved when unknown.
    """

    def __init__(self, registry: PathRegistry, options: Optional[ExportOptions] = None):
        """
        Initialize the link resolver.

        Args:
            registry: Known source paths of the current batch
            options: Export options (relative_header_links is read)
        """
        self.registry = registry
        self.options = options or ExportOptions()

    def resolve(
        self,
        link: Optional[str],
        source_path: str,
        page_target_path: str,
        attribute: str = "href"
    ) -> OutboundLink:
        """
        Resolve one href/src.

        Args:
            link: Raw attribute value
            source_path: Source path of the referencing document
            page_target_path: Output path of the referencing page
            attribute: 'href' or 'src'

        Returns:
            OutboundLink with the resolved value, or unresolved
        """
        raw = link or ""
        if not raw:
            return OutboundLink(raw, None, LinkKind.UNRESOLVED, attribute)

        if is_external_link(raw):
            return OutboundLink(raw, raw, LinkKind.EXTERNAL, attribute)

        if raw.startswith("#"):
            slug = heading_slug(unquote(raw))
            if not self.options.relative_header_links:
                slug = normalize_path(page_target_path) + slug
            return OutboundLink(raw, slug, LinkKind.HEADING, attribute)

        path = raw.split("#")[0].split("?")[0]
        known_source = self.registry.resolve_source_path(path, source_path) if path else None
        target = self.registry.get_target(known_source) if known_source else None
        if target is None:
            logger.debug(f"Unresolved {attribute} '{raw}' in {source_path}")
            return OutboundLink(raw, None, LinkKind.UNRESOLVED, attribute)

        fragment = raw.split("#", 1)[1] if "#" in raw else ""
        if fragment:
            fragment = "#" + fragment
            if is_page_path(target):
                fragment = heading_slug(unquote(fragment))

        return OutboundLink(raw, target + fragment, LinkKind.INTERNAL, attribute)


__all__ = [
    'heading_slug',
    'is_external_link',
    'PathRegistry',
    'LinkResolver',
]
