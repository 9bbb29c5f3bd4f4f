"""Page builder producing one exportable HTML page per rendered document."""

import base64
import logging
import mimetypes
import posixpath
import re
from typing import Any, Dict, List, Optional, Set

from bs4 import BeautifulSoup, Tag

from ..config_loader import ExportOptions
from ..errors import AttachmentMissing, PageBuildSkipped, UnresolvedLinkWarning
from ..models import (
    PAGE_EXTENSION,
    Attachment,
    MediaKind,
    Page,
    RenderResult,
    SourceDocument,
    TitleInfo,
    normalize_path,
)
from .asset_provider import StaticAssetProvider
from .attachment_manager import AttachmentManager
from .link_resolver import LinkResolver, PathRegistry, heading_slug, is_external_link

CANVAS_ICON = "lucide//layout-dashboard"
ALTERNATE_TITLE_PROPERTY = "banner_header"
ICON_PROPERTIES = ("icon", "sticker", "banner_icon")
DESCRIPTION_PROPERTIES = ("description", "summary")

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
# Maximum normalized edit distance for a first heading to count as the title
HEADING_SIMILARITY_THRESHOLDS = {"h1": 0.2, "h2": 0.1}
EMBED_CLASSES = {"markdown-embed", "internal-embed", "file-embed"}
UNRESOLVED_CLASS = "is-unresolved"
INLINE_TAG_PATTERN = re.compile(r'(?<!\S)#([\w/-]*[^\W\d][\w/-]*)')
UNTAGGED_ELEMENTS = {"code", "pre", "script", "style"}


def levenshtein_distance(first: str, second: str) -> int:
    """Edit distance between two strings."""
    if len(first) < len(second):
        first, second = second, first
    previous = list(range(len(second) + 1))
    for i, char_a in enumerate(first, 1):
        current = [i]
        for j, char_b in enumerate(second, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b)
            ))
        previous = current
    return previous[-1]


def normalized_distance(text: str, reference: str) -> float:
    """Edit distance divided by the length of the reference string (0.0 = equal)."""
    if not reference:
        return 0.0 if not text else float('inf')
    return levenshtein_distance(text, reference) / len(reference)


def _normalize_text(text: str) -> str:
    return re.sub(r'\s+', ' ', text or '').strip().lower()


class PageBuilder:
    """
    Builds a Page from one source document and its rendered body.

    Steps, in order: title and icon resolution, redundant heading collapse,
    attachment discovery, link and embed remapping, optional media inlining,
    and head metadata.
    """

    def __init__(
        self,
        options: ExportOptions,
        registry: PathRegistry,
        link_resolver: Optional[LinkResolver] = None,
        attachment_manager: Optional[AttachmentManager] = None,
        asset_provider: Optional[StaticAssetProvider] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the page builder.

        Args:
            options: Export options
            registry: Known source paths of the current batch
            link_resolver: Resolver (created over the registry when omitted)
            attachment_manager: Loads attachments that are not known yet
            asset_provider: Shared assets referenced from the page head
            logger: Logger instance
        """
        self.options = options
        self.registry = registry
        self.link_resolver = link_resolver or LinkResolver(registry, options)
        self.attachment_manager = attachment_manager
        self.asset_provider = asset_provider
        self.logger = logger or logging.getLogger('site_exporter.exporters.page_builder')

    def target_path_for(self, document: SourceDocument) -> str:
        """Output path of the page built from a document."""
        stem = posixpath.splitext(document.path)[0]
        if self.options.flatten_export_paths:
            stem = posixpath.basename(stem)
        return normalize_path(stem + PAGE_EXTENSION)

    def resolve_title_and_icon(self, document: SourceDocument) -> TitleInfo:
        """
        Resolve the title and icon of a document from its frontmatter.

        Args:
            document: Source document

        Returns:
            TitleInfo with flags telling whether each value was defaulted
        """
        frontmatter = document.frontmatter or {}

        title = frontmatter.get(self.options.title_property) or frontmatter.get(ALTERNATE_TITLE_PROPERTY)
        is_default_title = not title
        if is_default_title:
            title = document.basename

        icon = next((frontmatter[key] for key in ICON_PROPERTIES if frontmatter.get(key)), None)
        is_default_icon = not icon
        if is_default_icon:
            icon = ""
            if self.options.show_default_icons:
                if document.media_kind == MediaKind.CANVAS:
                    icon = CANVAS_ICON
                elif document.media_kind == MediaKind.MEDIA:
                    icon = self.options.default_media_icon
                else:
                    icon = self.options.default_file_icon

        return TitleInfo(
            title=str(title),
            icon=str(icon),
            is_default_title=is_default_title,
            is_default_icon=is_default_icon
        )

    def build(self, document: SourceDocument, render_result: Optional[RenderResult]) -> Page:
        """
        Produce a Page from a rendered document.

        Args:
            document: Source document
            render_result: Renderer output (None when the render was cancelled)

        Returns:
            Page with its discovered attachments

        Raises:
            PageBuildSkipped: If the rendered content is missing or empty
        """
        if render_result is None:
            raise PageBuildSkipped(document.path, "render produced no output")
        if not render_result.body_html or not render_result.body_html.strip():
            raise PageBuildSkipped(document.path, "rendered content is empty")

        title_info = self.resolve_title_and_icon(document)
        page = Page(
            source_path=document.path,
            target_path=self.target_path_for(document),
            title=title_info.title,
            icon=title_info.icon,
            modified_time=document.modified_time,
            byte_length=document.size,
            document_kind=render_result.document_kind
        )

        soup = BeautifulSoup(
            '<!DOCTYPE html><html><head></head><body>'
            f'<div class="page-content">{render_result.body_html}</div>'
            '</body></html>',
            'lxml'
        )
        content = soup.find('div', class_='page-content')

        if self.options.add_title:
            self.collapse_redundant_heading(page, soup, title_info, document.basename)

        self.discover_attachments(document, soup, page, render_result.resource_references)

        if self.options.inline_media:
            self.inline_media(document, soup, page)

        if self.options.fix_links:
            self.remap_links(document, soup, page)
            self.remap_embeds(document, soup, page)

        page.head_metadata = self.build_head_metadata(document, page, content)
        if self.options.add_head_tag:
            self.build_head(soup, page)

        page.body_content = str(soup)

        self.logger.debug(
            f"Built page {page.target_path} with {len(page.attachments)} attachment(s) "
            f"and {len(page.unresolved_links)} unresolved link(s)"
        )
        return page

    def collapse_redundant_heading(
        self,
        page: Page,
        soup: BeautifulSoup,
        title_info: TitleInfo,
        basename: str
    ) -> bool:
        """
        Insert the page title, absorbing a first heading that repeats it.

        The first heading outside embedded content is compared to the title
        and to the file name. When it is close enough the heading is removed;
        if the title was not authored in frontmatter, its markup becomes the
        title.

        Args:
            page: Page being built (title is updated)
            soup: Page document
            title_info: Resolved title and icon
            basename: File name without extension

        Returns:
            True if the heading was collapsed into the title
        """
        content = soup.find('div', class_='page-content') or soup.body
        heading = self._first_heading(content)

        title_tag = soup.new_tag('h1', attrs={'class': 'page-title'})
        collapsed = False

        if heading is not None and heading.name in HEADING_SIMILARITY_THRESHOLDS:
            heading_text = _normalize_text(heading.get_text())
            distance = min(
                normalized_distance(heading_text, _normalize_text(title_info.title)),
                normalized_distance(heading_text, _normalize_text(basename))
            )
            if distance < HEADING_SIMILARITY_THRESHOLDS[heading.name]:
                if title_info.is_default_title:
                    for child in list(heading.contents):
                        title_tag.append(child.extract())
                    collapsed = True
                heading.decompose()

        if not collapsed:
            title_tag.string = title_info.title

        header = soup.new_tag('header', attrs={'class': 'page-header'})
        if not title_info.is_default_icon:
            header.append(soup.new_tag('div', attrs={'id': 'webpage-icon', 'data-icon': title_info.icon}))
        header.append(title_tag)
        content.insert(0, header)

        page.title = title_tag.get_text().strip() or title_info.title
        return collapsed

    @staticmethod
    def _first_heading(content: Tag) -> Optional[Tag]:
        for heading in content.find_all(HEADING_TAGS):
            in_embed = any(
                EMBED_CLASSES.intersection(parent.get('class') or [])
                for parent in heading.parents
                if isinstance(parent, Tag)
            )
            if not in_embed:
                return heading
        return None

    def discover_attachments(
        self,
        document: SourceDocument,
        soup: BeautifulSoup,
        page: Page,
        resource_references: Optional[List[str]] = None
    ) -> List[Attachment]:
        """
        Collect the attachments referenced from the page body.

        Every `src` is a dependency: it is reused from the page, then from the
        batch registry, then loaded by the attachment manager. `href` values
        become dependencies only when they name an existing non-page file.
        Resource references reported by the renderer (files used outside
        `src` attributes, such as CSS backgrounds) are required like `src`.
        Missing required files are recorded as page warnings.

        Args:
            document: Source document
            soup: Page document
            page: Page being built (attachments are added)
            resource_references: Extra paths reported by the renderer

        Returns:
            Attachments newly added to the page
        """
        content = soup.find('div', class_='page-content') or soup.body
        added = []
        sources = [element['src'] for element in content.find_all(src=True)]

        for src in sources:
            attachment = self._attachment_for(src, document, page, required=True)
            if attachment and page.add_attachment(attachment):
                added.append(attachment)

        for reference in resource_references or []:
            if reference in sources:
                continue
            attachment = self._attachment_for(reference, document, page, required=True)
            if attachment and page.add_attachment(attachment):
                added.append(attachment)

        for element in content.find_all('a', href=True):
            attachment = self._attachment_for(element['href'], document, page, required=False)
            if attachment and page.add_attachment(attachment):
                added.append(attachment)

        return added

    def _attachment_for(
        self,
        link: str,
        document: SourceDocument,
        page: Page,
        required: bool
    ) -> Optional[Attachment]:
        if not link or link.startswith('#') or is_external_link(link):
            return None

        path = link.split('#')[0].split('?')[0]
        candidates = self.registry.candidate_paths(path, document.path)
        if not candidates:
            return None

        for candidate in candidates:
            for existing in page.attachments:
                if existing.source_path == candidate:
                    return existing
            known = self.registry.get_attachment(candidate)
            if known is not None:
                return known
            if self.registry.find(candidate) is not None:
                # Another source document; resolved as a page link
                return None

        if self.attachment_manager is None:
            return None

        try:
            existing_candidate = next(
                (c for c in candidates if self.attachment_manager.exists(c)), None
            )
            if existing_candidate is None:
                if not required:
                    return None
                raise AttachmentMissing(candidates[0])
            attachment = self.attachment_manager.create_attachment(existing_candidate)
        except AttachmentMissing as e:
            self.logger.warning(f"{e} (referenced from {document.path})")
            page.warnings.append(UnresolvedLinkWarning(link, document.path))
            return None

        self.registry.register_attachment(attachment)
        return attachment

    def remap_links(self, document: SourceDocument, soup: BeautifulSoup, page: Page) -> None:
        """Resolve every href of the page body and give headings their anchor ids."""
        content = soup.find('div', class_='page-content') or soup.body

        for heading in content.find_all(HEADING_TAGS):
            if heading.get('class') and 'page-title' in heading.get('class'):
                continue
            text = heading.get('data-heading') or heading.get_text().strip()
            if text:
                heading['id'] = heading_slug(text)

        for element in content.find_all(href=True):
            self._remap_attribute(element, 'href', document, page)
            if element.name == 'a':
                element['target'] = '_self'

    def remap_embeds(self, document: SourceDocument, soup: BeautifulSoup, page: Page) -> None:
        """Resolve every src of the page body."""
        content = soup.find('div', class_='page-content') or soup.body
        for element in content.find_all(src=True):
            self._remap_attribute(element, 'src', document, page)

    def _remap_attribute(self, element: Tag, attribute: str, document: SourceDocument, page: Page) -> None:
        link = self.link_resolver.resolve(
            element.get(attribute), document.path, page.target_path, attribute
        )
        page.outbound_links.append(link)

        if link.is_unresolved:
            classes = element.get('class') or []
            if UNRESOLVED_CLASS not in classes:
                element['class'] = classes + [UNRESOLVED_CLASS]
            if not any(getattr(w, 'raw_href', None) == link.raw_href for w in page.warnings):
                page.warnings.append(UnresolvedLinkWarning(link.raw_href, document.path))
        else:
            element[attribute] = link.resolved_href

    def inline_media(self, document: SourceDocument, soup: BeautifulSoup, page: Page) -> int:
        """
        Replace local `src` references with base64 data URIs.

        Inlined attachments are no longer emitted unless an href still
        points at them.

        Returns:
            Number of inlined references
        """
        content = soup.find('div', class_='page-content') or soup.body
        inlined: Set[str] = set()
        count = 0

        for element in content.find_all(src=True):
            src = element['src']
            if not src or is_external_link(src):
                continue
            path = src.split('#')[0].split('?')[0]
            attachment = next(
                (att for candidate in self.registry.candidate_paths(path, document.path)
                 for att in page.attachments if att.source_path == candidate),
                None
            )
            if attachment is None:
                continue

            mime_type = mimetypes.guess_type(attachment.filename)[0] or 'application/octet-stream'
            encoded = base64.b64encode(attachment.content).decode('ascii')
            element['src'] = f"data:{mime_type};base64,{encoded}"
            inlined.add(attachment.source_path)
            count += 1

        if inlined:
            still_linked = set()
            for element in content.find_all('a', href=True):
                path = element['href'].split('#')[0].split('?')[0]
                still_linked.update(self.registry.candidate_paths(path, document.path))
            page.attachments = [
                att for att in page.attachments
                if att.source_path not in inlined or att.source_path in still_linked
            ]
            self.logger.debug(f"Inlined {count} media reference(s) in {page.target_path}")

        return count

    def build_head_metadata(self, document: SourceDocument, page: Page, content: Tag) -> Dict[str, Any]:
        """
        Collect the metadata published in the page head.

        Args:
            document: Source document
            page: Page being built
            content: Page body container

        Returns:
            Dictionary of head metadata
        """
        frontmatter = document.frontmatter or {}
        site_name = self.options.site_name or ""

        description = next(
            (str(frontmatter[key]) for key in DESCRIPTION_PROPERTIES if frontmatter.get(key)), None
        )
        if not description:
            description = f"{site_name} - {page.title}" if site_name else page.title

        depth = page.target_path.count('/')
        metadata: Dict[str, Any] = {
            'title': page.title,
            'description': description,
            'pathname': page.target_path,
            'base_href': '../' * depth if depth else './',
            'site_name': site_name,
            'author': str(frontmatter.get('author') or self.options.author_name or ''),
            'url': self._site_url(page.target_path),
            'image': self._first_image(content),
            'tags': self._collect_tags(frontmatter, content),
            'aliases': self._as_list(frontmatter.get('aliases')),
        }
        return metadata

    def build_head(self, soup: BeautifulSoup, page: Page) -> None:
        """Fill the <head> element from the page's head metadata."""
        head = soup.head
        metadata = page.head_metadata

        title = soup.new_tag('title')
        title.string = metadata['title']
        head.append(title)
        head.append(soup.new_tag('base', attrs={'href': metadata['base_href']}))
        head.append(soup.new_tag('meta', attrs={'id': 'root-path', 'root-path': metadata['base_href']}))
        head.append(soup.new_tag('meta', attrs={'name': 'pathname', 'content': metadata['pathname']}))
        head.append(soup.new_tag('meta', attrs={
            'name': 'viewport',
            'content': 'width=device-width, initial-scale=1.0, user-scalable=yes, minimum-scale=1.0, maximum-scale=5.0'
        }))
        head.append(soup.new_tag('meta', attrs={'charset': 'UTF-8'}))
        head.append(soup.new_tag('meta', attrs={'name': 'description', 'content': metadata['description']}))

        opengraph = {
            'og:title': metadata['title'],
            'og:description': metadata['description'],
            'og:type': 'website',
            'og:url': metadata['url'],
            'og:image': metadata['image'],
            'og:site_name': metadata['site_name'],
        }
        for prop, value in opengraph.items():
            if value:
                head.append(soup.new_tag('meta', attrs={'property': prop, 'content': value}))

        if metadata['author']:
            head.append(soup.new_tag('meta', attrs={'name': 'author', 'content': metadata['author']}))
        if metadata['tags']:
            head.append(soup.new_tag('meta', attrs={'name': 'keywords', 'content': ', '.join(metadata['tags'])}))

        if self.asset_provider is not None:
            references = self.asset_provider.head_references()
            if references:
                fragment = BeautifulSoup(f'<head>{references}</head>', 'lxml')
                for tag in list(fragment.head.children):
                    if isinstance(tag, Tag):
                        head.append(tag.extract())

    def _site_url(self, target_path: str) -> str:
        if not self.options.site_url:
            return ""
        return self.options.site_url.rstrip('/') + '/' + target_path

    def _first_image(self, content: Tag) -> str:
        image = content.find('img', src=True)
        if image is None:
            return ""
        src = image['src']
        if src.startswith('data:'):
            return ""
        if is_external_link(src):
            return src
        return self._site_url(normalize_path(src)) or src

    def _collect_tags(self, frontmatter: Dict[str, Any], content: Tag) -> List[str]:
        """Frontmatter tags followed by inline `#tag` tokens, each with a leading `#`, without duplicates."""
        tags = ['#' + tag.lstrip('#') for tag in self._as_list(frontmatter.get('tags'))]
        for text in content.find_all(string=True):
            if any(parent.name in UNTAGGED_ELEMENTS for parent in text.parents):
                continue
            tags.extend('#' + match for match in INLINE_TAG_PATTERN.findall(text))
        return list(dict.fromkeys(tags))

    @staticmethod
    def _as_list(value: Any) -> List[str]:
        if not value:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(',') if item.strip()]
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value if item]
        return [str(value)]


__all__ = [
    'PageBuilder',
    'levenshtein_distance',
    'normalized_distance',
]
