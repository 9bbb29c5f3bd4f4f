"""Markdown renderer for vault notes, canvases and media files."""

import html
import json
import logging
import posixpath
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import quote

import markdown
import yaml
from bs4 import BeautifulSoup

from ..config_loader import ExportOptions
from ..models import MediaKind, RenderResult, SourceDocument
from .base_renderer import BaseRenderer, RendererError

FRONTMATTER_PATTERN = re.compile(r'^---\s*\n(.*?)\n---\s*(?:\n|$)(.*)$', re.DOTALL)
# [[target#heading|alias]] and ![[embed]]
WIKILINK_PATTERN = re.compile(r'(!?)\[\[([^\]|#]*)(#[^\]|]*)?(?:\|([^\]]*))?\]\]')

IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'bmp', 'svg', 'webp', 'avif', 'ico'}
AUDIO_EXTENSIONS = {'mp3', 'wav', 'm4a', 'ogg', 'flac'}
VIDEO_EXTENSIONS = {'webm', 'mp4', 'mkv', 'mov', 'ogv'}


def extract_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """
    Split YAML frontmatter from markdown content.

    Args:
        content: Full file content

    Returns:
        Tuple of (frontmatter dict, markdown content); an unparsable block is
        treated as no frontmatter
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return {}, content

    try:
        frontmatter = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return {}, content

    if not isinstance(frontmatter, dict):
        return {}, content
    return frontmatter, match.group(2)


class MarkdownRenderer(BaseRenderer):
    """Renders markdown notes with Python-Markdown.

    Wikilinks and embeds are rewritten to plain <a href>/<img src> elements
    carrying vault paths so that the page builder can resolve them.
    """

    def __init__(
        self,
        vault_path: Union[str, Path],
        extensions: Optional[List[str]] = None,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(logger or logging.getLogger('site_exporter.renderers.markdown_renderer'))
        self.vault_path = Path(vault_path)
        self.extensions = list(extensions) if extensions is not None else ['extra', 'sane_lists']
        self._names: Optional[Dict[str, str]] = None

    def is_convertable(self, extension: str) -> bool:
        kind = MediaKind.from_path(f"file.{extension}")
        return kind in (MediaKind.DOCUMENT, MediaKind.CANVAS, MediaKind.MEDIA)

    def render(self, document: SourceDocument, options: Optional[ExportOptions] = None) -> Optional[RenderResult]:
        kind = document.media_kind
        if not self.is_convertable(document.extension):
            self.logger.debug(f"No renderer for {document.path}")
            return None

        if kind == MediaKind.MEDIA:
            body = self._render_media(posixpath.basename(document.path), document.path)
            return self._result(body, 'media')

        text = self._read_text(document)
        if kind == MediaKind.CANVAS:
            body = self._render_canvas(text, document.path)
            return self._result(body, 'canvas')

        _, content = extract_frontmatter(text)
        if not content.strip():
            return None
        body = self._render_markdown(content)
        return self._result(body, 'markdown')

    def _read_text(self, document: SourceDocument) -> str:
        file_path = Path(document.absolute_path) if document.absolute_path else self.vault_path / document.path
        try:
            return file_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise RendererError(f"Cannot read {document.path}: {e}") from e

    def _result(self, body: str, document_kind: str) -> Optional[RenderResult]:
        if not body or not body.strip():
            return None
        soup = BeautifulSoup(body, 'lxml')
        for heading in soup.find_all(['h1', 'h2', 'h3', 'h4', 'h5', 'h6']):
            heading['data-heading'] = heading.get_text().strip()
        references = [element['src'] for element in soup.find_all(src=True)]
        container = soup.body or soup
        return RenderResult(
            body_html=container.decode_contents(),
            document_kind=document_kind,
            resource_references=references
        )

    def _render_markdown(self, content: str) -> str:
        content = WIKILINK_PATTERN.sub(self._replace_wikilink, content)
        return markdown.markdown(content, extensions=self.extensions)

    def _render_canvas(self, text: str, source_path: str) -> str:
        try:
            canvas = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as e:
            raise RendererError(f"Canvas {source_path} is not valid JSON: {e}") from e

        parts = []
        for node in canvas.get('nodes', []) or []:
            node_type = node.get('type')
            if node_type == 'text' and node.get('text'):
                inner = self._render_markdown(node['text'])
            elif node_type == 'file' and node.get('file'):
                inner = self._render_media('/' + node['file'].lstrip('/'), node['file'])
            elif node_type == 'link' and node.get('url'):
                url = html.escape(node['url'], quote=True)
                inner = f'<a href="{url}">{url}</a>'
            else:
                continue
            parts.append(f'<div class="canvas-node" id="{html.escape(str(node.get("id", "")))}">{inner}</div>')
        return "\n".join(parts)

    @staticmethod
    def _render_media(path: str, label: str) -> str:
        """Embed markup for a vault file; `path` is used as the link target."""
        href = quote(path)
        extension = posixpath.splitext(path)[1].lstrip('.').lower()
        name = html.escape(posixpath.basename(label))

        if extension in IMAGE_EXTENSIONS:
            return f'<img src="{href}" alt="{name}">'
        if extension in AUDIO_EXTENSIONS:
            return f'<audio controls src="{href}"></audio>'
        if extension in VIDEO_EXTENSIONS:
            return f'<video controls src="{href}"></video>'
        if extension == 'pdf':
            return f'<embed class="file-embed" src="{href}" type="application/pdf">'
        if extension in ('md', 'markdown', 'canvas'):
            return f'<a class="internal-embed" href="{href}">{name}</a>'
        return f'<a href="{href}">{name}</a>'

    def _vault_names(self) -> Dict[str, str]:
        """Map lowercase file names (with and without extension) to vault paths."""
        if self._names is None:
            names: Dict[str, str] = {}
            if self.vault_path.is_dir():
                for file_path in sorted(self.vault_path.rglob('*')):
                    if not file_path.is_file():
                        continue
                    relative = file_path.relative_to(self.vault_path).as_posix()
                    if relative.startswith('.'):
                        continue
                    names.setdefault(file_path.name.lower(), relative)
                    if file_path.suffix.lower() == '.md':
                        names.setdefault(file_path.stem.lower(), relative)
            self._names = names
        return self._names

    def _wikilink_path(self, target: str) -> str:
        target = target.strip()
        if not target:
            return ''
        if '/' not in target:
            known = self._vault_names().get(target.lower())
            if known:
                return '/' + known
        if not posixpath.splitext(target)[1]:
            target += '.md'
        return target

    def _replace_wikilink(self, match: 're.Match') -> str:
        is_embed, target, heading, alias = match.groups()
        target = (target or '').strip()
        heading = heading or ''
        path = self._wikilink_path(target)

        if alias:
            label = alias
        elif not target:
            label = heading.lstrip('#')
        elif heading:
            label = f"{target} > {heading.lstrip('#')}"
        else:
            label = target
        label = html.escape(label)

        if not path:
            return f'<a class="internal-link" href="{quote(heading, safe="#")}">{label}</a>'

        href = quote(path) + quote(heading, safe='#')
        extension = posixpath.splitext(path)[1].lstrip('.').lower()
        if is_embed and extension not in ('md', 'markdown', 'canvas'):
            return self._render_media(path, alias or path)
        css_class = 'internal-embed' if is_embed else 'internal-link'
        return f'<a class="{css_class}" href="{href}">{label}</a>'


__all__ = ['MarkdownRenderer', 'extract_frontmatter']
