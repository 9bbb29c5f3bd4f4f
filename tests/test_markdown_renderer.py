"""Tests for the markdown renderer and renderer factory."""

import json

import pytest
from bs4 import BeautifulSoup

from site_exporter.models import SourceDocument
from site_exporter.renderers import MarkdownRenderer, RendererError, RendererFactory
from site_exporter.renderers.markdown_renderer import extract_frontmatter


def write_document(vault, relative, content):
    path = vault / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')
    stat = path.stat()
    return SourceDocument(
        path=relative,
        size=stat.st_size,
        modified_time=int(stat.st_mtime * 1000),
        absolute_path=str(path)
    )


@pytest.fixture
def vault(tmp_path):
    vault = tmp_path / 'vault'
    (vault / 'notes').mkdir(parents=True)
    (vault / 'notes' / 'child.md').write_text('# Child\n', encoding='utf-8')
    (vault / 'pic.png').write_bytes(b'\x89PNG')
    return vault


@pytest.fixture
def renderer(vault):
    return MarkdownRenderer(vault)


def parse(result):
    return BeautifulSoup(result.body_html, 'lxml')


class TestExtractFrontmatter:

    def test_frontmatter_is_split(self):
        frontmatter, content = extract_frontmatter('---\ntitle: Hello\ntags: [a]\n---\n# Body\n')
        assert frontmatter == {'title': 'Hello', 'tags': ['a']}
        assert content == '# Body\n'

    def test_no_frontmatter(self):
        frontmatter, content = extract_frontmatter('# Body\n')
        assert frontmatter == {}
        assert content == '# Body\n'

    def test_invalid_yaml_is_treated_as_content(self):
        text = '---\ntitle: [unclosed\n---\nBody\n'
        frontmatter, content = extract_frontmatter(text)
        assert frontmatter == {}
        assert content == text

    def test_scalar_frontmatter_is_ignored(self):
        frontmatter, _ = extract_frontmatter('---\njust text\n---\nBody\n')
        assert frontmatter == {}


class TestMarkdownDocuments:

    def test_frontmatter_is_not_rendered(self, vault, renderer):
        document = write_document(vault, 'index.md', '---\ntitle: Home\n---\n# Welcome\n\nText\n')
        result = renderer.render(document)

        assert result.document_kind == 'markdown'
        assert 'title: Home' not in result.body_html
        assert parse(result).find('h1').get_text() == 'Welcome'

    def test_headings_carry_data_heading(self, vault, renderer):
        document = write_document(vault, 'index.md', '## Intro: Setup\n')
        heading = parse(renderer.render(document)).find('h2')
        assert heading['data-heading'] == 'Intro: Setup'

    def test_frontmatter_only_document_renders_nothing(self, vault, renderer):
        document = write_document(vault, 'empty.md', '---\ntitle: Empty\n---\n')
        assert renderer.render(document) is None

    def test_whitespace_document_renders_nothing(self, vault, renderer):
        document = write_document(vault, 'blank.md', '\n   \n')
        assert renderer.render(document) is None

    def test_unreadable_document_raises(self, vault, renderer):
        document = SourceDocument(path='gone.md', size=0, modified_time=0)
        with pytest.raises(RendererError):
            renderer.render(document)

    def test_rendering_is_deterministic(self, vault, renderer):
        document = write_document(vault, 'index.md', '# A\n\nSee [[child]] and ![[pic.png]]\n')
        assert renderer.render(document).body_html == renderer.render(document).body_html


class TestWikilinks:

    def test_wikilink_by_name_resolves_to_vault_path(self, vault, renderer):
        document = write_document(vault, 'index.md', 'See [[child]]\n')
        link = parse(renderer.render(document)).find('a', class_='internal-link')
        assert link['href'] == '/notes/child.md'
        assert link.get_text() == 'child'

    def test_wikilink_heading_is_encoded(self, vault, renderer):
        document = write_document(vault, 'index.md', 'See [[child#Section One]]\n')
        link = parse(renderer.render(document)).find('a', class_='internal-link')
        assert link['href'] == '/notes/child.md#Section%20One'
        assert link.get_text() == 'child > Section One'

    def test_wikilink_alias(self, vault, renderer):
        document = write_document(vault, 'index.md', 'See [[child|the child]]\n')
        link = parse(renderer.render(document)).find('a', class_='internal-link')
        assert link.get_text() == 'the child'

    def test_unknown_wikilink_gets_md_extension(self, vault, renderer):
        document = write_document(vault, 'index.md', 'See [[missing note]]\n')
        link = parse(renderer.render(document)).find('a', class_='internal-link')
        assert link['href'] == 'missing%20note.md'

    def test_same_page_heading_wikilink(self, vault, renderer):
        document = write_document(vault, 'index.md', 'Jump to [[#Usage]]\n')
        link = parse(renderer.render(document)).find('a', class_='internal-link')
        assert link['href'] == '#Usage'

    def test_image_embed(self, vault, renderer):
        document = write_document(vault, 'index.md', '![[pic.png]]\n')
        result = renderer.render(document)
        image = parse(result).find('img')
        assert image['src'] == '/pic.png'
        assert image['alt'] == 'pic.png'
        assert result.resource_references == ['/pic.png']

    def test_note_embed_is_marked(self, vault, renderer):
        document = write_document(vault, 'index.md', '![[child]]\n')
        link = parse(renderer.render(document)).find('a', class_='internal-embed')
        assert link['href'] == '/notes/child.md'


class TestCanvasAndMedia:

    def test_canvas_nodes(self, vault, renderer):
        canvas = {
            'nodes': [
                {'id': 'n1', 'type': 'text', 'text': '**bold** text'},
                {'id': 'n2', 'type': 'file', 'file': 'pic.png'},
                {'id': 'n3', 'type': 'link', 'url': 'https://example.com'},
                {'id': 'n4', 'type': 'group'},
            ],
            'edges': []
        }
        document = write_document(vault, 'board.canvas', json.dumps(canvas))
        result = renderer.render(document)
        soup = parse(result)

        assert result.document_kind == 'canvas'
        assert len(soup.find_all('div', class_='canvas-node')) == 3
        assert soup.find('strong').get_text() == 'bold'
        assert soup.find('img')['src'] == '/pic.png'
        assert soup.find('a')['href'] == 'https://example.com'

    def test_empty_canvas_renders_nothing(self, vault, renderer):
        document = write_document(vault, 'board.canvas', '{"nodes": []}')
        assert renderer.render(document) is None

    def test_invalid_canvas_raises(self, vault, renderer):
        document = write_document(vault, 'board.canvas', '{not json')
        with pytest.raises(RendererError):
            renderer.render(document)

    def test_media_document_embeds_itself(self, vault, renderer):
        document = SourceDocument(path='images/photo.jpg', size=4, modified_time=1)
        result = renderer.render(document)

        assert result.document_kind == 'media'
        assert parse(result).find('img')['src'] == 'photo.jpg'

    def test_unsupported_extension(self, renderer):
        document = SourceDocument(path='data.bin', size=1, modified_time=1)
        assert renderer.render(document) is None

    @pytest.mark.parametrize('extension,expected', [
        ('md', True),
        ('canvas', True),
        ('png', True),
        ('pdf', True),
        ('css', False),
        ('woff2', False),
        ('bin', False),
    ])
    def test_is_convertable(self, renderer, extension, expected):
        assert renderer.is_convertable(extension) is expected


class TestRendererFactory:

    def test_creates_markdown_renderer(self, vault):
        config = {
            'source': {'vault_path': str(vault)},
            'renderer': {'type': 'markdown', 'extensions': ['extra']}
        }
        renderer = RendererFactory.create_renderer(config)
        assert isinstance(renderer, MarkdownRenderer)
        assert renderer.extensions == ['extra']

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            RendererFactory.create_renderer({'renderer': {'type': 'asciidoc'}})
