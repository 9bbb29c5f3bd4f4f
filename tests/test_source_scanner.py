"""Tests for the vault source scanner."""

import pytest

from site_exporter.exporters.source_scanner import SourceScanner


@pytest.fixture
def vault(tmp_path):
    vault = tmp_path / 'vault'
    (vault / 'notes').mkdir(parents=True)
    (vault / '.obsidian').mkdir()
    (vault / 'index.md').write_text('---\ntitle: Home\n---\n# Home\n', encoding='utf-8')
    (vault / 'notes' / 'child.md').write_text('# Child\n', encoding='utf-8')
    (vault / 'notes' / 'board.canvas').write_text('{"nodes": []}', encoding='utf-8')
    (vault / 'pic.png').write_bytes(b'\x89PNG')
    (vault / '.obsidian' / 'workspace.md').write_text('# internal\n', encoding='utf-8')
    return vault


class TestSourceScanner:

    def test_documents_are_sorted_and_filtered(self, vault):
        scanner = SourceScanner(vault, include=['**/*.md', '**/*.canvas'], exclude=['.obsidian/**'])
        documents = scanner.scan()

        assert [d.path for d in documents] == ['index.md', 'notes/board.canvas', 'notes/child.md']

    def test_root_files_match_recursive_pattern(self, vault):
        documents = SourceScanner(vault, include=['**/*.md'], exclude=['.obsidian/**']).scan()
        assert 'index.md' in [d.path for d in documents]

    def test_single_star_stays_in_one_folder(self, vault):
        documents = SourceScanner(vault, include=['*.md']).scan()
        assert [d.path for d in documents] == ['index.md']

    def test_folder_pattern_excludes_nested_files(self, vault):
        (vault / 'notes' / 'deep').mkdir()
        (vault / 'notes' / 'deep' / 'draft.md').write_text('# Draft\n', encoding='utf-8')
        scanner = SourceScanner(vault, include=['**/*.md'], exclude=['.obsidian/**', 'notes/**'])
        documents = scanner.scan()

        assert [d.path for d in documents] == ['index.md']
        assert scanner.get_stats()['files_excluded'] == 3

    def test_frontmatter_and_stat(self, vault):
        documents = SourceScanner(vault, include=['*.md']).scan()
        index = documents[0]

        assert index.path == 'index.md'
        assert index.frontmatter == {'title': 'Home'}
        assert index.size == (vault / 'index.md').stat().st_size
        assert index.modified_time == int((vault / 'index.md').stat().st_mtime * 1000)
        assert index.absolute_path == str(vault / 'index.md')

    def test_canvas_has_no_frontmatter(self, vault):
        documents = SourceScanner(vault, include=['**/*.canvas']).scan()
        assert documents[0].frontmatter == {}

    def test_stats(self, vault):
        scanner = SourceScanner(vault, include=['**/*.md'], exclude=['.obsidian/**'])
        scanner.scan()
        stats = scanner.get_stats()

        assert stats['files_scanned'] == 5
        assert stats['documents_found'] == 2
        assert stats['files_excluded'] == 1

    def test_missing_vault(self, tmp_path):
        with pytest.raises(ValueError):
            SourceScanner(tmp_path / 'absent').scan()
