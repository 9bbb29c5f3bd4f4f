"""Tests for export batches: incremental skipping, dedup/filter, commit and cancellation."""

import json
import os

import pytest

from site_exporter.config_loader import ExportOptions
from site_exporter.errors import ExportAbortedError
from site_exporter.exporters.asset_provider import StaticAssetProvider
from site_exporter.exporters.attachment_manager import AttachmentManager
from site_exporter.exporters.export_index import ExportIndex, IndexStore
from site_exporter.models import Attachment, DocumentStatus, IndexRecord, Page, RenderResult, SourceDocument
from site_exporter.orchestrator import (
    CancellationToken,
    ExportOrchestrator,
    ExportState,
    dedup_and_filter,
)
from site_exporter.renderers import BaseRenderer, RendererError


class StubRenderer(BaseRenderer):
    """Renderer returning canned bodies and recording every call."""

    def __init__(self, bodies=None, failing=(), on_render=None):
        super().__init__()
        self.bodies = bodies or {}
        self.failing = set(failing)
        self.on_render = on_render
        self.calls = []

    def is_convertable(self, extension):
        return True

    def render(self, document, options=None):
        self.calls.append(document.path)
        if self.on_render:
            self.on_render(document)
        if document.path in self.failing:
            raise RendererError(f"cannot render {document.path}")
        body = self.bodies.get(document.path, f"<p>{document.path}</p>")
        return RenderResult(body) if body else None


def make_orchestrator(tmp_path, renderer, **option_values):
    options = ExportOptions(**option_values)
    store = IndexStore(tmp_path / 'site' / 'site-lib' / 'metadata.json')
    return ExportOrchestrator(options, renderer, store, show_progress=False), store


def read_index(store):
    return json.loads(store.index_path.read_text(encoding='utf-8'))


class TestDedupAndFilter:

    def test_duplicate_targets_keep_first(self):
        first = Attachment('a.png', 'img/a.png', b'1', 1)
        second = Attachment('b.png', 'img/a.png', b'22', 2)
        page = Page('p.md', 'p.html', modified_time=1, byte_length=1)

        result = dedup_and_filter([first, page, second], ExportIndex(), incremental=False)

        assert result == [first, page]

    def test_font_with_record_and_same_size_is_dropped(self):
        index = ExportIndex([IndexRecord('fonts/a.woff2', 5000, 1024)], existed=True)
        font = Attachment('fonts/a.woff2', 'fonts/a.woff2', b'\x00' * 1024, 1000)

        assert dedup_and_filter([font], index, incremental=True) == []

    def test_font_with_record_and_different_size_is_kept(self):
        index = ExportIndex([IndexRecord('fonts/a.woff2', 5000, 1024)], existed=True)
        font = Attachment('fonts/a.woff2', 'fonts/a.woff2', b'\x00' * 2048, 1000)

        assert dedup_and_filter([font], index, incremental=True) == [font]

    def test_recorded_font_is_dropped_even_when_newer(self):
        index = ExportIndex([IndexRecord('fonts/a.woff2', 5000, 1024)], existed=True)
        font = Attachment('fonts/a.woff2', 'fonts/a.woff2', b'\x00' * 1024, 9000)

        assert dedup_and_filter([font], index, incremental=True) == []
        assert dedup_and_filter([font], index, incremental=True, immutable_fonts=False) == [font]

    def test_unrecorded_font_is_kept(self):
        font = Attachment('fonts/b.woff', 'fonts/b.woff', b'\x00' * 10, 1)
        assert dedup_and_filter([font], ExportIndex(existed=True), incremental=True) == [font]

    def test_pages_are_always_kept(self):
        index = ExportIndex([IndexRecord('p.html', 5000, 10)], existed=True)
        page = Page('p.md', 'p.html', modified_time=1, byte_length=10)

        assert dedup_and_filter([page], index, incremental=True) == [page]

    def test_unchanged_attachment_is_dropped(self):
        index = ExportIndex([IndexRecord('img/a.png', 5000, 3)], existed=True)
        unchanged = Attachment('img/a.png', 'img/a.png', b'abc', 4000)
        unrecorded = Attachment('img/b.png', 'img/b.png', b'abc', 4000)

        assert dedup_and_filter([unchanged, unrecorded], index, incremental=True) == [unrecorded]

    def test_full_export_keeps_everything(self):
        index = ExportIndex([IndexRecord('img/a.png', 5000, 3)], existed=True)
        unchanged = Attachment('img/a.png', 'img/a.png', b'abc', 4000)

        assert dedup_and_filter([unchanged], index, incremental=False) == [unchanged]


class TestIncrementalExport:

    def test_full_then_incremental(self, tmp_path):
        renderer = StubRenderer()
        orchestrator, store = make_orchestrator(tmp_path, renderer)
        documents = [
            SourceDocument('index.md', size=100, modified_time=1000),
            SourceDocument('child.md', size=50, modified_time=1000),
        ]

        first = orchestrator.export(documents)

        assert not first.incremental
        assert first.state == ExportState.DONE
        assert [page.target_path for page in first.pages] == ['index.html', 'child.html']
        assert read_index(store)['files'] == {
            'child.html': {'modifiedTime': 1000, 'sourceSize': 50},
            'index.html': {'modifiedTime': 1000, 'sourceSize': 100},
        }

        renderer.calls.clear()
        changed = [
            SourceDocument('index.md', size=100, modified_time=1000),
            SourceDocument('child.md', size=60, modified_time=1000),
        ]
        second = orchestrator.export(changed)

        assert second.incremental
        assert renderer.calls == ['child.md']
        assert second.summary.rebuilt == ['child.md']
        assert second.summary.skipped == ['index.md']
        assert read_index(store)['files']['child.html'] == {'modifiedTime': 1000, 'sourceSize': 60}
        assert read_index(store)['files']['index.html'] == {'modifiedTime': 1000, 'sourceSize': 100}

    def test_second_run_is_idempotent(self, tmp_path):
        orchestrator, store = make_orchestrator(tmp_path, StubRenderer())
        documents = [SourceDocument('a.md', 10, 1000), SourceDocument('b.md', 20, 1000)]

        orchestrator.export(documents)
        before = read_index(store)
        second = orchestrator.export(documents)

        assert second.summary.rebuilt == []
        assert len(second.summary.skipped) == 2
        assert second.files == []
        assert read_index(store) == before

    def test_force_full_rebuilds_everything(self, tmp_path):
        renderer = StubRenderer()
        orchestrator, _ = make_orchestrator(tmp_path, renderer)
        documents = [SourceDocument('a.md', 10, 1000)]

        orchestrator.export(documents)
        result = orchestrator.export(documents, force_full=True)

        assert not result.incremental
        assert result.summary.rebuilt == ['a.md']
        assert renderer.calls == ['a.md', 'a.md']

    def test_incremental_disabled(self, tmp_path):
        renderer = StubRenderer()
        orchestrator, _ = make_orchestrator(tmp_path, renderer, incremental_export=False)
        documents = [SourceDocument('a.md', 10, 1000)]

        orchestrator.export(documents)
        result = orchestrator.export(documents)

        assert not result.incremental
        assert result.summary.rebuilt == ['a.md']

    def test_links_to_skipped_pages_resolve(self, tmp_path):
        renderer = StubRenderer(bodies={'a.md': '<p><a href="b.md">b</a></p>'})
        orchestrator, _ = make_orchestrator(tmp_path, renderer)

        orchestrator.export([SourceDocument('a.md', 10, 1000), SourceDocument('b.md', 10, 1000)])
        result = orchestrator.export([SourceDocument('a.md', 11, 2000), SourceDocument('b.md', 10, 1000)])

        assert result.summary.skipped == ['b.md']
        assert result.pages[0].unresolved_links == []
        assert 'href="b.html"' in result.pages[0].body_content


class TestAttachmentsAndAssets:

    def test_shared_attachment_is_emitted_once(self, tmp_path):
        vault = tmp_path / 'vault'
        vault.mkdir()
        (vault / 'pic.png').write_bytes(b'\x89PNG' + b'\x00' * 8)
        renderer = StubRenderer(bodies={
            'a.md': '<p><img src="pic.png"></p>',
            'b.md': '<p><img src="pic.png"></p>',
        })
        options = ExportOptions()
        store = IndexStore(tmp_path / 'site' / 'metadata.json')
        orchestrator = ExportOrchestrator(
            options, renderer, store,
            attachment_manager=AttachmentManager(vault, options),
            show_progress=False
        )

        result = orchestrator.export([SourceDocument('a.md', 10, 1000), SourceDocument('b.md', 10, 1000)])

        paths = [item.target_path for item in result.files]
        assert paths == ['pic.png', 'a.html', 'b.html']
        assert len(paths) == len(set(paths))
        assert [a.target_path for a in result.attachments] == ['pic.png']

        again = orchestrator.export([SourceDocument('a.md', 12, 2000), SourceDocument('b.md', 10, 1000)])
        assert [item.target_path for item in again.files] == ['a.html']

    def test_shared_assets_follow_pages(self, tmp_path):
        assets = tmp_path / 'assets'
        assets.mkdir()
        (assets / 'style.css').write_text('body {}', encoding='utf-8')
        options = ExportOptions()
        orchestrator = ExportOrchestrator(
            options, StubRenderer(), IndexStore(tmp_path / 'site' / 'metadata.json'),
            asset_provider=StaticAssetProvider(assets, 'site-lib'),
            show_progress=False
        )

        result = orchestrator.export([SourceDocument('a.md', 10, 1000)])

        assert [item.target_path for item in result.files] == ['a.html', 'site-lib/style.css']
        assert 'site-lib/style.css' in result.pages[0].body_content

    def test_edited_asset_is_emitted_next_batch(self, tmp_path):
        assets = tmp_path / 'assets'
        assets.mkdir()
        theme = assets / 'theme.css'
        theme.write_text('body {}', encoding='utf-8')
        orchestrator = ExportOrchestrator(
            ExportOptions(), StubRenderer(), IndexStore(tmp_path / 'site' / 'metadata.json'),
            asset_provider=StaticAssetProvider(assets, 'site-lib'),
            show_progress=False
        )
        documents = [SourceDocument('a.md', 10, 1000)]
        orchestrator.export(documents)

        theme.write_text('body { color: red; }', encoding='utf-8')
        later = theme.stat().st_mtime + 60
        os.utime(theme, (later, later))
        result = orchestrator.export(documents)

        assert [item.target_path for item in result.files] == ['site-lib/theme.css']
        assert result.files[0].content == b'body { color: red; }'


class TestFailures:

    def test_failed_document_does_not_abort(self, tmp_path):
        orchestrator, store = make_orchestrator(tmp_path, StubRenderer(failing=['b.md']))

        result = orchestrator.export([SourceDocument('a.md', 10, 1000), SourceDocument('b.md', 10, 1000)])

        assert result.summary.rebuilt == ['a.md']
        assert result.summary.failed == ['b.md']
        assert 'cannot render b.md' in result.summary.errors['b.md']
        assert 'b.html' not in read_index(store)['files']

    def test_empty_render_marks_document_failed(self, tmp_path):
        orchestrator, store = make_orchestrator(tmp_path, StubRenderer(bodies={'a.md': ''}))

        result = orchestrator.export([SourceDocument('a.md', 10, 1000)])

        assert result.summary.statuses['a.md'] == DocumentStatus.FAILED
        assert result.pages == []
        assert read_index(store)['files'] == {}

    def test_failed_document_keeps_previous_record(self, tmp_path):
        renderer = StubRenderer()
        orchestrator, store = make_orchestrator(tmp_path, renderer)
        orchestrator.export([SourceDocument('a.md', 10, 1000)])

        renderer.failing.add('a.md')
        orchestrator.export([SourceDocument('a.md', 20, 2000)])

        assert read_index(store)['files']['a.html'] == {'modifiedTime': 1000, 'sourceSize': 10}

    def test_corrupt_index_falls_back_to_full_export(self, tmp_path):
        orchestrator, store = make_orchestrator(tmp_path, StubRenderer())
        store.index_path.parent.mkdir(parents=True)
        store.index_path.write_text('garbage', encoding='utf-8')

        result = orchestrator.export([SourceDocument('a.md', 10, 1000)])

        assert not result.incremental
        assert result.summary.rebuilt == ['a.md']
        assert read_index(store)['files'] == {'a.html': {'modifiedTime': 1000, 'sourceSize': 10}}

    def test_unreadable_index_aborts(self, tmp_path):
        class BrokenStore:
            def load(self):
                raise OSError("disk unavailable")

        orchestrator = ExportOrchestrator(ExportOptions(), StubRenderer(), BrokenStore(), show_progress=False)

        with pytest.raises(ExportAbortedError):
            orchestrator.export([SourceDocument('a.md', 10, 1000)])

    def test_unwritable_index_aborts(self, tmp_path):
        class ReadOnlyStore:
            def load(self):
                return ExportIndex()

            def save(self, index):
                raise OSError("read-only file system")

        orchestrator = ExportOrchestrator(ExportOptions(), StubRenderer(), ReadOnlyStore(), show_progress=False)

        with pytest.raises(ExportAbortedError):
            orchestrator.export([SourceDocument('a.md', 10, 1000)])


class TestCancellation:

    def test_cancelled_before_start(self, tmp_path):
        renderer = StubRenderer()
        orchestrator, store = make_orchestrator(tmp_path, renderer)
        token = CancellationToken()
        token.cancel()

        result = orchestrator.export([SourceDocument('a.md', 10, 1000)], cancel_token=token)

        assert result.cancelled
        assert result.state == ExportState.CANCELLED
        assert result.files == []
        assert renderer.calls == []
        assert not store.exists()

    def test_cancelled_mid_batch_leaves_index_untouched(self, tmp_path):
        orchestrator, store = make_orchestrator(tmp_path, StubRenderer())
        orchestrator.export([SourceDocument('a.md', 10, 1000)])
        before = store.index_path.read_bytes()

        token = CancellationToken()
        renderer = StubRenderer(on_render=lambda document: token.cancel())
        orchestrator.renderer = renderer

        result = orchestrator.export(
            [SourceDocument('a.md', 11, 2000), SourceDocument('b.md', 10, 1000)],
            cancel_token=token
        )

        assert result.cancelled
        assert renderer.calls == ['a.md']
        assert store.index_path.read_bytes() == before
