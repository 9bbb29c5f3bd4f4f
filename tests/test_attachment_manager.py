"""Tests for attachment loading and shared assets."""

import pytest

from site_exporter.config_loader import ExportOptions
from site_exporter.errors import AttachmentMissing
from site_exporter.exporters.asset_provider import StaticAssetProvider
from site_exporter.exporters.attachment_manager import AttachmentManager
from site_exporter.models import MediaKind


@pytest.fixture
def vault(tmp_path):
    vault = tmp_path / 'vault'
    (vault / 'img').mkdir(parents=True)
    (vault / 'img' / 'pic.png').write_bytes(b'\x89PNG')
    (vault / 'backup.tar.gz').write_bytes(b'\x1f\x8b' * 10)
    return vault


class TestAttachmentManager:

    def test_loads_attachment(self, vault):
        manager = AttachmentManager(vault)
        attachment = manager.create_attachment('img/pic.png')

        assert attachment.source_path == 'img/pic.png'
        assert attachment.target_path == 'img/pic.png'
        assert attachment.content == b'\x89PNG'
        assert attachment.byte_length == 4
        assert attachment.media_kind == MediaKind.MEDIA
        assert attachment.modified_time == int((vault / 'img' / 'pic.png').stat().st_mtime * 1000)

    def test_attachments_are_cached_until_cleared(self, vault):
        manager = AttachmentManager(vault)
        first = manager.create_attachment('img/pic.png')
        assert manager.create_attachment('img/pic.png') is first

        manager.clear_cache()
        assert manager.create_attachment('img/pic.png') is not first
        assert manager.get_stats()['loaded'] == 2

    def test_missing_file(self, vault):
        manager = AttachmentManager(vault)
        with pytest.raises(AttachmentMissing):
            manager.create_attachment('img/none.png')
        assert manager.get_stats()['failed'] == 1

    def test_size_limit(self, vault):
        manager = AttachmentManager(vault, ExportOptions(max_attachment_size=2))
        with pytest.raises(AttachmentMissing):
            manager.create_attachment('img/pic.png')
        assert manager.get_stats()['skipped'] == 1

    def test_multi_part_extension_is_skipped(self, vault):
        manager = AttachmentManager(vault, ExportOptions(skip_file_types=['.tar.gz']))
        with pytest.raises(AttachmentMissing):
            manager.create_attachment('backup.tar.gz')

    def test_exists(self, vault):
        manager = AttachmentManager(vault)
        assert manager.exists('img/pic.png')
        assert not manager.exists('img')


class TestStaticAssetProvider:

    def test_assets_are_targeted_below_site_lib(self, tmp_path):
        assets = tmp_path / 'assets'
        (assets / 'fonts').mkdir(parents=True)
        (assets / 'style.css').write_text('body {}')
        (assets / 'app.js').write_text('1;')
        (assets / 'fonts' / 'main.woff2').write_bytes(b'wOF2')

        provider = StaticAssetProvider(assets)
        downloads = provider.get_asset_downloads()

        assert [a.target_path for a in downloads] == [
            'site-lib/app.js', 'site-lib/fonts/main.woff2', 'site-lib/style.css'
        ]
        assert downloads[1].media_kind == MediaKind.FONT

        head = provider.head_references()
        assert '<link rel="stylesheet" href="site-lib/style.css">' in head
        assert '<script src="site-lib/app.js"></script>' in head
        assert 'woff2' not in head

    def test_no_directory(self):
        provider = StaticAssetProvider()
        assert provider.get_asset_downloads() == []
        assert provider.head_references() == ''

    def test_bundle_is_reread_after_clear_cache(self, tmp_path):
        assets = tmp_path / 'assets'
        assets.mkdir()
        (assets / 'style.css').write_text('body {}')
        provider = StaticAssetProvider(assets)
        provider.get_asset_downloads()

        (assets / 'late.css').write_text('p {}')
        assert len(provider.get_asset_downloads()) == 1

        provider.clear_cache()
        assert [a.target_path for a in provider.get_asset_downloads()] == [
            'site-lib/late.css', 'site-lib/style.css'
        ]
