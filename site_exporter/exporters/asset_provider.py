"""Shared static assets (style sheets, scripts, fonts) emitted with every export."""

import logging
import posixpath
from pathlib import Path
from typing import List, Optional, Union

from ..models import Attachment, MediaKind, normalize_path


class StaticAssetProvider:
    """
    Provides the process-wide bundle of shared site assets.

    Every file below `directory` is emitted under `target_directory` with the
    same relative layout. The bundle is read once per batch; `clear_cache()`
    makes the next call re-read it.
    """

    def __init__(
        self,
        directory: Optional[Union[str, Path]] = None,
        target_directory: str = 'site-lib',
        logger: Optional[logging.Logger] = None
    ):
        self.directory = Path(directory) if directory else None
        self.target_directory = normalize_path(target_directory)
        self.logger = logger or logging.getLogger('site_exporter.exporters.asset_provider')
        self._assets: Optional[List[Attachment]] = None

    def clear_cache(self) -> None:
        """Forget the loaded bundle so the next batch re-reads the asset files."""
        self._assets = None

    def get_asset_downloads(self) -> List[Attachment]:
        """
        List the shared assets as attachments.

        Returns:
            Attachments sorted by target path (empty without a directory)
        """
        if self._assets is not None:
            return list(self._assets)

        assets = []
        if self.directory is None:
            self._assets = assets
            return []

        if not self.directory.is_dir():
            self.logger.warning(f"Shared asset directory not found: {self.directory}")
            self._assets = assets
            return []

        for file_path in sorted(self.directory.rglob('*')):
            if not file_path.is_file():
                continue
            relative = file_path.relative_to(self.directory).as_posix()
            assets.append(Attachment(
                source_path=posixpath.join(self.target_directory, relative),
                target_path=posixpath.join(self.target_directory, relative),
                content=file_path.read_bytes(),
                modified_time=int(file_path.stat().st_mtime * 1000)
            ))

        self.logger.info(f"Loaded {len(assets)} shared asset(s) from {self.directory}")
        self._assets = assets
        return list(assets)

    def head_references(self) -> str:
        """HTML <link>/<script> tags for the shared style sheets and scripts."""
        tags = []
        for asset in self.get_asset_downloads():
            if asset.media_kind == MediaKind.STYLE:
                tags.append(f'<link rel="stylesheet" href="{asset.target_path}">')
            elif asset.media_kind == MediaKind.SCRIPT:
                tags.append(f'<script src="{asset.target_path}"></script>')
        return "\n".join(tags)


__all__ = ['StaticAssetProvider']
