"""Renderers package turning vault documents into HTML bodies."""

import logging
from typing import Any, Dict, Optional

from ..config_loader import get_nested
from .base_renderer import BaseRenderer, RendererError
from .markdown_renderer import MarkdownRenderer


class RendererFactory:
    """Factory for creating renderer instances based on configuration."""

    @staticmethod
    def create_renderer(config: Dict[str, Any], logger: Optional[logging.Logger] = None) -> BaseRenderer:
        """Create the renderer named by config['renderer']['type'].

        Args:
            config: Configuration dictionary
            logger: Logger instance

        Returns:
            BaseRenderer instance

        Raises:
            ValueError: If the renderer type is unknown
        """
        renderer_type = get_nested(config, 'renderer.type', 'markdown')

        if renderer_type == 'markdown':
            return MarkdownRenderer(
                vault_path=get_nested(config, 'source.vault_path', '.'),
                extensions=get_nested(config, 'renderer.extensions'),
                logger=logger
            )
        raise ValueError(f"Invalid renderer type: {renderer_type}. Must be 'markdown'.")


__all__ = [
    'BaseRenderer',
    'RendererError',
    'MarkdownRenderer',
    'RendererFactory'
]
