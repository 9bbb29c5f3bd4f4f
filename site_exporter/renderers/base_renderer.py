"""Abstract base renderer interface and common functionality."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..config_loader import ExportOptions
from ..errors import SiteExportError
from ..models import RenderResult, SourceDocument


class RendererError(SiteExportError):
    """Base exception for renderer-related errors."""
    pass


class BaseRenderer(ABC):
    """Abstract base class for document renderers.

    A renderer turns one source document into an HTML body. It must be
    deterministic: the same document and options always give the same output,
    otherwise skipping unchanged documents would publish stale pages.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize base renderer with a logger.

        Args:
            logger: Logger instance (optional, uses module logger if not provided)
        """
        self.logger = logger or logging.getLogger('site_exporter.renderers')

    @abstractmethod
    def is_convertable(self, extension: str) -> bool:
        """
        Check whether files with this extension can be rendered.

        Args:
            extension: Lowercase extension without the dot

        Returns:
            True if render() accepts such documents
        """
        pass

    @abstractmethod
    def render(self, document: SourceDocument, options: Optional[ExportOptions] = None) -> Optional[RenderResult]:
        """
        Render one document.

        Args:
            document: Source document
            options: Export options

        Returns:
            RenderResult, or None when the document produced no content

        Raises:
            RendererError: If the document cannot be rendered
        """
        pass


__all__ = ['BaseRenderer', 'RendererError']
