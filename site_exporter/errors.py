"""Exception taxonomy for the site export pipeline."""


class SiteExportError(Exception):
    """Base exception for export-related errors."""
    pass


class IndexCorruptError(SiteExportError):
    """The persisted export index could not be parsed.

    Fatal to incremental mode only: the orchestrator falls back to a full
    export for the run and overwrites the index on commit.
    """
    pass


class ExportAbortedError(SiteExportError):
    """The batch was aborted and the export index was not committed."""
    pass


class PageBuildSkipped(SiteExportError):
    """A source document produced no page this run."""

    def __init__(self, source_path: str, reason: str = "no page produced"):
        self.source_path = source_path
        self.reason = reason
        super().__init__(f"{source_path}: {reason}")


class AttachmentMissing(SiteExportError):
    """A referenced attachment could not be found or loaded."""

    def __init__(self, source_path: str, reason: str = "file not found"):
        self.source_path = source_path
        self.reason = reason
        super().__init__(f"Attachment '{source_path}': {reason}")


class UnresolvedLinkWarning(UserWarning):
    """A link whose destination is not part of the exported site.

    Recorded on the page; the original href is kept and marked.
    """

    def __init__(self, raw_href: str, source_path: str):
        self.raw_href = raw_href
        self.source_path = source_path
        super().__init__(f"Unresolved link '{raw_href}' in {source_path}")


__all__ = [
    'SiteExportError',
    'IndexCorruptError',
    'ExportAbortedError',
    'PageBuildSkipped',
    'AttachmentMissing',
    'UnresolvedLinkWarning',
]
