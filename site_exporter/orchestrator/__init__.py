"""
Orchestration package for coordinating export batches.

This package sequences one export batch: index load, per-document page
building, aggregation, deduplication and filtering, index commit, and the
final report.
"""

from .export_orchestrator import (
    CancellationToken,
    ExportOrchestrator,
    ExportResult,
    ExportState,
    dedup_and_filter,
)
from .export_report import ExportReport

__all__ = [
    'CancellationToken',
    'ExportOrchestrator',
    'ExportResult',
    'ExportState',
    'ExportReport',
    'dedup_and_filter'
]
