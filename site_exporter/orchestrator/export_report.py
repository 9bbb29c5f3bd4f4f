"""
Export report generator summarizing one export batch.

Reports distinguish rebuilt, skipped-unchanged and failed documents and are
formatted for console display, JSON export, and CSV export.
"""

import csv
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .export_orchestrator import ExportResult


class ExportReport:
    """Generates export reports from an ExportResult."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize export report generator.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger('site_exporter.orchestrator.export_report')

    def generate_report(
        self,
        result: ExportResult,
        written: Optional[Dict[str, Any]] = None,
        component_stats: Optional[Dict[str, Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """
        Generate the export report.

        Args:
            result: Result of the export batch
            written: Optional statistics of the site writer
            component_stats: Optional `get_stats()` output keyed by component
                (for example 'scanner' and 'attachments')

        Returns:
            Export report dictionary
        """
        summary = result.summary
        report = {
            'summary': {
                'documents': len(summary.statuses),
                'rebuilt': len(summary.rebuilt),
                'skipped_unchanged': len(summary.skipped),
                'failed': len(summary.failed),
                'pages_emitted': len(result.pages),
                'attachments_emitted': len(result.attachments),
                'unresolved_links': result.unresolved_links,
                'index_records': result.index_records,
                'incremental': result.incremental,
                'cancelled': result.cancelled,
                'state': result.state.value,
                'duration': result.duration,
                'duration_formatted': self._format_duration(result.duration),
            },
            'documents': [
                {
                    'path': path,
                    'status': status.value,
                    'error': summary.errors.get(path)
                }
                for path, status in summary.statuses.items()
            ],
            'outcomes': summary.to_dict(),
            'errors': self._build_error_summary(result),
            'unresolved': self._build_unresolved_links(result),
            'pages': [page.to_dict() for page in result.pages],
            'attachments': [attachment.to_dict() for attachment in result.attachments],
            'writer': dict(written or {}),
            'components': {name: dict(stats) for name, stats in (component_stats or {}).items()},
            'timestamp': datetime.now().isoformat()
        }

        self.logger.info(
            f"Report generated: {report['summary']['rebuilt']} rebuilt, "
            f"{report['summary']['failed']} failed"
        )
        return report

    @staticmethod
    def _build_error_summary(result: ExportResult) -> List[Dict[str, str]]:
        return [{'path': path, 'error': error} for path, error in result.summary.errors.items()]

    @staticmethod
    def _build_unresolved_links(result: ExportResult) -> List[Dict[str, str]]:
        unresolved = []
        for page in result.pages:
            for link in page.unresolved_links:
                unresolved.append({'page': page.target_path, 'href': link.raw_href})
        return unresolved

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        else:
            hours = int(seconds // 3600)
            minutes = int((seconds % 3600) // 60)
            secs = int(seconds % 60)
            return f"{hours}h {minutes}m {secs}s"

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Export report dictionary

        Returns:
            Formatted console string
        """
        sections = []

        sections.append("=" * 60)
        sections.append("EXPORT REPORT")
        sections.append("=" * 60)
        sections.append("")

        summary = report.get('summary', {})
        mode = 'incremental' if summary.get('incremental') else 'full'
        sections.append("Summary:")
        sections.append(f"  Mode:        {mode}{' (cancelled)' if summary.get('cancelled') else ''}")
        sections.append(f"  Documents:   {summary.get('documents', 0)}")
        sections.append(f"  Rebuilt:     {summary.get('rebuilt', 0)}")
        sections.append(f"  Unchanged:   {summary.get('skipped_unchanged', 0)}")
        sections.append(f"  Failed:      {summary.get('failed', 0)}")
        sections.append(f"  Attachments: {summary.get('attachments_emitted', 0)}")
        sections.append(f"  Duration:    {summary.get('duration_formatted', '0s')}")

        if summary.get('unresolved_links', 0) > 0:
            sections.append(f"  Unresolved:  {summary['unresolved_links']} link(s)")

        writer = report.get('writer') or {}
        if writer:
            sections.append(
                f"  Written:     {writer.get('written', 0)} file(s), "
                f"{writer.get('unchanged', 0)} identical, {writer.get('failed', 0)} failed"
            )

        components = report.get('components') or {}
        scanner = components.get('scanner')
        if scanner:
            sections.append(
                f"  Scanned:     {scanner.get('files_scanned', 0)} file(s), "
                f"{scanner.get('files_excluded', 0)} excluded"
            )
        attachments = components.get('attachments')
        if attachments:
            sections.append(
                f"  Loaded:      {attachments.get('loaded', 0)} attachment(s), "
                f"{attachments.get('skipped', 0)} skipped, {attachments.get('failed', 0)} missing"
            )

        errors = report.get('errors', [])
        if errors:
            sections.append("")
            sections.append("Errors:")
            sections.append("-" * 60)
            for error in errors[:20]:
                sections.append(f"  {error['path']}: {error['error']}")
            if len(errors) > 20:
                sections.append(f"  ... and {len(errors) - 20} more")

        sections.append("")
        sections.append("=" * 60)

        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Export report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=str)

            self.logger.info(f"JSON report exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {str(e)}")

    def export_csv_summary(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export per-document statuses to CSV.

        Args:
            report: Export report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)
                writer.writerow(['path', 'status', 'error'])
                for document in report.get('documents', []):
                    writer.writerow([document['path'], document['status'], document.get('error') or ''])

            self.logger.info(f"CSV summary exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export CSV summary: {str(e)}")


__all__ = ['ExportReport']
