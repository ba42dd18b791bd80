"""Scheduled export orchestration."""

from insights_export.orchestrator.scheduler import ExportScheduler

__all__ = ["ExportScheduler"]
