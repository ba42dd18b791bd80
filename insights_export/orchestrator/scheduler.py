"""Scheduled export pass.

Decides, once per invocation, which saved configurations are due and runs
them in bounded parallel batches. All schedule arithmetic happens in the
owner's time zone.

A configuration is due when:
1. today's weekday is in its ``auto_days`` (or ``auto_days`` is empty),
2. the local time matches its ``auto_time`` (same hour and a minute at or
   past the scheduled one; or, with ``window_minutes``, inside
   ``[scheduled, scheduled + window)``),
3. no successful automatic run of it exists earlier in the same local day.

``force`` bypasses all three.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional, Tuple

from loguru import logger

from insights_export.core.constants import DEFAULT_SCHEDULER_BATCH_SIZE, ExportType
from insights_export.core.exceptions import AuthenticationError, ExportError
from insights_export.core.protocols import AuditSink, ConfigurationStore
from insights_export.domain.models import ExportConfiguration, ScheduledPassSummary
from insights_export.pipeline import ExportPipeline
from insights_export.utils.date_utils import local_day_bounds, to_local, utc_now


def sunday_based_weekday(moment: datetime) -> int:
    """Weekday with 0 = Sunday .. 6 = Saturday."""
    return (moment.weekday() + 1) % 7


class ExportScheduler:
    """Runs due automatic exports.

    Attributes:
        store: Source of saved configurations
        pipeline: Runs each due configuration
        audit_sink: Consulted for the once-per-day check
        batch_size: Configurations run in parallel per batch
        window_minutes: Optional stricter schedule window
    """

    def __init__(
        self,
        store: ConfigurationStore,
        pipeline: ExportPipeline,
        audit_sink: AuditSink,
        batch_size: int = DEFAULT_SCHEDULER_BATCH_SIZE,
        window_minutes: Optional[int] = None,
    ):
        self.store = store
        self.pipeline = pipeline
        self.audit_sink = audit_sink
        self.batch_size = max(1, batch_size)
        self.window_minutes = window_minutes

    def is_due(self, config: ExportConfiguration, now: datetime, force: bool = False) -> bool:
        """Check whether a configuration should run in this pass."""
        if force:
            logger.info(f"[{config.name}] Force run, schedule checks bypassed")
            return True

        local = to_local(now, config.timezone)
        weekday = sunday_based_weekday(local)
        if config.auto_days and weekday not in config.auto_days:
            logger.debug(f"[{config.name}] Skipped: not scheduled on weekday {weekday} {config.auto_days}")
            return False

        hour, minute = config.schedule_time()
        if not self._time_matches(local, hour, minute):
            logger.debug(
                f"[{config.name}] Skipped: local time {local:%H:%M} does not match {config.auto_time}"
            )
            return False

        start, end = local_day_bounds(now, config.timezone)
        if self.audit_sink.has_successful_run(config.id, ExportType.AUTO, start, end):
            logger.info(f"[{config.name}] Skipped: already ran successfully today ({local:%Y-%m-%d})")
            return False

        return True

    def _time_matches(self, local: datetime, hour: int, minute: int) -> bool:
        if self.window_minutes is None:
            return local.hour == hour and local.minute >= minute
        scheduled = hour * 60 + minute
        current = local.hour * 60 + local.minute
        return scheduled <= current < scheduled + self.window_minutes

    def run_scheduled_pass(self, now: Optional[datetime] = None, force: bool = False) -> ScheduledPassSummary:
        """Run every due automatic configuration once.

        Args:
            now: Reference instant (defaults to the current UTC time)
            force: Run every automatic configuration regardless of schedule

        Returns:
            ScheduledPassSummary; per-configuration failures are collected in
            ``errors`` and never raised
        """
        now = now or utc_now()
        summary = ScheduledPassSummary()

        configurations = self.store.list_auto_configurations()
        logger.info("=" * 60)
        logger.info(f"Scheduled pass at {now.isoformat()} over {len(configurations)} configuration(s)")
        logger.info("=" * 60)

        due: List[ExportConfiguration] = []
        for config in configurations:
            try:
                if self.is_due(config, now, force):
                    due.append(config)
                else:
                    summary.skipped += 1
            except ExportError as e:
                summary.errors.append(f"{config.name} ({config.id}): {e.message}")
                logger.error(f"[{config.name}] Schedule check failed: {e}")
            except Exception as e:
                summary.errors.append(f"{config.name} ({config.id}): {str(e) or type(e).__name__}")
                logger.exception(f"[{config.name}] Unexpected error during schedule check")

        for offset in range(0, len(due), self.batch_size):
            batch = due[offset:offset + self.batch_size]
            logger.info(f"Running batch {offset // self.batch_size + 1} ({len(batch)} configuration(s))")
            for config, error in self._run_batch(batch, now):
                if error is None:
                    summary.processed += 1
                    summary.ran_config_ids.append(config.id)
                else:
                    summary.errors.append(f"{config.name} ({config.id}): {error}")

        logger.info(
            f"Scheduled pass finished: {summary.processed} processed, "
            f"{summary.skipped} skipped, {len(summary.errors)} error(s)"
        )
        return summary

    def _run_batch(
        self,
        batch: List[ExportConfiguration],
        now: datetime,
    ) -> List[Tuple[ExportConfiguration, Optional[str]]]:
        """Run a batch fully in parallel and wait for all of it."""
        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            futures = [(config, executor.submit(self._run_one, config, now)) for config in batch]
            return [(config, future.result()) for config, future in futures]

    def _run_one(self, config: ExportConfiguration, now: datetime) -> Optional[str]:
        """Run one configuration; return an error message or None."""
        logger.info(f"[{config.name}] Processing configuration {config.id}")
        try:
            result = self.pipeline.run_export(config.to_request(ExportType.AUTO), now=now)
        except AuthenticationError as e:
            logger.error(f"[{config.name}] Missing tokens for user {config.user_id}: {e}")
            return "Missing tokens"
        except ExportError as e:
            logger.error(f"[{config.name}] Automatic export failed: {e}")
            return e.message
        except Exception as e:
            logger.exception(f"[{config.name}] Unexpected error during automatic export")
            return str(e) or type(e).__name__
        logger.success(f"[{config.name}] Exported {result.rows_written} row(s)")
        return None
