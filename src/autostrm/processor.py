from __future__ import annotations

import logging
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from rich.progress import Progress

from .config import AppConfig, MetadataProviderConfig, NamingRule, OutputConfig, SourceConfig, TaskConfig
from .discern import discern, usable_rules
from .errors import ConfigurationError, PersistenceError, SourceEnumerationError
from .file_filter import compile_file_patterns, matches_file_patterns
from .logging_utils import render_fields_block
from .metadata import MetadataProvider, create_metadata_provider
from .models import AuditRecord, FileDescriptor, ProcessingStats
from .outputs import OutputProvider, create_output_provider
from .resolver import resolve_candidate
from .sources import SourceProvider, create_source_provider, iter_source_files

LOGGER = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class TaskRuntime:
    """Everything needed to process the files of one task."""

    task: TaskConfig
    source_config: SourceConfig
    provider_config: MetadataProviderConfig
    output_config: OutputConfig
    source: SourceProvider
    provider: MetadataProvider
    output: OutputProvider
    output_dir: Path
    rules: list[NamingRule]
    file_patterns: list[re.Pattern[str]]
    started_at: str

    def close(self) -> None:
        self.source.close()
        self.provider.close()


class Processor:
    def __init__(self, config: AppConfig) -> None:
        self.config = config

    @staticmethod
    def _format_log(event: str, fields: Mapping[str, object] | None = None) -> str:
        return render_fields_block(event, fields or {}, pad_top=True)

    def process_all(self) -> ProcessingStats:
        """Process every enabled task in configuration order."""
        stats = ProcessingStats()
        started_at = _timestamp()
        run_started = time.perf_counter()
        base_dir = self.config.settings.base_output_dir
        LOGGER.info(self._format_log("Run Started", {"Started At": started_at, "Output Base": base_dir}))

        if not base_dir.is_dir():
            message = f"Base output directory does not exist: {base_dir}"
            LOGGER.error(self._format_log("Run Aborted", {"Reason": message}))
            stats.aborted = True
            stats.register_error(message)
            return stats

        for name, reason in self.config.task_errors.items():
            LOGGER.error(self._format_log("Task Configuration Error", {"Task": name, "Error": reason}))
            stats.register_failed_task(f"{name}: {reason}")

        for task in self.config.tasks.values():
            if not task.enabled:
                LOGGER.info(self._format_log("Task Disabled", {"Task": task.name}))
                continue
            self.process_task(task, stats, started_at=started_at)

        duration = time.perf_counter() - run_started
        LOGGER.info(
            self._format_log(
                "Run Recap",
                {
                    "Duration": f"{duration:.2f}s",
                    "Processed": stats.processed,
                    "Skipped": stats.skipped,
                    "Ignored": stats.ignored,
                    "Failed Tasks": stats.failed_tasks,
                    "Errors": len(stats.errors),
                },
            )
        )
        return stats

    def _build_runtime(self, task: TaskConfig, started_at: str) -> TaskRuntime:
        source_config = self.config.source(task.source)
        provider_config = self.config.nfo_provider(task.nfo_provider)
        output_config = self.config.output(task.output)

        source = create_source_provider(source_config)
        try:
            provider = create_metadata_provider(provider_config)
            output = create_output_provider(output_config)
        except ConfigurationError:
            source.close()
            raise

        return TaskRuntime(
            task=task,
            source_config=source_config,
            provider_config=provider_config,
            output_config=output_config,
            source=source,
            provider=provider,
            output=output,
            output_dir=self.config.output_directory(output_config),
            rules=usable_rules(self.config.rules_for_task(task), task=task.name),
            file_patterns=compile_file_patterns(task.file_patterns, task=task.name),
            started_at=started_at,
        )

    def process_task(
        self,
        task: TaskConfig,
        stats: ProcessingStats | None = None,
        *,
        started_at: str | None = None,
    ) -> ProcessingStats:
        stats = stats if stats is not None else ProcessingStats()
        LOGGER.info(self._format_log("Processing Task", {"Task": task.name, "Media Type": task.media_type.value}))

        try:
            runtime = self._build_runtime(task, started_at or _timestamp())
        except ConfigurationError as exc:
            LOGGER.error(self._format_log("Task Configuration Error", {"Task": task.name, "Error": exc}))
            stats.register_failed_task(f"{task.name}: {exc}")
            return stats

        try:
            try:
                files = list(iter_source_files(runtime.source))
            except SourceEnumerationError as exc:
                LOGGER.error(
                    self._format_log(
                        "Source Enumeration Failed",
                        {"Task": task.name, "Source": runtime.source_config.name, "Error": exc},
                    )
                )
                stats.register_failed_task(f"{task.name}: {exc}")
                return stats

            eligible = [file for file in files if matches_file_patterns(file.filename, runtime.file_patterns)]
            stats.ignored += len(files) - len(eligible)
            LOGGER.info(
                self._format_log(
                    "Filtered Source Files",
                    {
                        "Task": task.name,
                        "File Patterns": list(task.file_patterns),
                        "Listed": len(files),
                        "Eligible": len(eligible),
                    },
                )
            )

            with Progress(disable=not LOGGER.isEnabledFor(logging.INFO)) as progress:
                progress_id = progress.add_task(task.name, total=len(eligible))
                for file in eligible:
                    try:
                        self.process_file(file, runtime, stats)
                    except PersistenceError as exc:
                        LOGGER.error(
                            self._format_log("Output Write Failed", {"File": file.filename, "Error": exc})
                        )
                        stats.register_error(f"{task.name}: {file.filename}: {exc}")
                    except Exception as exc:  # noqa: BLE001 - a failing file must not end the task
                        LOGGER.exception(
                            self._format_log("File Processing Failed", {"File": file.filename, "Error": exc})
                        )
                        stats.register_error(f"{task.name}: {file.filename}: {exc}")
                    progress.advance(progress_id, 1)
        finally:
            runtime.close()

        return stats

    def process_file(self, file: FileDescriptor, runtime: TaskRuntime, stats: ProcessingStats) -> bool:
        """Drive one file through discernment, resolution and auditing.

        Returns True when a candidate succeeded and its audit record was written.
        """
        task = runtime.task
        candidates = discern(file, runtime.rules, task.media_type)
        if not candidates[0].match:
            LOGGER.info(self._format_log("No Naming Rule Matched", {"Task": task.name, "File": file.filename}))
            stats.register_ignored()
            return False

        for candidate in candidates:
            if not candidate.match:
                continue
            outcome = resolve_candidate(
                candidate,
                output=runtime.output,
                provider=runtime.provider,
                output_dir=runtime.output_dir,
                language=task.language,
            )
            if not outcome.success:
                continue

            title = candidate.title or ""
            record = AuditRecord(
                executed_at=_timestamp(),
                task_started_at=runtime.started_at,
                candidate=candidate,
                title=title,
                year=outcome.year,
                enrichment=outcome.enrichment,
                provider=runtime.provider_config,
                output=runtime.output_config,
            )
            runtime.output.write_audit_record(runtime.output_dir, title, outcome.year, record)
            stats.register_processed(task.name)
            LOGGER.info(
                self._format_log(
                    "File Processed",
                    {
                        "Task": task.name,
                        "File": file.filename,
                        "Title": title,
                        "Year": outcome.year or "unknown",
                        "Rule": candidate.rule_name,
                    },
                )
            )
            return True

        message = f"{task.name}: {file.filename}: no candidate could be resolved"
        LOGGER.warning(self._format_log("File Skipped", {"Task": task.name, "File": file.filename}))
        stats.register_skipped(message, task=task.name)
        return False
