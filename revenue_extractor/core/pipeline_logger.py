"""Structured, request-scoped logging for the extraction pipeline.

One PipelineLogger is created per document run and handed to every phase
through PhaseContext. It carries a session id (the job id when run by the
worker) that prefixes every line, so interleaved output from several workers
writing to the same stream can be told apart. There is no module-level
instance: two runs never share phase timers or file handlers.

All instances write through the stdlib logger named ``revenue_extractor``;
the console handler is attached once, file handlers per run.
"""

import logging
import sys
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

LOGGER_NAME = "revenue_extractor"


class PipelineLogger:
    """Structured logger for one pipeline run."""

    def __init__(
        self,
        session_id: str | None = None,
        verbose: bool = False,
        log_dir: str | Path | None = None,
        name: str = LOGGER_NAME,
    ):
        """Initialize the pipeline logger.

        Args:
            session_id: Correlation id shown on every line. Random if omitted.
            verbose: If True, show DEBUG level logs on the console.
            log_dir: Directory for per-run log files. If None, no file logging.
            name: Underlying stdlib logger name.
        """
        self.session_id = session_id or uuid.uuid4().hex
        self.logger = logging.getLogger(name)
        self.verbose = verbose
        self._phase: str = ""
        self._phase_start: float = 0
        self._pipeline_start: float = 0
        self._log_dir = Path(log_dir) if log_dir else None
        self._log_file: Path | None = None
        self._file_handler: logging.FileHandler | None = None
        self._tick_count: int = 0
        self._tick_total: int = 0

        if not any(isinstance(h, _ConsoleHandler) for h in self.logger.handlers):
            console_handler = _ConsoleHandler(sys.stdout)
            console_handler.setFormatter(ConsoleFormatter())
            console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
            self.logger.addHandler(console_handler)
        elif verbose:
            self.set_verbose(True)

        self.logger.setLevel(logging.DEBUG)

    @property
    def short_id(self) -> str:
        return self.session_id[:8]

    @property
    def log_file(self) -> Path | None:
        return self._log_file

    def set_verbose(self, verbose: bool):
        """Update verbose setting on the shared console handler."""
        self.verbose = verbose
        for handler in self.logger.handlers:
            if isinstance(handler, _ConsoleHandler):
                handler.setLevel(logging.DEBUG if verbose else logging.INFO)

    def _ts(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _prefix(self, message: str) -> str:
        return f"[{self.short_id}] {message}"

    def _elapsed(self) -> str:
        """Get elapsed time since phase start."""
        if self._phase_start:
            return f"{time.time() - self._phase_start:.1f}s"
        return ""

    def _total_elapsed(self) -> str:
        """Get total elapsed time since pipeline start."""
        if self._pipeline_start:
            elapsed = time.time() - self._pipeline_start
            mins = int(elapsed // 60)
            secs = elapsed % 60
            if mins > 0:
                return f"{mins}m {secs:.0f}s"
            return f"{secs:.1f}s"
        return ""

    def start_pipeline(self, source_file: str):
        """Mark pipeline start and set up file logging."""
        self._pipeline_start = time.time()

        if self._log_dir and self._file_handler is None:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            stem = Path(source_file).stem
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self._log_file = self._log_dir / f"{stem}_{timestamp}_{self.short_id}.log"

            self._file_handler = logging.FileHandler(self._log_file, encoding="utf-8")
            self._file_handler.setFormatter(FileFormatter())
            self._file_handler.setLevel(logging.DEBUG)
            self._file_handler.addFilter(_SessionFilter(self.short_id))
            self.logger.addHandler(self._file_handler)

        self.logger.info(self._prefix(f"[{self._ts()}] Starting pipeline: {source_file}"))

    def end_pipeline(self, success: bool = True, stats: dict | None = None):
        """Mark pipeline end and detach the run's file handler."""
        elapsed = self._total_elapsed()
        status = "COMPLETE" if success else "FAILED"

        if stats:
            self.summary(stats)

        self.logger.info(self._prefix(f"Pipeline {status} [{elapsed}]"))
        if self._log_file:
            self.logger.info(self._prefix(f"Log: {self._log_file}"))
        self.close()

    def close(self):
        """Remove and close this run's file handler, if any."""
        if self._file_handler is not None:
            self.logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def start_phase(self, phase: str, total: int = 0, model: str = ""):
        """Start a new pipeline phase."""
        self._phase = phase
        self._phase_start = time.time()
        self._tick_count = 0
        self._tick_total = total

        parts = []
        if total > 0:
            parts.append(f"{total} items")
        if model:
            parts.append(model.split("/")[-1])

        header = phase.upper()
        if parts:
            header += f" ({', '.join(parts)})"
        self.logger.info(self._prefix(header))

    def end_phase(self, message: str = ""):
        """End current phase."""
        if message:
            self.debug(f"{self._phase} ended: {message}")
        self._phase = ""

    def progress(self, current: int, total: int, item: str = ""):
        """Log progress update (DEBUG level)."""
        if total > 0:
            msg = f"[{current}/{total}] ({current / total * 100:.0f}%)"
            if item:
                msg += f" {item}"
            self.debug(msg)

    def tick(self, item: str = ""):
        """Log visible progress tick (INFO level).

        Call this when one of the phase's concurrent items completes.
        Shows:   [3/6] Acme-T pages 5-7 (12.3s)
        """
        self._tick_count += 1
        total = self._tick_total
        if total > 0:
            elapsed = time.time() - self._phase_start
            count = f"[{self._tick_count}/{total}]"
            msg = f"  {count} {item} ({elapsed:.1f}s)" if item else f"  {count} ({elapsed:.1f}s)"
            self.logger.info(self._prefix(msg))

    def debug(self, message: str, **data):
        """Log debug message (only in verbose mode)."""
        if data:
            message = f"{message} | {_format_data(data)}"
        self.logger.debug(self._prefix(f"[{self._ts()}] {message}"))

    def info(self, message: str, **data):
        """Log info message."""
        if data:
            message = f"{message} | {_format_data(data)}"
        self.logger.info(self._prefix(f"  {message}"))

    def warning(self, message: str, **data):
        """Log warning message."""
        if data:
            message = f"{message} | {_format_data(data)}"
        self.logger.warning(self._prefix(f"[{self._ts()}] WARN: {message}"))

    def error(self, message: str, exc: Exception | None = None, **data):
        """Log error message."""
        if data:
            message = f"{message} | {_format_data(data)}"
        if exc:
            message = f"{message} | {type(exc).__name__}: {exc}"
        self.logger.error(self._prefix(f"[{self._ts()}] ERROR: {message}"))

    def milestone(self, message: str, **data):
        """Log a high-level milestone such as the chosen strategy."""
        if data:
            message = f"{message} | {_format_data(data)}"
        self.logger.info(self._prefix(f"  -> {message}"))

    def summary(self, stats: dict):
        """Log a summary block for end-of-pipeline stats."""
        lines = [self._prefix("SUMMARY")]
        for key, value in stats.items():
            if isinstance(value, dict):
                lines.append(f"  {key}:")
                for k, v in value.items():
                    lines.append(f"    {k}: {v}")
            else:
                lines.append(f"  {key}: {value}")
        self.logger.info("\n".join(lines))

    def phase_result(self, phase: str, result: str, **metrics):
        """Log phase completion with key metrics.

        Args:
            phase: Phase name (e.g., "Tracks")
            result: Brief result description
            **metrics: Key-value metrics to display
        """
        elapsed = self._elapsed()
        parts = [result]
        if metrics:
            parts.append(", ".join(f"{k}={v}" for k, v in metrics.items()))
        if elapsed:
            parts.append(f"[{elapsed}]")
        self.logger.info(self._prefix(f"  Done: {' | '.join(parts)}"))


class _ConsoleHandler(logging.StreamHandler):
    """Marker subclass so the shared console handler is attached only once."""


class _SessionFilter(logging.Filter):
    """Keep only one session's lines in that session's log file."""

    def __init__(self, short_id: str):
        super().__init__()
        self.prefix = f"[{short_id}]"

    def filter(self, record: logging.LogRecord) -> bool:
        return record.getMessage().startswith(self.prefix)


class ConsoleFormatter(logging.Formatter):
    """Console formatter - concise."""

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


class FileFormatter(logging.Formatter):
    """File formatter - includes full details for analysis."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level = record.levelname[:4]
        return f"{ts} [{level}] {record.getMessage()}"


def _format_data(data: dict[str, Any]) -> str:
    """Format structured data for logging."""
    parts = []
    for k, v in data.items():
        if isinstance(v, str) and len(v) > 50:
            v = v[:47] + "..."
        elif isinstance(v, list) and len(v) > 5:
            v = f"[{len(v)} items]"
        parts.append(f"{k}={v}")
    return ", ".join(parts)
