"""In-memory test report tree, flushed to a single HTML file.

A :class:`Report` holds one :class:`ReportCase` per test method and
browser.  Cases hold ordered :class:`ReportStep` nodes, and steps hold the
annotations (and screenshots) logged while the step was current.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import Any, Optional, Union

from mat import console
from mat.config import MatConfig
from mat.errors import ReportError
from mat.report_html import render_report

logger = logging.getLogger(__name__)

DEFAULT_REPORT_PATH = "target/report/index.html"
DEFAULT_THEME_RESOURCE = "report-config.json"


class Status(Enum):
    """Entry status, ordered from least to most severe."""
    INFO = "info"
    PASS = "pass"
    SKIP = "skip"
    WARNING = "warning"
    FAIL = "fail"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {status: rank for rank, status in enumerate(Status)}


class LogLevel(Enum):
    """Levels accepted by annotations."""
    WARNING = "WARNING"
    PASS = "PASS"
    SKIP = "SKIP"
    INFO = "INFO"

    @classmethod
    def parse(cls, level: Union[str, "LogLevel"]) -> Optional["LogLevel"]:
        if isinstance(level, cls):
            return level
        if isinstance(level, str):
            try:
                return cls(level.upper())
            except ValueError:
                pass
        return None

    @property
    def status(self) -> Status:
        return Status[self.name]


def worst_status(statuses, default: Status = Status.PASS) -> Status:
    statuses = list(statuses)
    if not statuses:
        return default
    return max(statuses, key=lambda s: s.severity)


@dataclass
class ReportEntry:
    status: Status
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    screenshot: Optional[str] = None
    caption: Optional[str] = None
    exception: Optional[str] = None


@dataclass
class ReportStep:
    name: str
    started: datetime = field(default_factory=datetime.now)
    entries: list[ReportEntry] = field(default_factory=list)

    def log(
        self,
        status: Status,
        message: str,
        *,
        screenshot: Optional[str] = None,
        caption: Optional[str] = None,
        exception: Optional[str] = None,
    ) -> ReportEntry:
        entry = ReportEntry(
            status=status,
            message=message,
            screenshot=screenshot,
            caption=caption,
            exception=exception,
        )
        self.entries.append(entry)
        return entry

    @property
    def status(self) -> Status:
        return worst_status((e.status for e in self.entries), default=Status.PASS)


@dataclass
class ReportCase:
    """One test method run on one browser."""
    name: str
    category: str
    author: str
    device: str
    started: datetime = field(default_factory=datetime.now)
    steps: list[ReportStep] = field(default_factory=list)
    current_step: Optional[ReportStep] = None

    def step(self, name: str) -> ReportStep:
        """Open a new step; later annotations land in it."""
        node = ReportStep(name=name)
        self.steps.append(node)
        self.current_step = node
        return node

    def _require_step(self) -> ReportStep:
        if self.current_step is None:
            raise ReportError(f"No open step in test `{self.name}`; call step() first")
        return self.current_step

    def annotate(self, level: Union[str, LogLevel], message: str) -> Optional[ReportEntry]:
        """Log *message* in the current step.

        Returns None (and logs a warning) when *level* is not a valid
        annotation level.

        Raises
        ------
        ReportError
            If no step has been opened yet.
        """
        parsed = LogLevel.parse(level)
        if parsed is None:
            console.warning("`level` not valid; skipping annotation")
            return None
        return self._require_step().log(parsed.status, message)

    def attach_screenshot(self, screenshot: str, caption: str) -> ReportEntry:
        """Attach a base64 PNG to the current step."""
        return self._require_step().log(
            Status.INFO, caption, screenshot=screenshot, caption=caption
        )

    def fail(self, exc: BaseException, screenshot: Optional[str] = None) -> ReportEntry:
        """Record *exc* as a failure, opening a step if none is current."""
        node = self.current_step or self.step("Test failure")
        name = type(exc).__name__
        return node.log(
            Status.FAIL,
            f"{name}: {exc}",
            screenshot=screenshot,
            caption=name if screenshot else None,
            exception=name,
        )

    def skip(self, reason: str) -> ReportEntry:
        node = self.current_step or self.step("Test skipped")
        return node.log(Status.SKIP, reason)

    @property
    def status(self) -> Status:
        return worst_status(s.status for s in self.steps)

    @property
    def exceptions(self) -> list[str]:
        return [e.exception for s in self.steps for e in s.entries if e.exception]


def load_theme(resource: str = DEFAULT_THEME_RESOURCE, path: Optional[str] = None) -> dict[str, Any]:
    """Read the JSON report theme from *path* or from the package resources.

    Raises
    ------
    ReportError
        If the theme cannot be read or is not a JSON object.
    """
    source = path or resource
    try:
        if path is not None:
            text = Path(path).read_text(encoding="utf-8")
        else:
            text = (resources.files("mat") / "resources" / resource).read_text(encoding="utf-8")
        theme = json.loads(text)
    except (OSError, ValueError) as exc:
        raise ReportError(f"Could not load `{source}` file") from exc
    if not isinstance(theme, dict):
        raise ReportError(f"`{source}` must contain a JSON object")
    return theme


class Report:
    """Shared report tree for the whole run.

    Parameters
    ----------
    config:
        Run configuration (category and author of each case).
    output_path:
        Where :meth:`flush` writes the HTML file.
    theme_path:
        Optional JSON theme file; the packaged ``report-config.json`` is
        used when omitted.
    """

    def __init__(
        self,
        config: MatConfig,
        output_path: Union[str, Path] = DEFAULT_REPORT_PATH,
        theme_path: Optional[str] = None,
    ) -> None:
        self.config = config
        self.output_path = Path(output_path)
        self.theme_path = theme_path
        self.theme: Optional[dict[str, Any]] = None
        self.started = datetime.now()
        self._cases: list[ReportCase] = []
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self.theme is not None

    def setup(self) -> None:
        """Load the theme; later calls are no-ops."""
        if self.initialized:
            return
        self.theme = load_theme(path=self.theme_path)

    def begin_case(self, name: str, browser: str) -> ReportCase:
        if not self.initialized:
            raise ReportError("Report used before setup()")
        case = ReportCase(
            name=name,
            category=self.config.category,
            author=self.config.maintainer,
            device=browser,
        )
        with self._lock:
            self._cases.append(case)
        return case

    @property
    def cases(self) -> list[ReportCase]:
        with self._lock:
            return list(self._cases)

    def flush(self) -> Optional[Path]:
        """Write the whole tree to :attr:`output_path`.

        Returns the written path, or None when the report was never set up.
        """
        if not self.initialized:
            return None
        html_text = render_report(self.cases, self.theme or {}, started=self.started)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_path.write_text(html_text, encoding="utf-8")
        logger.info("Report written to %s", self.output_path)
        return self.output_path
