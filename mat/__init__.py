"""
MAT Selenium - browser test harness for pytest.

Resolves the run configuration, opens one remote browser session per
test, records steps in an HTML report and optionally sends outcomes to
InfluxDB.  Enable it with ``pytest -p mat.pytest_plugin``.
"""

from .errors import MatError, ConfigError, SessionError, ReportError
from .config import MatConfig, resolve_config, resolve
from .browser_options import Browser, get_capabilities
from .session import BrowserSession, SessionRegistry
from .report import LogLevel, Report, ReportCase, ReportStep, Status
from .metrics import ResultSender, compact_failure, failure_message, failure_summary
from .context import MatContext

__all__ = [
    "MatError",
    "ConfigError",
    "SessionError",
    "ReportError",
    "MatConfig",
    "resolve_config",
    "resolve",
    "Browser",
    "get_capabilities",
    "BrowserSession",
    "SessionRegistry",
    "LogLevel",
    "Report",
    "ReportCase",
    "ReportStep",
    "Status",
    "ResultSender",
    "compact_failure",
    "failure_message",
    "failure_summary",
    "MatContext",
]
