"""MAT pytest plugin — enable with ``-p mat.pytest_plugin``.

Registers:
  - CLI options: --browser, --headless, --environment, --build-id,
                 --job-name, --jira-pk, --jira-issue, --mat-property,
                 --mat-config, --mat-report, --mat-theme, --mat-suite
  - Fixtures:    browser, mat (function-scoped)
  - Hooks:       pytest_configure, pytest_generate_tests,
                 pytest_runtest_setup, pytest_runtest_makereport,
                 pytest_runtest_teardown, pytest_sessionfinish,
                 pytest_terminal_summary

Configuration is resolved once in pytest_configure; a missing required
parameter stops the run before any test is collected.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Iterator, Optional

import pytest

from mat import console
from mat.config import DEFAULT_PROPERTIES_FILE, MatConfig, resolve_config
from mat.context import MatContext
from mat.errors import ConfigError, ReportError, SessionError
from mat.metrics import (
    RESULT_FAIL,
    RESULT_PASS,
    RESULT_SKIPPED,
    ResultSender,
    compact_failure,
    failure_message,
)
from mat.report import DEFAULT_REPORT_PATH, Report
from mat.session import SessionRegistry

EXIT_CONFIG_ERROR = 3
EXIT_SESSION_ERROR = 4

DEFAULT_BROWSER = "chrome"

# "System property" name -> option dest
_PROPERTY_OPTIONS = {
    "headless": "mat_headless",
    "environment": "mat_environment",
    "build_id": "mat_build_id",
    "job_name": "mat_job_name",
    "jira_pk": "mat_jira_pk",
    "jira_issue": "mat_jira_issue",
}


@dataclass
class MatRun:
    """State shared by every test of the run."""
    config: MatConfig
    registry: SessionRegistry
    report: Optional[Report]
    sender: ResultSender
    suite: str
    browsers: list[str]
    class_started: dict[str, float] = field(default_factory=dict)
    report_path: Optional[Path] = None


_RUN_KEY = pytest.StashKey[MatRun]()
_CONTEXT_KEY = pytest.StashKey[MatContext]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("mat", "MAT Selenium harness")
    group.addoption(
        "--browser",
        action="append",
        dest="mat_browsers",
        default=None,
        metavar="NAME",
        help="Browser to run on: firefox, chrome or edge.  Repeat to run "
             "every test on several browsers (default: chrome).",
    )
    group.addoption(
        "--headless",
        dest="mat_headless",
        default=None,
        metavar="BOOL",
        help="Pass 'false' to disable headless mode (default: true).",
    )
    for flag, dest, what in (
        ("--environment", "mat_environment", "Target environment name"),
        ("--build-id", "mat_build_id", "CI build identifier"),
        ("--job-name", "mat_job_name", "CI job name"),
        ("--jira-pk", "mat_jira_pk", "Jira project key"),
        ("--jira-issue", "mat_jira_issue", "Jira issue identifier"),
    ):
        group.addoption(
            flag,
            dest=dest,
            default=None,
            help=f"{what}; required when InfluxDB data loading is enabled.",
        )
    group.addoption(
        "--mat-property",
        action="append",
        dest="mat_properties",
        default=None,
        metavar="NAME=VALUE",
        help="Set any configuration parameter (overrides the properties file, "
             "not the environment).  Repeatable.",
    )
    group.addoption(
        "--mat-config",
        dest="mat_config",
        default=None,
        metavar="PATH",
        help=f"Properties file, must exist (default: ./{DEFAULT_PROPERTIES_FILE}).",
    )
    group.addoption(
        "--mat-report",
        dest="mat_report",
        default=DEFAULT_REPORT_PATH,
        metavar="PATH",
        help=f"HTML report output (default: {DEFAULT_REPORT_PATH}).",
    )
    group.addoption(
        "--mat-theme",
        dest="mat_theme",
        default=None,
        metavar="PATH",
        help="JSON report theme (default: packaged report-config.json).",
    )
    group.addoption(
        "--mat-suite",
        dest="mat_suite",
        default=None,
        metavar="NAME",
        help="Suite name sent with every metric (default: root directory name).",
    )


def system_properties(config: pytest.Config) -> dict[str, str]:
    """Collect the command-line layer of the configuration lookup."""
    props: dict[str, str] = {}
    for raw in config.getoption("mat_properties") or []:
        name, sep, value = raw.partition("=")
        if not sep or not name.strip():
            raise pytest.UsageError(f"--mat-property expects NAME=VALUE, got {raw!r}")
        props[name.strip()] = value
    for name, dest in _PROPERTY_OPTIONS.items():
        value = config.getoption(dest)
        if value is not None:
            props[name] = value
    return props


def _is_worker(config: pytest.Config) -> bool:
    return hasattr(config, "workerinput")


def is_xdist_controller(config: pytest.Config) -> bool:
    """True in the pytest-xdist process that only hands tests to workers."""
    if _is_worker(config):
        return False
    return bool(config.getoption("numprocesses", None) or config.getoption("tx", None))


def _report_path(config: pytest.Config) -> Path:
    path = Path(config.getoption("mat_report"))
    if _is_worker(config):
        # One file per xdist worker
        worker = config.workerinput["workerid"]
        path = path.with_name(f"{path.stem}-{worker}{path.suffix}")
    return path


def print_logo() -> None:
    try:
        logo = (resources.files("mat") / "resources" / "logo.txt").read_text(encoding="utf-8")
    except OSError:
        console.warning("Could not load `logo.txt` resource")
        return
    print(logo, flush=True)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "description(text): description forwarded to the report and to InfluxDB",
    )
    if config.getoption("help", default=False):
        return

    if not _is_worker(config):
        print_logo()
    console.info("Testing suite execution started")

    report = None
    try:
        mat_config = resolve_config(
            properties=system_properties(config),
            properties_file=config.getoption("mat_config") or DEFAULT_PROPERTIES_FILE,
        )
        if not is_xdist_controller(config):
            report = Report(
                mat_config,
                output_path=_report_path(config),
                theme_path=config.getoption("mat_theme"),
            )
            report.setup()
    except (ConfigError, ReportError) as exc:
        console.error(str(exc))
        pytest.exit(str(exc), returncode=EXIT_CONFIG_ERROR)

    config.stash[_RUN_KEY] = MatRun(
        config=mat_config,
        registry=SessionRegistry(mat_config),
        report=report,
        sender=ResultSender(mat_config),
        suite=config.getoption("mat_suite") or config.rootpath.name,
        browsers=config.getoption("mat_browsers") or [DEFAULT_BROWSER],
    )
    console.separator()


def pytest_report_header(config: pytest.Config) -> Optional[list[str]]:
    run = config.stash.get(_RUN_KEY, None)
    if run is None:
        return None
    influxdb = "enabled" if run.config.influxdb_enabled else "disabled"
    return [
        f"mat: app={run.config.app} browsers={','.join(run.browsers)} "
        f"headless={run.config.headless} influxdb={influxdb}",
    ]


def _parametrized_by_marker(metafunc: pytest.Metafunc, argname: str) -> bool:
    for marker in metafunc.definition.iter_markers("parametrize"):
        names = marker.args[0] if marker.args else marker.kwargs.get("argnames", "")
        if isinstance(names, str):
            names = [n.strip() for n in names.split(",")]
        if argname in names:
            return True
    return False


def pytest_generate_tests(metafunc: pytest.Metafunc) -> None:
    run = metafunc.config.stash.get(_RUN_KEY, None)
    if run is None or "browser" not in metafunc.fixturenames:
        return
    if _parametrized_by_marker(metafunc, "browser"):
        return
    metafunc.parametrize("browser", run.browsers)


@pytest.fixture
def browser(request: pytest.FixtureRequest) -> str:
    """Browser name for the current test (parametrised from ``--browser``)."""
    run = request.config.stash.get(_RUN_KEY, None)
    return run.browsers[0] if run is not None else DEFAULT_BROWSER


@pytest.fixture
def mat(request: pytest.FixtureRequest, browser: str) -> Iterator[MatContext]:
    """Open a browser session for this test and yield its :class:`MatContext`.

    A grid that cannot create the session aborts the whole run.

    Teardown (always runs, even on failure):
      - quits the driver and clears the thread's session binding.
    """
    run = request.config.stash[_RUN_KEY]
    try:
        session = run.registry.open(browser)
    except SessionError as exc:
        console.error(str(exc))
        pytest.exit(str(exc), returncode=EXIT_SESSION_ERROR)

    try:
        name = getattr(request.node, "originalname", request.node.name)
        case = run.report.begin_case(name, browser)
        ctx = MatContext(run.config, session, case, test_name=name)
        request.node.stash[_CONTEXT_KEY] = ctx
        yield ctx
    finally:
        run.registry.close()


def class_name(item: pytest.Item) -> str:
    """Dotted name of the test class, or of the module for plain functions."""
    cls = getattr(item, "cls", None)
    if cls is not None:
        return f"{cls.__module__}.{cls.__qualname__}"
    module = getattr(item, "module", None)
    if module is not None:
        return module.__name__
    return item.nodeid.split("::")[0]


def description(item: pytest.Item) -> str:
    marker = item.get_closest_marker("description")
    if marker is not None and marker.args:
        return str(marker.args[0])
    doc = getattr(getattr(item, "function", None), "__doc__", None)
    if doc:
        return doc.strip().split("\n")[0]
    return ""


def _item_browser(item: pytest.Item) -> str:
    callspec = getattr(item, "callspec", None)
    if callspec is not None and "browser" in callspec.params:
        return str(callspec.params["browser"])
    ctx = item.stash.get(_CONTEXT_KEY, None)
    return ctx.browser if ctx is not None else ""


def _skip_reason(report: pytest.TestReport) -> str:
    if isinstance(report.longrepr, tuple) and len(report.longrepr) == 3:
        return str(report.longrepr[2])
    return str(report.longrepr or "")


def pytest_runtest_setup(item: pytest.Item) -> None:
    run = item.config.stash.get(_RUN_KEY, None)
    if run is not None:
        run.class_started.setdefault(class_name(item), time.monotonic())


def _record_outcome(
    run: MatRun,
    item: pytest.Item,
    call: pytest.CallInfo,
    report: pytest.TestReport,
) -> None:
    ctx = item.stash.get(_CONTEXT_KEY, None)
    error = None
    if report.passed:
        status = RESULT_PASS
    elif report.skipped:
        status = RESULT_SKIPPED
        if ctx is not None:
            ctx.case.skip(_skip_reason(report))
    else:
        status = RESULT_FAIL
        if call.excinfo is not None:
            exc = call.excinfo.value
            error = failure_message(exc)
            if ctx is not None and not ctx.failure_recorded:
                ctx.case.fail(exc, screenshot=ctx.capture())
                ctx.failure_recorded = True
                console.error(f"{ctx.test_name} :: {{{ctx.browser}}} :: FAILED")
            report.longrepr = str(compact_failure(exc))

    run.sender.send_test_result(
        test_class=class_name(item),
        name=getattr(item, "originalname", item.name),
        description=description(item),
        browser=_item_browser(item),
        status=status,
        duration_ms=int(report.duration * 1000),
        error=error,
        suite=run.suite,
    )


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    """Record the outcome of the test body (or of a setup that did not pass)."""
    outcome = yield
    report = outcome.get_result()

    run = item.config.stash.get(_RUN_KEY, None)
    if run is None:
        return
    if report.when == "call" or (report.when == "setup" and not report.passed):
        _record_outcome(run, item, call, report)


@pytest.hookimpl(trylast=True)
def pytest_runtest_teardown(item: pytest.Item, nextitem: Optional[pytest.Item]) -> None:
    """Send the class duration once its last test has been torn down."""
    run = item.config.stash.get(_RUN_KEY, None)
    if run is None:
        return
    name = class_name(item)
    if nextitem is not None and class_name(nextitem) == name:
        return
    started = run.class_started.pop(name, None)
    if started is not None:
        run.sender.send_test_class_result(name, int((time.monotonic() - started) * 1000))


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    run = session.config.stash.get(_RUN_KEY, None)
    if run is None:
        return
    try:
        if run.report is not None:
            run.report_path = run.report.flush()
    finally:
        run.sender.close()
    console.info("Testing suite execution ended")
    console.separator()


def pytest_terminal_summary(terminalreporter, exitstatus: int, config: pytest.Config) -> None:
    run = config.stash.get(_RUN_KEY, None)
    if run is None or run.report_path is None:
        return
    terminalreporter.write_line(f"[INFO] Report written to: `{run.report_path}`")
