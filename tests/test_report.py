"""Unit tests for the report tree and its HTML rendering."""

from __future__ import annotations

import threading

import pytest

from mat.errors import ReportError
from mat.report import LogLevel, Report, Status, load_theme, worst_status


@pytest.fixture()
def report(config, tmp_path):
    r = Report(config, output_path=tmp_path / "report" / "index.html")
    r.setup()
    return r


class TestTheme:
    def test_packaged_theme(self):
        theme = load_theme()
        assert theme["documentTitle"] == "MAT Selenium Report"

    def test_custom_theme(self, tmp_path):
        path = tmp_path / "theme.json"
        path.write_text('{"theme": "dark", "reportName": "Nightly"}')
        assert load_theme(path=str(path))["reportName"] == "Nightly"

    def test_missing_theme_raises(self, tmp_path):
        with pytest.raises(ReportError, match="Could not load"):
            load_theme(path=str(tmp_path / "missing.json"))

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "theme.json"
        path.write_text("{not json")
        with pytest.raises(ReportError):
            load_theme(path=str(path))

    def test_non_object_raises(self, tmp_path):
        path = tmp_path / "theme.json"
        path.write_text("[1, 2]")
        with pytest.raises(ReportError, match="JSON object"):
            load_theme(path=str(path))


class TestCases:
    def test_begin_case_requires_setup(self, config, tmp_path):
        r = Report(config, output_path=tmp_path / "index.html")
        with pytest.raises(ReportError):
            r.begin_case("test_login", "chrome")

    def test_case_metadata(self, report):
        case = report.begin_case("test_login", "firefox")
        assert case.category == "demo"
        assert case.author == "qa"
        assert case.device == "firefox"
        assert report.cases == [case]

    def test_steps_keep_order(self, report):
        case = report.begin_case("test_login", "chrome")
        case.step("open app")
        case.annotate(LogLevel.INFO, "navigated")
        case.step("log in")
        case.annotate("pass", "logged in")
        case.annotate(LogLevel.WARNING, "slow response")
        assert [s.name for s in case.steps] == ["open app", "log in"]
        assert [e.message for e in case.steps[1].entries] == ["logged in", "slow response"]

    def test_annotate_without_step_raises(self, report):
        case = report.begin_case("test_login", "chrome")
        with pytest.raises(ReportError, match="No open step"):
            case.annotate(LogLevel.INFO, "too early")

    def test_invalid_level_is_skipped(self, report, capsys):
        case = report.begin_case("test_login", "chrome")
        case.step("only step")
        assert case.annotate("FATAL", "ignored") is None
        assert case.steps[0].entries == []
        assert "`level` not valid; skipping annotation" in capsys.readouterr().out

    def test_fail_opens_step_when_none(self, report):
        case = report.begin_case("test_login", "chrome")
        case.fail(ValueError("boom"), screenshot="AAAA")
        entry = case.steps[0].entries[0]
        assert entry.status is Status.FAIL
        assert entry.caption == "ValueError"
        assert case.exceptions == ["ValueError"]

    def test_concurrent_cases(self, report):
        def worker(i):
            report.begin_case(f"test_{i}", "chrome")

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(report.cases) == 20


class TestStatus:
    def test_worst_status(self):
        assert worst_status([Status.PASS, Status.FAIL, Status.WARNING]) is Status.FAIL
        assert worst_status([Status.INFO, Status.SKIP]) is Status.SKIP
        assert worst_status([]) is Status.PASS

    def test_case_status_follows_steps(self, report):
        case = report.begin_case("test_login", "chrome")
        case.step("a")
        case.annotate("PASS", "ok")
        assert case.status is Status.PASS
        case.annotate("WARNING", "meh")
        assert case.status is Status.WARNING


class TestFlush:
    def test_flush_without_setup_is_noop(self, config, tmp_path):
        out = tmp_path / "index.html"
        r = Report(config, output_path=out)
        assert r.flush() is None
        assert not out.exists()

    def test_flush_writes_html(self, report):
        case = report.begin_case("test_<login>", "chrome")
        case.step("open app")
        case.attach_screenshot("iVBORw0KGgo=", "home page")
        case.fail(AssertionError("title mismatch"))

        path = report.flush()
        text = path.read_text(encoding="utf-8")
        assert "test_&lt;login&gt;" in text
        assert "data:image/png;base64,iVBORw0KGgo=" in text
        assert "AssertionError" in text

        views = ["id='dashboard'", "id='tests'", "id='authors'", "id='devices'",
                 "id='categories'", "id='exceptions'"]
        positions = [text.index(v) for v in views]
        assert positions == sorted(positions)

    def test_flush_is_repeatable(self, report):
        report.begin_case("test_a", "edge")
        first = report.flush().read_text(encoding="utf-8")
        second = report.flush().read_text(encoding="utf-8")
        assert first.count("test_a") == second.count("test_a")
