"""Unit tests for the per-thread session registry — no grid required."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions

from mat.browser_options import Browser
from mat.errors import SessionError
from mat.session import SessionRegistry


@pytest.fixture()
def factory(fake_driver):
    return MagicMock(return_value=fake_driver)


@pytest.fixture()
def registry(config, factory):
    return SessionRegistry(config, driver_factory=factory)


class TestOpen:
    def test_open_binds_session(self, registry, fake_driver):
        session = registry.open("chrome")
        assert session.driver is fake_driver
        assert session.browser == "chrome"
        assert session.family is Browser.CHROME
        assert registry.current() is session

    def test_open_uses_grid_url_and_options(self, registry, factory, config):
        registry.open("chrome")
        kwargs = factory.call_args[1]
        assert kwargs["command_executor"] == config.selenium_url
        assert isinstance(kwargs["options"], ChromeOptions)

    def test_firefox_window_is_maximized(self, registry, fake_driver):
        registry.open("firefox")
        fake_driver.maximize_window.assert_called_once()

    def test_second_open_on_same_thread_raises(self, registry):
        registry.open("chrome")
        with pytest.raises(SessionError, match="already open"):
            registry.open("edge")

    def test_grid_failure_raises_session_error(self, config):
        factory = MagicMock(side_effect=WebDriverException("connection refused"))
        registry = SessionRegistry(config, driver_factory=factory)
        with pytest.raises(SessionError, match=r"Selenium Grid \(http://grid:4444\)"):
            registry.open("chrome")
        assert registry.current() is None

    def test_connection_error_is_wrapped(self, config):
        factory = MagicMock(side_effect=ConnectionRefusedError())
        registry = SessionRegistry(config, driver_factory=factory)
        with pytest.raises(SessionError) as excinfo:
            registry.open("firefox")
        assert isinstance(excinfo.value.__cause__, ConnectionRefusedError)

    def test_capability_error_is_session_error(self, registry, factory, monkeypatch):
        monkeypatch.setattr(
            "mat.session.get_capabilities", MagicMock(side_effect=TypeError("bad option"))
        )
        with pytest.raises(SessionError, match="Could not create browser session") as excinfo:
            registry.open("chrome")
        assert isinstance(excinfo.value.__cause__, TypeError)
        factory.assert_not_called()
        assert registry.current() is None


class TestClose:
    def test_close_quits_and_clears(self, registry, fake_driver):
        registry.open("chrome")
        registry.close()
        fake_driver.quit.assert_called_once()
        assert registry.current() is None

    def test_close_without_session_is_noop(self, registry, fake_driver):
        registry.close()
        fake_driver.quit.assert_not_called()

    def test_close_clears_binding_when_quit_fails(self, registry, fake_driver):
        fake_driver.quit.side_effect = WebDriverException("session gone")
        registry.open("chrome")
        registry.close()
        assert registry.current() is None

    def test_thread_can_reopen_after_close(self, registry):
        registry.open("chrome")
        registry.close()
        assert registry.open("edge").browser == "edge"

    def test_context_manager_closes_on_error(self, registry, fake_driver):
        with pytest.raises(RuntimeError):
            with registry.session("chrome"):
                raise RuntimeError("test body failed")
        fake_driver.quit.assert_called_once()
        assert registry.current() is None


class TestThreadIsolation:
    def test_session_not_visible_from_other_thread(self, registry):
        registry.open("chrome")
        seen = []
        t = threading.Thread(target=lambda: seen.append(registry.current()))
        t.start()
        t.join()
        assert seen == [None]

    def test_concurrent_threads_have_own_sessions(self, config):
        drivers = []

        def make_driver(**kwargs):
            d = MagicMock()
            drivers.append(d)
            return d

        registry = SessionRegistry(config, driver_factory=make_driver)
        opened = threading.Barrier(3)
        results = {}

        def worker(name):
            session = registry.open(name)
            opened.wait(timeout=5)
            results[name] = registry.current() is session
            registry.close()
            results[name + ":closed"] = registry.current() is None

        threads = [threading.Thread(target=worker, args=(b,)) for b in ("chrome", "edge", "firefox")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(drivers) == 3
        assert all(results.values())
        assert len(results) == 6
