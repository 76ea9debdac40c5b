"""Per-thread browser sessions on a remote Selenium Grid."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.remote.webdriver import WebDriver

from mat import console
from mat.browser_options import Browser, get_capabilities
from mat.config import MatConfig
from mat.errors import SessionError

logger = logging.getLogger(__name__)


@dataclass
class BrowserSession:
    """A remote driver bound to one thread, plus the browser it runs."""
    driver: WebDriver
    browser: str
    family: Browser

    def screenshot_base64(self) -> str:
        return self.driver.get_screenshot_as_base64()


class SessionRegistry:
    """Open, look up and close the calling thread's browser session.

    Each thread sees only its own binding; at most one session per thread
    may be open at a time.

    Parameters
    ----------
    config:
        Resolved run configuration; ``selenium_url`` is the grid endpoint.
    driver_factory:
        Callable building the driver, ``webdriver.Remote`` by default.
        Called as ``driver_factory(command_executor=url, options=options)``.
    """

    def __init__(
        self,
        config: MatConfig,
        driver_factory: Optional[Callable[..., WebDriver]] = None,
    ) -> None:
        self.config = config
        self._driver_factory = driver_factory or webdriver.Remote
        self._local = threading.local()

    def open(self, browser: Union[str, Browser]) -> BrowserSession:
        """Create a remote session for *browser* and bind it to this thread.

        Raises
        ------
        SessionError
            If this thread already holds a session or the grid cannot
            create one.
        """
        if self.current() is not None:
            raise SessionError("A browser session is already open on this thread")

        family = Browser.parse(browser)
        try:
            options = get_capabilities(family, self.config)
            driver = self._driver_factory(
                command_executor=self.config.selenium_url,
                options=options,
            )
        except Exception as exc:
            raise SessionError(
                f"Could not create browser session in Selenium Grid ({self.config.selenium_url})"
            ) from exc

        if family is Browser.FIREFOX:
            try:
                driver.maximize_window()
            except WebDriverException as exc:
                logger.warning("Could not maximize Firefox window: %s", exc)

        name = browser.value if isinstance(browser, Browser) else browser
        session = BrowserSession(driver=driver, browser=name, family=family)
        self._local.session = session
        logger.info("Browser driver created: %s", name)
        return session

    def current(self) -> Optional[BrowserSession]:
        """Return this thread's session, or None."""
        return getattr(self._local, "session", None)

    def close(self) -> None:
        """Quit this thread's driver and clear the binding.

        Safe to call when nothing is open.  A failing ``quit()`` is logged,
        and the binding is cleared regardless.
        """
        session = self.current()
        if session is None:
            return
        try:
            session.driver.quit()
            logger.info("Quitted driver successfully")
        except WebDriverException as exc:
            console.warning(f"Could not quit browser driver cleanly: {exc}")
        finally:
            del self._local.session

    @contextmanager
    def session(self, browser: Union[str, Browser]) -> Iterator[BrowserSession]:
        """Open a session for the duration of a ``with`` block."""
        opened = self.open(browser)
        try:
            yield opened
        finally:
            self.close()
