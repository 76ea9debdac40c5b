"""Per-test handle given to test bodies by the ``mat`` fixture.

Bundles the thread's browser session, its report case and the run
configuration, and exposes the helpers tests are written with.
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Union

from selenium.common.exceptions import WebDriverException
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from mat import console
from mat.config import MatConfig
from mat.report import LogLevel, ReportCase, ReportEntry, ReportStep
from mat.session import BrowserSession

logger = logging.getLogger(__name__)

Locator = tuple[str, str]


class MatContext:
    """Everything one test needs: driver, report case, configuration.

    Parameters
    ----------
    config:
        Resolved run configuration.
    session:
        The browser session opened for this test.
    case:
        The report case this test logs into.
    test_name:
        Name used in console result lines.
    """

    def __init__(
        self,
        config: MatConfig,
        session: BrowserSession,
        case: ReportCase,
        test_name: str,
    ) -> None:
        self.config = config
        self.session = session
        self.case = case
        self.test_name = test_name
        # Set once end_test_as_ko() has logged the failure itself
        self.failure_recorded = False

    @property
    def driver(self) -> WebDriver:
        return self.session.driver

    @property
    def browser(self) -> str:
        return self.session.browser

    @property
    def current_step(self) -> Optional[ReportStep]:
        return self.case.current_step

    # ------------------------------------------------------------------
    # Browser helpers
    # ------------------------------------------------------------------

    def goto_app(self) -> None:
        """Navigate to the configured application URL."""
        self.driver.get(self.config.app_url)

    def maximize(self) -> None:
        self.driver.maximize_window()

    def get_element(self, locator: Locator, timeout: Optional[float] = None) -> WebElement:
        """Find an element, optionally waiting up to *timeout* seconds.

        Raises ``TimeoutException`` when the wait expires and
        ``NoSuchElementException`` when no timeout is given and nothing
        matches.
        """
        if timeout is None:
            return self.driver.find_element(*locator)
        wait = WebDriverWait(self.driver, timeout)
        return wait.until(EC.presence_of_element_located(locator))

    def get_html(self) -> str:
        return self.driver.page_source

    def switch_to_frame(self, index: int) -> WebDriver:
        self.driver.switch_to.frame(index)
        return self.driver

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    def scroll(self, percent_x: int, percent_y: int, pause_ms: int = 0) -> None:
        """Scroll to a percentage of the page height, then pause."""
        height = self.driver.execute_script("return document.body.scrollHeight;")
        factor = int(height) // 100
        self.driver.execute_script(
            f"window.scrollTo({int(percent_x * factor)}, {int(percent_y * factor)});"
        )
        time.sleep(abs(pause_ms) / 1000)

    def scroll_to_bottom(self, pause_ms: int = 0) -> None:
        self.scroll(0, 100, pause_ms)

    def scroll_to_top(self, pause_ms: int = 0) -> None:
        self.scroll(0, 0, pause_ms)

    # ------------------------------------------------------------------
    # Report helpers
    # ------------------------------------------------------------------

    def step(self, name: str) -> ReportStep:
        return self.case.step(name)

    def annotate(self, level: Union[str, LogLevel], message: str) -> Optional[ReportEntry]:
        return self.case.annotate(level, message)

    def capture(self) -> Optional[str]:
        """Base64 screenshot of the viewport, or None if the driver cannot take one."""
        try:
            return self.session.screenshot_base64()
        except WebDriverException as exc:
            logger.warning("Could not take screenshot: %s", exc)
            return None

    def screenshot(self, caption: str) -> Optional[ReportEntry]:
        """Attach a screenshot of the viewport to the current step."""
        data = self.capture()
        if data is None:
            return None
        return self.case.attach_screenshot(data, caption)

    def end_test_as_ok(self) -> None:
        console.info(f"{self.test_name} :: {{{self.browser}}} :: PASSED")

    def end_test_as_ko(self, exc: BaseException) -> None:
        """Record *exc* with a screenshot, then re-raise it."""
        self.case.fail(exc, screenshot=self.capture())
        self.failure_recorded = True
        console.error(f"{self.test_name} :: {{{self.browser}}} :: FAILED")
        raise exc
