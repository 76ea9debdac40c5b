"""Browser CLI options and capabilities for remote sessions."""

from __future__ import annotations

from enum import Enum
from typing import Union

from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.common.options import ArgOptions
from selenium.webdriver.edge.options import Options as EdgeOptions
from selenium.webdriver.firefox.options import Options as FirefoxOptions

from mat import console
from mat.config import MatConfig

# Shared by the Chromium family
CHROMIUM_ARGUMENTS = (
    "--start-maximized",
    "--ignore-certificate-errors",
    "--disable-popup-blocking",
)

FIREFOX_PREFERENCES = {
    "network.proxy.type": 0,
    "webdriver_accept_untrusted_certs": True,
    "webdriver_assume_untrusted_issuer": False,
    "dom.disable_open_during_load": False,
}


class Browser(Enum):
    """Browser families a session can be opened for."""
    FIREFOX = "firefox"
    CHROME = "chrome"
    EDGE = "edge"

    @classmethod
    def parse(cls, name: Union[str, "Browser"]) -> "Browser":
        """Map a browser name onto a family, falling back to Chrome.

        The match is case-sensitive: ``"Firefox"`` is not a valid name.
        """
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            console.error(f"BrowserOptions.get_capabilities :: `browser` is not valid ({name})")
            console.warning("BrowserOptions.get_capabilities :: defaulting to Chrome capabilities")
            return cls.CHROME


def chrome_options(config: MatConfig) -> ChromeOptions:
    options = ChromeOptions()
    for arg in CHROMIUM_ARGUMENTS:
        options.add_argument(arg)
    if config.headless:
        options.add_argument("--headless=new")
    return options


def edge_options(config: MatConfig) -> EdgeOptions:
    options = EdgeOptions()
    for arg in CHROMIUM_ARGUMENTS:
        options.add_argument(arg)
    if config.headless:
        options.add_argument("--headless")
    return options


def firefox_options(config: MatConfig) -> FirefoxOptions:
    """Firefox has no maximise flag; the session maximises after opening."""
    options = FirefoxOptions()
    for key, value in FIREFOX_PREFERENCES.items():
        options.set_preference(key, value)
    options.accept_insecure_certs = True
    if config.headless:
        options.add_argument("-headless")
    if config.selenium_firefox_driver is not None:
        options.binary_location = config.selenium_firefox_driver
    return options


_BUILDERS = {
    Browser.FIREFOX: firefox_options,
    Browser.CHROME: chrome_options,
    Browser.EDGE: edge_options,
}


def get_capabilities(browser: Union[str, Browser], config: MatConfig) -> ArgOptions:
    """Build the options object for *browser* (unknown names get Chrome's)."""
    return _BUILDERS[Browser.parse(browser)](config)
