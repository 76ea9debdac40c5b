"""Unit tests for browser capability construction."""

from __future__ import annotations

import dataclasses

import pytest

from mat.browser_options import (
    CHROMIUM_ARGUMENTS,
    Browser,
    chrome_options,
    get_capabilities,
)

HEADLESS_ARGS = {"--headless", "--headless=new", "-headless"}


def _headless(config, value):
    return dataclasses.replace(config, headless=value)


class TestBrowserParse:
    @pytest.mark.parametrize("name", ["firefox", "chrome", "edge"])
    def test_known_names(self, name):
        assert Browser.parse(name).value == name

    @pytest.mark.parametrize("name", ["Firefox", "CHROME", "safari", ""])
    def test_unknown_names_fall_back_to_chrome(self, name, capsys):
        assert Browser.parse(name) is Browser.CHROME
        captured = capsys.readouterr()
        assert "`browser` is not valid" in captured.err
        assert "defaulting to Chrome capabilities" in captured.out

    def test_enum_passthrough(self):
        assert Browser.parse(Browser.EDGE) is Browser.EDGE


class TestChromium:
    @pytest.mark.parametrize("browser", ["chrome", "edge"])
    def test_common_arguments(self, config, browser):
        options = get_capabilities(browser, config)
        for arg in CHROMIUM_ARGUMENTS:
            assert arg in options.arguments

    def test_chrome_headless_argument(self, config):
        assert "--headless=new" in get_capabilities("chrome", config).arguments

    def test_edge_headless_argument(self, config):
        options = get_capabilities("edge", config)
        assert "--headless" in options.arguments
        assert options.to_capabilities()["browserName"] == "MicrosoftEdge"


class TestFirefox:
    def test_headless_without_binary(self, config):
        options = get_capabilities("firefox", config)
        assert options.preferences["network.proxy.type"] == 0
        assert options.preferences["webdriver_accept_untrusted_certs"] is True
        assert options.preferences["webdriver_assume_untrusted_issuer"] is False
        assert options.accept_insecure_certs is True
        assert "-headless" in options.arguments
        assert not options.binary_location

    def test_binary_from_config(self, config):
        cfg = dataclasses.replace(config, selenium_firefox_driver="/opt/firefox/firefox")
        options = get_capabilities("firefox", cfg)
        assert options.binary_location == "/opt/firefox/firefox"


class TestHeadlessToggle:
    @pytest.mark.parametrize("browser", ["firefox", "chrome", "edge"])
    def test_no_headless_when_disabled(self, config, browser):
        options = get_capabilities(browser, _headless(config, False))
        assert not HEADLESS_ARGS & set(options.arguments)

    @pytest.mark.parametrize("browser", ["firefox", "chrome", "edge"])
    def test_headless_when_enabled(self, config, browser):
        options = get_capabilities(browser, _headless(config, True))
        assert HEADLESS_ARGS & set(options.arguments)


@pytest.mark.parametrize("name", ["opera", "Chrome", "ie"])
def test_unknown_browser_equals_chrome(config, name):
    unknown = get_capabilities(name, config)
    chrome = chrome_options(config)
    assert type(unknown) is type(chrome)
    assert unknown.to_capabilities() == chrome.to_capabilities()
