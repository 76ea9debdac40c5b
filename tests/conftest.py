"""Shared pytest configuration for MAT tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from mat.config import MatConfig


@pytest.fixture()
def config():
    return MatConfig(
        app="demo",
        app_url="https://x.test",
        maintainer="qa",
        ambit="team1",
        selenium_url="http://grid:4444",
    )


@pytest.fixture()
def influx_config():
    return MatConfig(
        app="demo",
        app_url="https://x.test",
        maintainer="qa",
        ambit="team1",
        selenium_url="http://grid:4444",
        influxdb_url="http://influx:8086",
        influxdb_token="secret",
        influxdb_bucket="tests",
        influxdb_company="acme",
        environment="pre",
        build_id="42",
        job_name="nightly",
        jira_pk="MAT",
        jira_issue="MAT-1",
    )


@pytest.fixture()
def fake_driver():
    driver = MagicMock(name="RemoteWebDriver")
    driver.get_screenshot_as_base64.return_value = "iVBORw0KGgo="
    return driver
