"""Test outcome points sent to InfluxDB.

One ``testmethod`` point is written per finished test and one
``testclass`` point per finished class.  Sending is disabled unless the
whole InfluxDB configuration group is present, and a failed write never
affects the outcome of a test.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS
from selenium.common.exceptions import WebDriverException

from mat import console
from mat.config import MatConfig

logger = logging.getLogger(__name__)

RESULT_PASS = "PASS"
RESULT_FAIL = "FAIL"
RESULT_SKIPPED = "SKIPPED"

TEST_METHOD_MEASUREMENT = "testmethod"
TEST_CLASS_MEASUREMENT = "testclass"


class CompactFailure(Exception):
    """A test failure reduced to ``<Type> :: <first line>``, without traceback."""


def first_line(message: Optional[str]) -> str:
    if not message:
        return ""
    return message.split("\n")[0]


def failure_message(exc: BaseException) -> str:
    """Raw message of *exc*; Selenium errors give their driver message."""
    if isinstance(exc, WebDriverException):
        return exc.msg or ""
    return str(exc) if exc.args else ""


def failure_summary(exc: BaseException) -> str:
    """``<TypeName> :: <first message line>``, or the bare type name."""
    name = type(exc).__name__
    line = first_line(failure_message(exc))
    return f"{name} :: {line}" if line else name


def compact_failure(exc: BaseException) -> CompactFailure:
    """Build the one-line replacement that is reported instead of *exc*."""
    failure = CompactFailure(failure_summary(exc))
    failure.__traceback__ = None
    failure.__cause__ = None
    failure.__suppress_context__ = True
    return failure


def _now_ms() -> int:
    return int(time.time() * 1000)


def method_point(
    config: MatConfig,
    *,
    test_class: str,
    name: str,
    description: Optional[str],
    browser: str,
    status: str,
    duration_ms: int,
    error: Optional[str],
    suite: str,
    timestamp_ms: Optional[int] = None,
) -> Point:
    tags = {
        "testclass": test_class,
        "name": name,
        "description": description or "",
        "result": status,
        "environment": config.environment,
        "browser": browser,
        "application": config.app,
        "maintainer": config.maintainer,
        "ambit": config.ambit,
        "buildnumber": config.build_id,
        "jobname": config.job_name,
        "jira_pk": config.jira_pk,
        "jira_issue": config.jira_issue,
        "suite": suite,
        "error": first_line(error),
    }
    point = Point(TEST_METHOD_MEASUREMENT)
    for key, value in tags.items():
        point.tag(key, "" if value is None else value)
    point.field("duration", int(duration_ms))
    return point.time(timestamp_ms if timestamp_ms is not None else _now_ms(), WritePrecision.MS)


def class_point(
    class_name: str, duration_ms: int, timestamp_ms: Optional[int] = None
) -> Point:
    return (
        Point(TEST_CLASS_MEASUREMENT)
        .tag("name", class_name)
        .field("duration", int(duration_ms))
        .time(timestamp_ms if timestamp_ms is not None else _now_ms(), WritePrecision.MS)
    )


class ResultSender:
    """Write points through InfluxDB's blocking write API.

    The client is created on first use, and only when InfluxDB data
    loading is enabled in *config*.
    """

    def __init__(
        self,
        config: MatConfig,
        client_factory: Optional[Callable[..., InfluxDBClient]] = None,
    ) -> None:
        self.config = config
        self._client_factory = client_factory or InfluxDBClient
        self._client: Optional[InfluxDBClient] = None
        self._write_api = None
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.config.influxdb_enabled

    def _setup(self) -> None:
        with self._lock:
            if self._client is not None:
                return
            self._client = self._client_factory(
                url=self.config.influxdb_url,
                token=self.config.influxdb_token,
                org=self.config.influxdb_company,
            )
            self._write_api = self._client.write_api(write_options=SYNCHRONOUS)

    def send(self, point: Point) -> bool:
        """Write *point*; returns False when disabled or on any write error."""
        if not self.enabled:
            return False
        try:
            self._setup()
            self._write_api.write(
                bucket=self.config.influxdb_bucket,
                org=self.config.influxdb_company,
                record=point,
            )
        except Exception as exc:
            console.error("Could not write data point to InfluxDB")
            logger.debug("InfluxDB write failed: %s", exc, exc_info=True)
            return False
        return True

    def send_test_result(
        self,
        *,
        test_class: str,
        name: str,
        browser: str,
        status: str,
        duration_ms: int,
        description: Optional[str] = None,
        error: Optional[str] = None,
        suite: str = "",
    ) -> bool:
        if not self.enabled:
            return False
        point = method_point(
            self.config,
            test_class=test_class,
            name=name,
            description=description,
            browser=browser,
            status=status,
            duration_ms=duration_ms,
            error=error,
            suite=suite,
        )
        return self.send(point)

    def send_test_class_result(self, class_name: str, duration_ms: int) -> bool:
        if not self.enabled:
            return False
        return self.send(class_point(class_name, duration_ms))

    def close(self) -> None:
        with self._lock:
            if self._client is None:
                return
            try:
                self._client.close()
            finally:
                self._client = None
                self._write_api = None
