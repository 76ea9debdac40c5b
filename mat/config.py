"""Configuration resolution for the harness.

Every parameter is looked up in three layers, first non-empty hit wins:

    environment variable (MAT_TF_<NAME>)
      -> "system property" (pytest command-line value)
      -> properties file (config.properties by default)

The result is a frozen :class:`MatConfig` built once per run and handed to
every component that needs it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import yaml
from dotenv import dotenv_values

from mat import console
from mat.errors import ConfigError

ENV_PREFIX = "MAT_TF_"
DEFAULT_PROPERTIES_FILE = "config.properties"

REQUIRED_PARAMETERS = ("app", "app_url", "maintainer", "ambit", "selenium_url")
INFLUXDB_PARAMETERS = (
    "influxdb_url",
    "influxdb_token",
    "influxdb_bucket",
    "influxdb_company",
)
# Required only once InfluxDB data loading is enabled.
INFLUXDB_CONTEXT_PARAMETERS = (
    "environment",
    "build_id",
    "job_name",
    "jira_pk",
    "jira_issue",
)


@dataclass(frozen=True)
class MatConfig:
    """Resolved, immutable configuration of one test run."""
    app: str
    app_url: str
    maintainer: str
    ambit: str
    selenium_url: str
    headless: bool = True
    influxdb_url: Optional[str] = None
    influxdb_token: Optional[str] = None
    influxdb_bucket: Optional[str] = None
    influxdb_company: Optional[str] = None
    selenium_firefox_driver: Optional[str] = None
    environment: Optional[str] = None
    build_id: Optional[str] = None
    job_name: Optional[str] = None
    jira_pk: Optional[str] = None
    jira_issue: Optional[str] = None

    @property
    def influxdb_enabled(self) -> bool:
        return all(getattr(self, name) for name in INFLUXDB_PARAMETERS)

    @property
    def category(self) -> str:
        """Report category: ``<app>-<environment>`` or just ``<app>``."""
        if self.environment is not None:
            return f"{self.app}-{self.environment}"
        return self.app


def env_var_name(name: str) -> str:
    return ENV_PREFIX + name.upper()


def resolve(
    name: str,
    environ: Mapping[str, str],
    properties: Mapping[str, str],
    file_values: Mapping[str, str],
) -> Optional[str]:
    """Return the first non-empty value for *name*, or None."""
    for value in (
        environ.get(env_var_name(name)),
        properties.get(name),
        file_values.get(name),
    ):
        if value:
            return value
    return None


def load_properties_file(path: str) -> dict[str, str]:
    """Read a flat ``key=value`` (or YAML mapping) file.

    Raises
    ------
    ConfigError
        If the file cannot be read or is not a flat mapping.
    """
    p = Path(path)
    try:
        if p.suffix in (".yaml", ".yml"):
            with open(p, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigError(f"`{path}` must contain a flat mapping")
            return {str(k): str(v) for k, v in data.items() if v is not None}
        with open(p, "r", encoding="utf-8") as f:
            raw = dotenv_values(stream=f, interpolate=False)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Could not load `{path}` file") from exc
    return {k: v for k, v in raw.items() if v is not None}


def is_valid_path(path: str) -> bool:
    """Check whether *path* can be normalised into a filesystem path."""
    if not path or "\x00" in path:
        return False
    try:
        Path(path).resolve()
    except (OSError, RuntimeError, ValueError):
        return False
    return True


def _read_file_values(path: Optional[str]) -> dict[str, str]:
    if path is None:
        return {}
    return load_properties_file(path)


def _resolve_headless(value: Optional[str]) -> bool:
    if value is not None and value.lower() == "false":
        console.info("Headless mode disabled")
        return False
    return True


def _resolve_firefox_driver(value: Optional[str]) -> Optional[str]:
    if value is None:
        console.info("`selenium_firefox_driver` not set; ignoring setting binary")
        return None
    if not is_valid_path(value):
        console.warning(
            "`selenium_firefox_driver` is not a valid path; ignoring setting binary"
        )
        return None
    return value


def resolve_config(
    environ: Optional[Mapping[str, str]] = None,
    properties: Optional[Mapping[str, str]] = None,
    properties_file: Optional[str] = DEFAULT_PROPERTIES_FILE,
) -> MatConfig:
    """Resolve and validate every parameter of the run.

    Parameters
    ----------
    environ:
        Environment mapping; defaults to ``os.environ``.
    properties:
        "System property" values, usually collected from pytest options.
    properties_file:
        Fallback file, which must exist; None disables the file layer.

    Raises
    ------
    ConfigError
        On a missing required parameter, an unreadable properties file, or
        an incomplete set of InfluxDB context parameters.
    """
    environ = os.environ if environ is None else environ
    properties = properties or {}
    file_values = _read_file_values(properties_file)

    def lookup(name: str) -> Optional[str]:
        return resolve(name, environ, properties, file_values)

    headless = _resolve_headless(lookup("headless"))

    values: dict[str, Optional[str]] = {}
    for name in REQUIRED_PARAMETERS:
        value = lookup(name)
        if value is None:
            raise ConfigError(f"`{name}` not set and required")
        values[name] = value

    # InfluxDB (optional, all or nothing)
    influxdb = {name: lookup(name) for name in INFLUXDB_PARAMETERS}
    missing = [name for name, value in influxdb.items() if value is None]
    for name in missing:
        console.warning(f"`{name}` not set; InfluxDB data loading disabled")
    if missing:
        influxdb = dict.fromkeys(INFLUXDB_PARAMETERS)
    values.update(influxdb)

    values["selenium_firefox_driver"] = _resolve_firefox_driver(
        lookup("selenium_firefox_driver")
    )

    context = {name: lookup(name) for name in INFLUXDB_CONTEXT_PARAMETERS}
    if not missing and any(value is None for value in context.values()):
        raise ConfigError(
            "`environment`, `build_id`, `job_name`, `jira_pk` and `jira_issue` "
            "are required when InfluxDB data loading is enabled"
        )
    values.update(context)

    return MatConfig(headless=headless, **values)
