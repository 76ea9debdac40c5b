"""Exception types raised by the harness.

Library code raises these; only the pytest plugin decides whether a run
must be aborted.
"""


class MatError(RuntimeError):
    """Base class for harness errors."""


class ConfigError(MatError):
    """Raised when configuration cannot be resolved or is incomplete."""


class SessionError(MatError):
    """Raised when a browser session cannot be created or is misused."""


class ReportError(MatError):
    """Raised on report setup failures or out-of-order report calls."""
