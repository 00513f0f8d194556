"""
Exceptions raised by stackboot itself.

Failures of the external tools (composer, npm) are not wrapped here; they
surface as subprocess.CalledProcessError.
"""


class StackbootError(Exception):
    """Base class for bootstrap errors."""
    pass


class ConfigError(StackbootError, ValueError):
    """Raised when configuration is missing or invalid."""
    pass


class ScaffoldPreconditionError(StackbootError):
    """Raised when the scaffold staging location is not empty."""
    pass


class LockTimeoutError(StackbootError):
    """Raised when the bootstrap lock cannot be acquired in time."""
    pass
