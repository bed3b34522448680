class LempSetupError(Exception):
    """Base class for errors that stop a provisioning run."""


class PreflightError(LempSetupError):
    """A fatal condition detected before any change is made to the host."""
