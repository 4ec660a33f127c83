"""Exceptions raised by the code removal engine."""


class RemovalError(Exception):
    """Base class for code removal errors."""


class ConfigurationError(RemovalError, ValueError):
    """Invalid marker token or option. Raised before any scan runs."""


class UnbalancedMarkerError(RemovalError):
    """Markers do not pair up and strict mode refuses to strip."""

    def __init__(self, issues: list) -> None:
        self.issues = list(issues)
        details = "; ".join(str(issue) for issue in self.issues[:5])
        if len(self.issues) > 5:
            details += f" (+{len(self.issues) - 5} more)"
        super().__init__(f"Unbalanced removal markers: {details}")
