from __future__ import annotations


class MiqatError(Exception):
    """Base class for errors raised by the schedule engine."""


class ConfigurationError(MiqatError, ValueError):
    def __init__(self, issues: str | list[str]) -> None:
        self.issues = [issues] if isinstance(issues, str) else list(issues)
        super().__init__("\n".join(self.issues))


class SourceUnavailable(MiqatError):
    """The schedule page could not be fetched."""


class EmptySchedule(MiqatError):
    """No entry of the fetched schedule could be parsed."""
