"""
Error types shared by the fetch helpers, the CSV exporter and the assistant.

Every error is terminal for the command that raised it: scripts print the
message on one line and exit with status 1, tools return it as text.
"""


class MetricsError(Exception):
    """Base class for all eng-metrics errors."""


class UsageError(MetricsError):
    """Missing or invalid command-line arguments, unknown format names."""


class InputError(MetricsError):
    """Unreadable input file, empty input or malformed JSON."""


class ConfigError(MetricsError):
    """A required setting or credential is missing."""

    def __init__(self, variable: str):
        self.variable = variable
        super().__init__(f"Missing {variable}. Create .env from .env.example.")


class ApiError(MetricsError):
    """Non-success HTTP response from Jira, GitLab or GitHub."""

    def __init__(self, service: str, status_code: int, body: str):
        self.service = service
        self.status_code = status_code
        self.body = body
        super().__init__(f"{service} API error {status_code}: {body}")
