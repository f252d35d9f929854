"""Error taxonomy for notification processing.

Every error carries a ``retry`` flag telling the caller whether
redelivering the same notification later could succeed. Nothing in the
reconciliation path catches these; the first one raised aborts the
remaining work of the batch.
"""


class JiralertError(Exception):
    """Base class for all errors raised while handling a notification."""

    retry: bool = False


class ConfigError(JiralertError):
    """The receiver configuration file is missing, malformed or invalid."""


class RenderError(JiralertError):
    """A configured template failed to render (bad syntax or undefined field)."""


class ConfigurationError(JiralertError):
    """The Jira workflow does not offer the configured transition for an issue.

    Signals a workflow or permission mismatch, never a transient fault.
    """


class TicketingError(JiralertError):
    """A Jira API request failed."""

    def __init__(
        self,
        message: str,
        api: str,
        status_code: int | None = None,
        url: str | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.api = api
        self.status_code = status_code
        self.url = url
        self.body = body


class TicketingTransientError(TicketingError):
    """Jira answered 500 or 503; the request is worth retrying later."""

    retry = True


class TicketingPermanentError(TicketingError):
    """Jira rejected the request or could not be reached."""
