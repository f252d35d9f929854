from jiralert.core.errors import (
    ConfigError,
    ConfigurationError,
    JiralertError,
    RenderError,
    TicketingError,
    TicketingPermanentError,
    TicketingTransientError,
)

__all__ = [
    "JiralertError",
    "ConfigError",
    "ConfigurationError",
    "RenderError",
    "TicketingError",
    "TicketingPermanentError",
    "TicketingTransientError",
]
