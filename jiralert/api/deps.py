"""Shared API dependencies."""

from collections.abc import Callable
from functools import lru_cache

from fastapi import Depends

from jiralert.config import get_settings
from jiralert.core.template import Renderer
from jiralert.integrations import TicketingClient
from jiralert.integrations.jira import JiraClient
from jiralert.schemas import JiralertConfig, ReceiverConfig, load_config

ClientFactory = Callable[[ReceiverConfig], TicketingClient]


@lru_cache
def get_config() -> JiralertConfig:
    """Receiver configuration, loaded once per process."""
    return load_config(get_settings().config_file)


@lru_cache
def _renderer_for(template: str | None) -> Renderer:
    return Renderer(template)


def get_renderer(config: JiralertConfig = Depends(get_config)) -> Renderer:
    """Renderer for the configured template library, built once per library path."""
    return _renderer_for(config.template)


def get_client_factory() -> ClientFactory:
    """Builds the Jira client for a receiver; overridden with a fake in tests."""
    timeout = get_settings().jira_timeout_seconds

    def _factory(rc: ReceiverConfig) -> TicketingClient:
        return JiraClient.from_receiver(rc, timeout=timeout)

    return _factory
