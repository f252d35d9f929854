"""Issue field writes: partial updates and templated custom fields."""

import logging
from typing import Any

from jiralert.core.template import Renderer
from jiralert.integrations import Issue, IssueFields, TicketingClient
from jiralert.schemas import Notification

logger = logging.getLogger(__name__)

# Values a custom field may hold in the configuration file.
FieldValue = None | str | int | float | bool | list["FieldValue"] | dict[str, "FieldValue"]


def update_field(client: TicketingClient, issue_key: str, field: str, value: Any) -> None:
    """Write a single field of an existing issue, leaving all others untouched.

    Raises:
        TicketingError: If the update request fails.
    """
    logger.debug(f"Updating issue {issue_key} with new {field}: {value!r}")
    update = Issue(key=issue_key, fields=IssueFields(**{field: value}))
    issue = client.update(update)
    logger.debug(f"Issue {issue.key} {field} updated")


def deep_copy_with_template(value: FieldValue, renderer: Renderer, data: Notification) -> FieldValue:
    """Copy a custom field value, rendering every string in it as a template.

    Strings (including mapping keys) are rendered; lists and tuples are
    copied element-wise; mappings become ``dict[str, ...]`` and entries with
    non-string keys are dropped. Numbers, booleans and None pass through.

    Raises:
        RenderError: If any string fails to render.
    """
    if value is None:
        return None

    if isinstance(value, str):
        return renderer.render(value, data, what="custom field")

    if isinstance(value, list | tuple):
        return [deep_copy_with_template(item, renderer, data) for item in value]

    if isinstance(value, dict):
        converted: dict[str, FieldValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                continue
            rendered_key = renderer.render(key, data, what="custom field key")
            converted[rendered_key] = deep_copy_with_template(item, renderer, data)
        return converted

    return value
