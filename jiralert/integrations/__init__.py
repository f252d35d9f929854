"""Ticketing system capability used by the reconciliation core.

The core only talks to the ticketing system through ``TicketingClient``;
``jiralert.integrations.jira.JiraClient`` is the production implementation
and the tests use an in-memory one.

Every method raises a ``TicketingError`` subclass on failure:
``TicketingTransientError`` for responses worth retrying (500, 503) and
``TicketingPermanentError`` for everything else.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Jira's own timestamp format, e.g. 2024-01-15T10:30:00.000+0000
JIRA_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"


def parse_jira_time(value: Any) -> Any:
    if not isinstance(value, str) or not value:
        return value or None
    try:
        return datetime.strptime(value, JIRA_TIME_FORMAT)
    except ValueError:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))


# ─── Issue Models ────────────────────────────────────────


class _JiraModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Project(_JiraModel):
    key: str


class IssueType(_JiraModel):
    name: str


class Priority(_JiraModel):
    name: str


class Component(_JiraModel):
    name: str


class StatusCategory(_JiraModel):
    key: str = ""
    name: str | None = None


class Status(_JiraModel):
    name: str | None = None
    status_category: StatusCategory = Field(
        default_factory=StatusCategory, alias="statusCategory"
    )


class Resolution(_JiraModel):
    name: str


class IssueFields(_JiraModel):
    """The subset of Jira issue fields jiralert reads or writes.

    ``unknowns`` holds custom fields (``customfield_10001`` etc.) that are
    sent verbatim next to the known ones on create.
    """

    project: Project | None = None
    issue_type: IssueType | None = Field(default=None, alias="issuetype")
    summary: str | None = None
    description: str | None = None
    labels: list[str] | None = None
    priority: Priority | None = None
    components: list[Component] | None = None
    status: Status | None = None
    resolution: Resolution | None = None
    resolution_date: datetime | None = Field(default=None, alias="resolutiondate")
    unknowns: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @field_validator("resolution_date", mode="before")
    @classmethod
    def parse_resolution_date(cls, v: Any) -> Any:
        return parse_jira_time(v)

    @property
    def is_done(self) -> bool:
        """Whether the issue sits in a status of the fixed "done" category."""
        return self.status is not None and self.status.status_category.key == "done"


class Issue(_JiraModel):
    id: str = ""
    key: str = ""
    fields: IssueFields = Field(default_factory=IssueFields)

    def writable_fields(self) -> dict[str, Any]:
        """Fields payload for create/update requests."""
        payload = self.fields.model_dump(
            by_alias=True,
            exclude_none=True,
            exclude={"status", "resolution", "resolution_date"},
        )
        payload.update(self.fields.unknowns)
        return payload


class Transition(_JiraModel):
    id: str
    name: str


class SearchOptions(_JiraModel):
    fields: list[str] = Field(default_factory=list)
    max_results: int = Field(default=50, alias="maxResults")


# ─── Capability ──────────────────────────────────────────


class TicketingClient(ABC):
    """Operations the reconciliation core needs from a ticketing system."""

    @abstractmethod
    def search(self, jql: str, options: SearchOptions) -> list[Issue]:
        """Run a JQL query, returning at most ``options.max_results`` issues."""
        ...

    @abstractmethod
    def get_transitions(self, issue_id: str) -> list[Transition]:
        """List the workflow transitions currently available on an issue."""
        ...

    @abstractmethod
    def create(self, issue: Issue) -> Issue:
        """Create an issue; the returned issue carries the new id and key."""
        ...

    @abstractmethod
    def update(self, issue: Issue) -> Issue:
        """Partially update an issue, writing only the fields that are set."""
        ...

    @abstractmethod
    def do_transition(self, issue_id: str, transition_id: str) -> None:
        """Apply a workflow transition to an issue."""
        ...

    def close(self) -> None:
        """Release any connections held by the client."""
