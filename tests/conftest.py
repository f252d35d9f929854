"""Shared test fixtures.

Jira is replaced by ``FakeJira``, an in-memory ``TicketingClient`` that
records every call, so the reconciliation tests can assert exactly which
mutations were (not) made. The HTTP client fixture wires the FastAPI app to
a fixed receiver configuration and to the fake via dependency overrides.
"""

import re
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
from httpx import ASGITransport, AsyncClient

from jiralert.core.errors import TicketingPermanentError, TicketingTransientError
from jiralert.core.identity import quote_label_value
from jiralert.core.template import Renderer
from jiralert.integrations import (
    Issue,
    IssueFields,
    Resolution,
    SearchOptions,
    Status,
    StatusCategory,
    TicketingClient,
    Transition,
)
from jiralert.schemas import Notification, ReceiverConfig, parse_config

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)

_LABEL_RE = re.compile(r'labels=("(?:[^"\\]|\\.)*")')
_PROJECT_RE = re.compile(r'project="([^"]*)"')

WORKFLOW = {
    # status name -> (status category key, transitions available from it)
    "To Do": ("new", ["In Progress", "Done"]),
    "In Progress": ("indeterminate", ["Done"]),
    "Done": ("done", ["To Do"]),
}


class FakeJira(TicketingClient):
    """In-memory Jira with a three-state workflow."""

    def __init__(self):
        self.issues: dict[str, Issue] = {}
        self.calls: list[tuple] = []
        self.fail: dict[str, Exception] = {}
        self._next = 1

    # ─── Helpers ─────────────────────────────────────────

    def _check(self, api: str) -> None:
        if api in self.fail:
            raise self.fail[api]

    def add_issue(
        self,
        project: str,
        labels: list[str],
        summary: str = "",
        description: str = "",
        status: str = "To Do",
        resolution: str | None = None,
        resolution_date: datetime | None = None,
    ) -> Issue:
        key = f"{project}-{self._next}"
        issue = Issue(
            id=str(10000 + self._next),
            key=key,
            fields=IssueFields(
                summary=summary,
                description=description,
                labels=list(labels),
                status=Status(
                    name=status,
                    status_category=StatusCategory(key=WORKFLOW[status][0]),
                ),
                resolution=Resolution(name=resolution) if resolution else None,
                resolution_date=resolution_date,
            ),
        )
        self._next += 1
        self.issues[key] = issue
        return issue

    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("create", "update", "do_transition")]

    def calls_to(self, api: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == api]

    # ─── TicketingClient ─────────────────────────────────

    def search(self, jql: str, options: SearchOptions) -> list[Issue]:
        self.calls.append(("search", jql, options))
        self._check("search")
        quoted = _LABEL_RE.search(jql).group(1)
        project = _PROJECT_RE.search(jql).group(1)
        matches = [
            i for i in self.issues.values()
            if i.key.startswith(f"{project}-")
            and any(quote_label_value(label) == quoted for label in i.fields.labels or [])
        ]
        # order by resolutiondate desc; unresolved first, like Jira
        matches.sort(
            key=lambda i: (
                i.fields.resolution_date is None,
                i.fields.resolution_date or datetime.min.replace(tzinfo=UTC),
            ),
            reverse=True,
        )
        return matches[: options.max_results]

    def get_transitions(self, issue_id: str) -> list[Transition]:
        self.calls.append(("get_transitions", issue_id))
        self._check("get_transitions")
        status = self.issues[issue_id].fields.status.name
        return [
            Transition(id=str(idx), name=name)
            for idx, name in enumerate(WORKFLOW[status][1], start=11)
        ]

    def create(self, issue: Issue) -> Issue:
        self.calls.append(("create", issue))
        self._check("create")
        fields = issue.fields
        created = self.add_issue(
            project=fields.project.key,
            labels=fields.labels or [],
            summary=fields.summary or "",
            description=fields.description or "",
        )
        return created

    def update(self, issue: Issue) -> Issue:
        self.calls.append(("update", issue))
        self._check("update")
        stored = self.issues[issue.key]
        for name, value in issue.fields.model_dump(exclude_none=True, exclude={"unknowns"}).items():
            setattr(stored.fields, name, value)
        return stored

    def do_transition(self, issue_id: str, transition_id: str) -> None:
        self.calls.append(("do_transition", issue_id, transition_id))
        self._check("do_transition")
        issue = self.issues[issue_id]
        available = WORKFLOW[issue.fields.status.name][1]
        target = available[int(transition_id) - 11]
        issue.fields.status = Status(
            name=target, status_category=StatusCategory(key=WORKFLOW[target][0])
        )
        if target == "Done":
            issue.fields.resolution = Resolution(name="Fixed")
            issue.fields.resolution_date = NOW
        else:
            issue.fields.resolution = None
            issue.fields.resolution_date = None


# ─── Factories ───────────────────────────────────────────


def make_alert(status: str = "firing", labels: dict | None = None, annotations: dict | None = None) -> dict:
    return {
        "status": status,
        "labels": labels if labels is not None else {"alertname": "HighCPU"},
        "annotations": annotations or {},
        "startsAt": "2024-01-15T10:00:00.000Z",
        "endsAt": "0001-01-01T00:00:00Z" if status == "firing" else "2024-01-15T11:00:00.000Z",
        "generatorURL": "http://prometheus:9090/graph?g0.expr=up",
    }


def make_notification(
    alerts: list[dict] | None = None,
    group_labels: dict | None = None,
    receiver: str = "jira-ab",
    **overrides,
) -> Notification:
    alerts = alerts if alerts is not None else [make_alert()]
    firing = any(a["status"] == "firing" for a in alerts)
    payload = {
        "version": "4",
        "groupKey": '{}:{alertname="HighCPU"}',
        "status": "firing" if firing else "resolved",
        "receiver": receiver,
        "groupLabels": group_labels if group_labels is not None else {"alertname": "HighCPU"},
        "commonLabels": {"alertname": "HighCPU"},
        "commonAnnotations": {},
        "externalURL": "http://alertmanager:9093",
        "alerts": alerts,
    }
    payload.update(overrides)
    return Notification.model_validate(payload)


def make_receiver_config(**overrides) -> ReceiverConfig:
    defaults = {
        "name": "jira-ab",
        "api_url": "https://jira.example.com",
        "user": "jiralert",
        "password": "secret",
        "project": "AB",
        "issue_type": "Bug",
        "summary": "[{{ status | upper }}] {{ group_labels.alertname }}",
        "description": "{{ firing_alerts | length }} firing",
        "reopen_state": "To Do",
        "wont_fix_resolution": "Won't Fix",
    }
    defaults.update(overrides)
    return ReceiverConfig.model_validate(defaults)


SAMPLE_CONFIG = """
defaults:
  api_url: https://jira.example.com
  user: jiralert
  password: hunter2
  issue_type: Bug
  reopen_state: To Do
  wont_fix_resolution: Won't Fix
  summary: '[{{ status | upper }}] {{ group_labels.alertname }}'
  description: '{{ firing_alerts | length }} firing'
receivers:
  - name: jira-ab
    project: AB
  - name: jira-xy
    project: XY
    auto_resolve:
      state: Done
"""


# ─── Fixtures ────────────────────────────────────────────


@pytest.fixture()
def jira() -> FakeJira:
    return FakeJira()


@pytest.fixture()
def renderer() -> Renderer:
    return Renderer()


@pytest.fixture()
def transient_error() -> TicketingTransientError:
    return TicketingTransientError(
        "JIRA request https://jira.example.com/rest/api/2/search returned status 503",
        api="Issue.Search",
        status_code=503,
    )


@pytest.fixture()
def permanent_error() -> TicketingPermanentError:
    return TicketingPermanentError(
        "JIRA request https://jira.example.com/rest/api/2/issue returned status 400",
        api="Issue.Create",
        status_code=400,
    )


@pytest.fixture()
async def client(jira: FakeJira) -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client wired to the FastAPI app with the fake Jira."""
    from jiralert.api.deps import get_client_factory, get_config
    from jiralert.main import app

    config = parse_config(SAMPLE_CONFIG)

    app.dependency_overrides[get_config] = lambda: config
    app.dependency_overrides[get_client_factory] = lambda: (lambda rc: jira)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
