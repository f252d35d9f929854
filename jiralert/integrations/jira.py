"""Jira REST API (v2) client.

Implements ``TicketingClient`` on top of a synchronous ``httpx.Client``.
Authenticates with HTTP basic auth (user/password) or a personal access
token sent as a bearer token.

Docs: https://docs.atlassian.com/software/jira/docs/api/REST/latest/
"""

import logging
from typing import Any

import httpx

from jiralert.core.errors import (
    TicketingError,
    TicketingPermanentError,
    TicketingTransientError,
)
from jiralert.integrations import Issue, SearchOptions, TicketingClient, Transition
from jiralert.schemas import ReceiverConfig

logger = logging.getLogger(__name__)

API_PATH = "/rest/api/2/"

# Only these are worth a redelivery; other failures need a human.
RETRYABLE_STATUS_CODES = {500, 503}


def error_from_response(api: str, response: httpx.Response) -> TicketingError:
    """Build the error for a non-2xx Jira response.

    Jira's own error messages rarely say much, so the URL, status and body
    are reported instead.
    """
    url = str(response.request.url)
    body = response.text
    status = f"{response.status_code} {response.reason_phrase}".strip()
    message = f"JIRA request {url} returned status {status}, body {body!r}"
    error_cls = (
        TicketingTransientError
        if response.status_code in RETRYABLE_STATUS_CODES
        else TicketingPermanentError
    )
    return error_cls(message, api=api, status_code=response.status_code, url=url, body=body)


class JiraClient(TicketingClient):
    def __init__(
        self,
        api_url: str,
        user: str | None = None,
        password: str | None = None,
        personal_access_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        auth = None
        if personal_access_token:
            headers["Authorization"] = f"Bearer {personal_access_token}"
        elif user is not None:
            auth = httpx.BasicAuth(user, password or "")

        self._http = httpx.Client(
            base_url=api_url.rstrip("/") + API_PATH,
            headers=headers,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_receiver(cls, rc: ReceiverConfig, timeout: float = 30.0) -> "JiraClient":
        return cls(
            api_url=rc.api_url or "",
            user=rc.user,
            password=rc.password.get_secret_value() if rc.password else None,
            personal_access_token=(
                rc.personal_access_token.get_secret_value()
                if rc.personal_access_token
                else None
            ),
            timeout=timeout,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "JiraClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ─── Requests ────────────────────────────────────────

    def _request(self, api: str, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.debug(f"Jira request {api} failed: {e}")
            raise TicketingPermanentError(f"JIRA request {api} failed: {e}", api=api) from e

        if not response.is_success:
            logger.debug(
                f"Jira request {api} returned {response.status_code} "
                f"(url={response.request.url})"
            )
            raise error_from_response(api, response)
        return response

    def search(self, jql: str, options: SearchOptions) -> list[Issue]:
        response = self._request(
            "Issue.Search",
            "POST",
            "search",
            json={
                "jql": jql,
                "fields": options.fields,
                "maxResults": options.max_results,
            },
        )
        return [Issue.model_validate(raw) for raw in response.json().get("issues", [])]

    def get_transitions(self, issue_id: str) -> list[Transition]:
        response = self._request(
            "Issue.GetTransitions", "GET", f"issue/{issue_id}/transitions"
        )
        return [Transition.model_validate(raw) for raw in response.json().get("transitions", [])]

    def create(self, issue: Issue) -> Issue:
        response = self._request(
            "Issue.Create", "POST", "issue", json={"fields": issue.writable_fields()}
        )
        created = response.json()
        return issue.model_copy(update={"id": str(created.get("id", "")), "key": created.get("key", "")})

    def update(self, issue: Issue) -> Issue:
        self._request(
            "Issue.Update",
            "PUT",
            f"issue/{issue.key or issue.id}",
            json={"fields": issue.writable_fields()},
        )
        return issue

    def do_transition(self, issue_id: str, transition_id: str) -> None:
        self._request(
            "Issue.DoTransition",
            "POST",
            f"issue/{issue_id}/transitions",
            json={"transition": {"id": transition_id}},
        )
