import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta

from jiralert.core.identity import quote_label_value
from jiralert.integrations import Issue, SearchOptions, TicketingClient

logger = logging.getLogger(__name__)

# description is fetched so an unchanged one is not rewritten on every delivery
SEARCH_FIELDS = ["summary", "description", "status", "resolution", "resolutiondate"]

# Two results are enough to notice that an identity label matched more
# than one issue.
SEARCH_MAX_RESULTS = 2

_ISSUE_NUMBER_RE = re.compile(r"-(\d+)$")


def build_search_query(project: str, issue_label: str) -> str:
    return (
        f'project="{project}" and labels={quote_label_value(issue_label)} '
        "order by resolutiondate desc"
    )


def _issue_number(issue: Issue) -> int:
    match = _ISSUE_NUMBER_RE.search(issue.key)
    return int(match.group(1)) if match else -1


def _pick(issues: list[Issue]) -> Issue:
    """Pick the most recently resolved issue.

    Jira already orders by resolution date; equal dates (both unresolved
    included) are broken by the higher issue number.
    """
    first = issues[0]
    tied = [i for i in issues if i.fields.resolution_date == first.fields.resolution_date]
    return max(tied, key=_issue_number)


def search_issue(client: TicketingClient, project: str, issue_label: str) -> Issue | None:
    """Find the issue carrying an identity label in a project.

    Raises:
        TicketingError: If the search request fails.
    """
    query = build_search_query(project, issue_label)
    options = SearchOptions(fields=SEARCH_FIELDS, max_results=SEARCH_MAX_RESULTS)

    logger.debug(f"Searching issues: {query} (max_results={options.max_results})")
    issues = client.search(query, options)
    if not issues:
        logger.debug(f"No issue found for query: {query}")
        return None

    issue = _pick(issues)
    if len(issues) > 1:
        logger.warning(
            f"More than one issue matched, picking most recently resolved: "
            f"query={query} issues={[i.key for i in issues]} picked={issue.key}"
        )

    logger.debug(f"Found issue {issue.key} for query: {query}")
    return issue


def find_issue_to_reuse(
    client: TicketingClient,
    project: str,
    issue_label: str,
    reopen_duration: timedelta | None,
    time_now: Callable[[], datetime],
) -> Issue | None:
    """Find an issue that a notification should update or reopen.

    An issue resolved longer than ``reopen_duration`` ago is left alone so a
    new one gets created; a zero or unset duration reuses issues of any age.

    Raises:
        TicketingError: If the search request fails.
    """
    issue = search_issue(client, project, issue_label)
    if issue is None:
        return None

    resolved_at = issue.fields.resolution_date
    if (
        resolved_at is not None
        and reopen_duration
        and resolved_at + reopen_duration < time_now()
    ):
        logger.debug(
            f"Existing resolved issue {issue.key} is too old to reopen, skipping "
            f"(label={issue_label}, resolution_time={resolved_at.isoformat()}, "
            f"reopen_duration={reopen_duration})"
        )
        return None

    return issue
