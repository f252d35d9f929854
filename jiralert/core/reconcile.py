"""Reconcile Alertmanager notifications with Jira issues.

For every (regrouped) notification the receiver decides one of:

    no issue, nothing firing        -> nothing to do
    no issue, something firing      -> create an issue
    open issue                      -> refresh summary/description
    any issue, nothing firing       -> refresh, resolve if auto_resolve is set
    done issue, something firing    -> refresh, reopen unless won't fix

No state is kept between calls. Which issue belongs to a notification is
rediscovered each time through the identity label stored on the issue, so
handling the same notification twice converges on the same result.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from jiralert.core.fields import deep_copy_with_template, update_field
from jiralert.core.finder import find_issue_to_reuse
from jiralert.core.grouping import group_notification
from jiralert.core.identity import format_label, issue_identifier_label
from jiralert.core.template import Renderer
from jiralert.core.transitions import do_transition
from jiralert.integrations import (
    Component,
    Issue,
    IssueFields,
    IssueType,
    Priority,
    Project,
    TicketingClient,
)
from jiralert.schemas import Notification, ReceiverConfig, sorted_pairs

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class Receiver:
    """Creates, updates, reopens and resolves Jira issues for one receiver.

    Errors are never swallowed: the first ``JiralertError`` raised while
    handling a batch aborts the rest of it and propagates to the caller,
    whose ``retry`` flag says whether redelivering the whole notification
    is worthwhile.
    """

    def __init__(
        self,
        config: ReceiverConfig,
        renderer: Renderer,
        client: TicketingClient,
        time_now: Callable[[], datetime] = _utc_now,
    ):
        self.config = config
        self.renderer = renderer
        self.client = client
        self.time_now = time_now

    def notify(self, data: Notification, hash_jira_label: bool = False) -> int:
        """Handle one webhook delivery.

        Returns the number of regrouped notifications that were processed.

        Raises:
            JiralertError: On the first failure; remaining groups are skipped.
        """
        grouped = group_notification(data, self.config.group_issue_by)
        for notification in grouped:
            self._notify(notification, hash_jira_label)
        return len(grouped)

    def _render(self, source: str | None, data: Notification, what: str) -> str:
        return self.renderer.render(source or "", data, what=what)

    def _notify(self, data: Notification, hash_jira_label: bool) -> Issue | None:
        rc = self.config

        project = self._render(rc.project, data, "project")
        # Always rendered so the title can track the group, e.g. the firing count.
        summary = self._render(rc.summary, data, "summary")
        description = self._render(rc.description, data, "description")

        id_label = issue_identifier_label(
            data, self.renderer, rc.issue_identifier_label, hash_jira_label
        )
        labels = []
        if rc.add_common_labels:
            labels.extend(format_label(name, value) for name, value in sorted_pairs(data.common_labels))
        labels.append(id_label)

        issue = find_issue_to_reuse(
            self.client, project, id_label, rc.reopen_duration, self.time_now
        )

        if issue is not None:
            self._refresh(issue, summary, description)

            if not data.firing_alerts:
                if rc.auto_resolve is None:
                    logger.debug(f"No firing alert; summary checked, nothing else to do (key={issue.key}, labels={labels})")
                    return issue
                logger.debug(f"No firing alert; resolving issue {issue.key} (labels={labels})")
                do_transition(self.client, issue.key, rc.auto_resolve.state)
                return issue

            # Jira's set of status categories is fixed, so "done" is safe to rely on.
            if not issue.fields.is_done:
                logger.debug(f"Issue {issue.key} is unresolved, all is done (labels={labels})")
                return issue

            resolution = issue.fields.resolution
            if rc.wont_fix_resolution and resolution is not None and resolution.name == rc.wont_fix_resolution:
                logger.info(
                    f"Issue {issue.key} was resolved as {resolution.name!r}, not reopening "
                    f"(labels={labels})"
                )
                return issue

            logger.info(f"Issue {issue.key} was recently resolved, reopening (labels={labels})")
            do_transition(self.client, issue.key, rc.reopen_state or "")
            return issue

        if not data.firing_alerts:
            logger.debug(f"No firing alert; nothing to do (labels={labels})")
            return None

        logger.info(f"No recent matching issue found, creating new issue (labels={labels})")
        return self._create(data, project, summary, description, labels)

    def _refresh(self, issue: Issue, summary: str, description: str) -> None:
        if (issue.fields.summary or "") != summary:
            update_field(self.client, issue.key, "summary", summary)
        if (issue.fields.description or "") != description:
            update_field(self.client, issue.key, "description", description)

    def _create(
        self,
        data: Notification,
        project: str,
        summary: str,
        description: str,
        labels: list[str],
    ) -> Issue:
        rc = self.config

        fields = IssueFields(
            project=Project(key=project),
            issue_type=IssueType(name=self._render(rc.issue_type, data, "issue type")),
            summary=summary,
            description=description,
        )

        if rc.priority:
            fields.priority = Priority(name=self._render(rc.priority, data, "issue priority"))

        if rc.components:
            fields.components = [
                Component(name=self._render(component, data, "issue component"))
                for component in rc.components
            ]

        if rc.add_group_labels:
            labels = labels + [format_label(name, value) for name, value in sorted_pairs(data.group_labels)]
        fields.labels = list(dict.fromkeys(labels))

        for key, value in (rc.fields or {}).items():
            fields.unknowns[key] = deep_copy_with_template(value, self.renderer, data)

        issue = Issue(fields=fields)
        logger.debug(f"Creating issue: {fields.model_dump(by_alias=True, exclude_none=True)}")
        created = self.client.create(issue)
        logger.info(f"Issue created (key={created.key}, id={created.id})")
        return created
