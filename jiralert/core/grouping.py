"""Regroup an Alertmanager notification before it is turned into issues.

Alertmanager already groups alerts by the route's ``group_by`` labels. A
receiver can ask for finer issues instead: one per alert rule
(``alertname``) or one per individual alert.
"""

import logging

from jiralert.schemas import Alert, AlertStatus, GroupIssueBy, Notification

logger = logging.getLogger(__name__)


def group_notification(
    notification: Notification,
    mode: GroupIssueBy | None,
) -> list[Notification]:
    """Split a notification according to the receiver's grouping mode."""
    if mode is None or mode == GroupIssueBy.ALERT_GROUP:
        return [notification]
    if mode == GroupIssueBy.ALERT_RULE:
        return group_by_rule(notification)
    if mode == GroupIssueBy.ALERT:
        return group_by_alert(notification)
    raise ValueError(f"Unknown grouping mode '{mode}'")


def group_by_alert(notification: Notification) -> list[Notification]:
    """One notification per alert, with the alert's own labels promoted to common."""
    return [
        notification.model_copy(
            update={
                "status": alert.status,
                "common_labels": dict(alert.labels),
                "common_annotations": dict(alert.annotations),
                "alerts": [alert],
            }
        )
        for alert in notification.alerts
    ]


def group_by_rule(notification: Notification) -> list[Notification]:
    """One notification per ``alertname``.

    Alerts without an ``alertname`` label cannot be attributed to a rule and
    are left out of the result. Output follows the order in which each rule
    first appears in the batch.
    """
    by_rule: dict[str, list[Alert]] = {}
    for alert in notification.alerts:
        name = alert.labels.get("alertname")
        if name is None:
            logger.debug(f"Alert without alertname skipped in rule grouping: {alert.labels}")
            continue
        by_rule.setdefault(name, []).append(alert)

    grouped = []
    for alerts in by_rule.values():
        firing = any(a.is_firing for a in alerts)
        grouped.append(
            notification.model_copy(
                update={
                    "status": AlertStatus.FIRING if firing else AlertStatus.RESOLVED,
                    "common_labels": _common(a.labels for a in alerts),
                    "common_annotations": _common(a.annotations for a in alerts),
                    "alerts": alerts,
                }
            )
        )
    return grouped


def _common(mappings) -> dict[str, str]:
    """Key/value pairs present with the same value in every mapping.

    Mirrors how Alertmanager itself computes commonLabels: start from the
    first mapping and drop any key a later mapping disagrees on or lacks.
    """
    iterator = iter(mappings)
    common = dict(next(iterator, {}))
    for mapping in iterator:
        if not common:
            break
        for key, value in list(common.items()):
            if mapping.get(key) != value:
                del common[key]
    return common
