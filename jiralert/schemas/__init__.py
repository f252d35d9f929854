import logging
import re
from datetime import datetime, timedelta
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from jiralert.core.errors import ConfigError

logger = logging.getLogger(__name__)

# ─── Alertmanager Webhook (v4) ───────────────────────────

# Zero time in Alertmanager means "not set"
ALERTMANAGER_ZERO_TIME = "0001-01-01T00:00:00Z"


class AlertStatus(StrEnum):
    FIRING = "firing"
    RESOLVED = "resolved"


class Alert(BaseModel):
    """One alert instance within a notification."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    status: AlertStatus
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    starts_at: datetime | None = Field(default=None, alias="startsAt")
    ends_at: datetime | None = Field(default=None, alias="endsAt")
    generator_url: str | None = Field(default=None, alias="generatorURL")
    fingerprint: str | None = None

    @field_validator("starts_at", "ends_at", mode="before")
    @classmethod
    def zero_time_is_unset(cls, v: Any) -> Any:
        if v == ALERTMANAGER_ZERO_TIME:
            return None
        return v

    @property
    def is_firing(self) -> bool:
        return self.status == AlertStatus.FIRING


class Notification(BaseModel):
    """One alert group as delivered by Alertmanager's webhook receiver.

    See: https://prometheus.io/docs/alerting/latest/configuration/#webhook_config
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: str
    group_key: str = Field(default="", alias="groupKey")
    truncated_alerts: int = Field(default=0, alias="truncatedAlerts")
    status: AlertStatus
    receiver: str
    group_labels: dict[str, str] = Field(default_factory=dict, alias="groupLabels")
    common_labels: dict[str, str] = Field(default_factory=dict, alias="commonLabels")
    common_annotations: dict[str, str] = Field(
        default_factory=dict, alias="commonAnnotations"
    )
    external_url: str = Field(default="", alias="externalURL")
    alerts: list[Alert] = Field(default_factory=list)

    @property
    def firing_alerts(self) -> list[Alert]:
        return [a for a in self.alerts if a.is_firing]

    @property
    def resolved_alerts(self) -> list[Alert]:
        return [a for a in self.alerts if not a.is_firing]

    def template_context(self) -> dict[str, Any]:
        """Names visible to configured templates."""
        return {
            "version": self.version,
            "group_key": self.group_key,
            "status": self.status.value,
            "receiver": self.receiver,
            "group_labels": self.group_labels,
            "common_labels": self.common_labels,
            "common_annotations": self.common_annotations,
            "external_url": self.external_url,
            "alerts": self.alerts,
            "firing_alerts": self.firing_alerts,
            "resolved_alerts": self.resolved_alerts,
        }


def sorted_pairs(labels: dict[str, str]) -> list[tuple[str, str]]:
    """Label pairs ordered by label name."""
    return sorted(labels.items(), key=lambda pair: pair[0])


class NotifyResponse(BaseModel):
    status: str
    receiver: str
    notifications: int


# ─── Durations ───────────────────────────────────────────

_DURATION_RE = re.compile(
    r"^(?:(?P<y>\d+)y)?(?:(?P<w>\d+)w)?(?:(?P<d>\d+)d)?(?:(?P<h>\d+)h)?"
    r"(?:(?P<m>\d+)m)?(?:(?P<s>\d+)s)?(?:(?P<ms>\d+)ms)?$"
)

_DURATION_UNITS = [
    ("y", timedelta(days=365)),
    ("w", timedelta(weeks=1)),
    ("d", timedelta(days=1)),
    ("h", timedelta(hours=1)),
    ("m", timedelta(minutes=1)),
    ("s", timedelta(seconds=1)),
    ("ms", timedelta(milliseconds=1)),
]


def parse_duration(value: str) -> timedelta:
    """Parse a Prometheus-style duration such as ``30d``, ``1h30m`` or ``0``."""
    if value == "0":
        return timedelta(0)
    match = _DURATION_RE.match(value)
    if not value or not match:
        raise ValueError(f"not a valid duration string: {value!r}")
    total = timedelta(0)
    for unit, size in _DURATION_UNITS:
        if match.group(unit):
            total += size * int(match.group(unit))
    return total


def format_duration(value: timedelta) -> str:
    """Inverse of parse_duration, largest units first."""
    remaining = value
    if remaining == timedelta(0):
        return "0s"
    parts = []
    for unit, size in _DURATION_UNITS:
        count = remaining // size
        if count:
            parts.append(f"{count}{unit}")
            remaining -= size * count
    return "".join(parts)


# ─── Receiver Configuration ──────────────────────────────


class GroupIssueBy(StrEnum):
    ALERT_GROUP = "AlertGroup"
    ALERT_RULE = "AlertRule"
    ALERT = "Alert"


class AutoResolve(BaseModel):
    model_config = ConfigDict(extra="forbid")

    state: str = Field(..., min_length=1)


class ReceiverConfig(BaseModel):
    """Settings for one Alertmanager receiver.

    Any field left unset falls back to the value under ``defaults``.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = ""

    # API access
    api_url: str | None = None
    user: str | None = None
    password: SecretStr | None = None
    personal_access_token: SecretStr | None = None

    # Issue fields
    project: str | None = None
    issue_type: str | None = None
    summary: str | None = None
    description: str | None = None
    priority: str | None = None
    components: list[str] | None = None
    fields: dict[str, Any] | None = None

    # Workflow
    reopen_state: str | None = None
    wont_fix_resolution: str | None = None
    reopen_duration: timedelta | None = None
    auto_resolve: AutoResolve | None = None

    # Labels and grouping
    add_group_labels: bool | None = None
    add_common_labels: bool | None = None
    group_issue_by: GroupIssueBy | None = None
    issue_identifier_label: str | None = None

    @field_validator("reopen_duration", mode="before")
    @classmethod
    def parse_reopen_duration(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_duration(v.strip())
        if isinstance(v, int | float) and not isinstance(v, bool):
            return timedelta(seconds=v)
        return v

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        return v.rstrip("/") if v else v

    @field_validator("group_issue_by", mode="before")
    @classmethod
    def empty_group_issue_by(cls, v: Any) -> Any:
        # An explicit empty string keeps Alertmanager's own grouping
        return GroupIssueBy.ALERT_GROUP if v == "" else v

    @field_serializer("password", "personal_access_token")
    def mask_secret(self, v: SecretStr | None) -> str | None:
        return "<secret>" if v is not None else None

    @field_serializer("reopen_duration")
    def serialize_duration(self, v: timedelta | None) -> str | None:
        return format_duration(v) if v is not None else None

    def with_defaults(self, defaults: "ReceiverConfig") -> "ReceiverConfig":
        """Return a copy with every unset field taken from ``defaults``."""
        inherited = {
            name: getattr(defaults, name)
            for name in type(self).model_fields
            if name != "name"
            and getattr(self, name) is None
            and getattr(defaults, name) is not None
        }
        return self.model_copy(update=inherited, deep=True)

    def missing_required(self) -> list[str]:
        required = ("api_url", "project", "issue_type", "summary", "reopen_state")
        return [name for name in required if not getattr(self, name)]


class JiralertConfig(BaseModel):
    """Top level of the receiver configuration file."""

    model_config = ConfigDict(extra="forbid")

    defaults: ReceiverConfig = Field(default_factory=ReceiverConfig)
    receivers: list[ReceiverConfig] = Field(default_factory=list)
    template: str | None = None

    @model_validator(mode="after")
    def apply_defaults_and_validate(self) -> "JiralertConfig":
        if not self.receivers:
            raise ValueError("at least one receiver must be defined")

        seen: set[str] = set()
        merged: list[ReceiverConfig] = []
        for receiver in self.receivers:
            if not receiver.name:
                raise ValueError("missing name for receiver")
            if receiver.name in seen:
                raise ValueError(f"duplicate receiver name: {receiver.name!r}")
            seen.add(receiver.name)

            rc = receiver.with_defaults(self.defaults)
            missing = rc.missing_required()
            if missing:
                raise ValueError(
                    f"receiver {rc.name!r} is missing required fields: {', '.join(missing)}"
                )
            if rc.personal_access_token is not None and (
                rc.user is not None or rc.password is not None
            ):
                raise ValueError(
                    f"receiver {rc.name!r}: user/password and personal_access_token "
                    "are mutually exclusive"
                )
            if (rc.user is None) != (rc.password is None):
                raise ValueError(
                    f"receiver {rc.name!r}: user and password must be set together"
                )
            merged.append(rc)

        self.receivers = merged
        return self

    def receiver_by_name(self, name: str) -> ReceiverConfig | None:
        for receiver in self.receivers:
            if receiver.name == name:
                return receiver
        return None

    def to_yaml(self) -> str:
        """Render the effective configuration with secrets masked."""
        data = self.model_dump(mode="json", exclude_none=True)
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


def parse_config(text: str, base_dir: Path | None = None) -> JiralertConfig:
    """Parse and validate a YAML configuration document."""
    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError("configuration must be a YAML mapping")

    try:
        config = JiralertConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e

    if config.template and base_dir is not None:
        template_path = Path(config.template)
        if not template_path.is_absolute():
            config.template = str(base_dir / template_path)
    return config


def load_config(path: str | Path) -> JiralertConfig:
    """Load the receiver configuration file from disk."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read configuration file {path}: {e}") from e

    config = parse_config(text, base_dir=path.parent)
    logger.info(f"Loaded {len(config.receivers)} receiver(s) from {path}")
    return config
