from datetime import timedelta
from pathlib import Path

import pytest
import yaml
from conftest import SAMPLE_CONFIG

from jiralert.core.errors import ConfigError
from jiralert.schemas import (
    GroupIssueBy,
    format_duration,
    load_config,
    parse_config,
    parse_duration,
)

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "jiralert.yml"

MINIMAL = """
receivers:
  - name: jira-ab
    api_url: https://jira.example.com/
    user: jiralert
    password: hunter2
    project: AB
    issue_type: Bug
    summary: title
    reopen_state: To Do
"""


class TestDurations:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("0", timedelta(0)),
            ("0h", timedelta(0)),
            ("30d", timedelta(days=30)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("1w2d", timedelta(days=9)),
            ("1y", timedelta(days=365)),
            ("500ms", timedelta(milliseconds=500)),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "30", "1x", "h", "1h 2m"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)

    def test_format(self):
        assert format_duration(timedelta(days=30)) == "4w2d"
        assert format_duration(timedelta(hours=1, minutes=30)) == "1h30m"
        assert format_duration(timedelta(0)) == "0s"


class TestParseConfig:
    def test_defaults_are_inherited(self):
        config = parse_config(SAMPLE_CONFIG)
        ab = config.receiver_by_name("jira-ab")
        xy = config.receiver_by_name("jira-xy")

        assert ab.project == "AB"
        assert ab.issue_type == "Bug"
        assert ab.reopen_state == "To Do"
        assert ab.auto_resolve is None
        assert xy.project == "XY"
        assert xy.auto_resolve.state == "Done"
        assert xy.password.get_secret_value() == "hunter2"

    def test_receiver_overrides_defaults(self):
        text = SAMPLE_CONFIG.replace("    project: XY\n", "    project: XY\n    issue_type: Task\n")
        config = parse_config(text)
        assert config.receiver_by_name("jira-xy").issue_type == "Task"
        assert config.receiver_by_name("jira-ab").issue_type == "Bug"

    def test_unknown_receiver(self):
        assert parse_config(SAMPLE_CONFIG).receiver_by_name("nope") is None

    def test_api_url_trailing_slash_removed(self):
        assert parse_config(MINIMAL).receivers[0].api_url == "https://jira.example.com"

    def test_reopen_duration(self):
        config = parse_config(MINIMAL + "    reopen_duration: 30d\n")
        assert config.receivers[0].reopen_duration == timedelta(days=30)

    def test_empty_group_issue_by_is_alert_group(self):
        config = parse_config(MINIMAL + "    group_issue_by: ''\n")
        assert config.receivers[0].group_issue_by == GroupIssueBy.ALERT_GROUP

    def test_personal_access_token(self):
        text = MINIMAL.replace("    user: jiralert\n    password: hunter2\n", "    personal_access_token: pat\n")
        rc = parse_config(text).receivers[0]
        assert rc.personal_access_token.get_secret_value() == "pat"
        assert rc.user is None


class TestConfigValidation:
    def _assert_invalid(self, text: str, match: str):
        with pytest.raises(ConfigError, match=match):
            parse_config(text)

    def test_invalid_yaml(self):
        self._assert_invalid("receivers: [", "invalid YAML")

    def test_not_a_mapping(self):
        self._assert_invalid("- a\n- b\n", "mapping")

    def test_no_receivers(self):
        self._assert_invalid("defaults:\n  project: AB\n", "at least one receiver")

    def test_missing_name(self):
        self._assert_invalid(MINIMAL.replace("name: jira-ab", "name: ''"), "missing name")

    def test_duplicate_name(self):
        duplicated = MINIMAL + MINIMAL.split("receivers:\n", 1)[1]
        self._assert_invalid(duplicated, "duplicate receiver name")

    @pytest.mark.parametrize("field", ["api_url", "project", "issue_type", "summary", "reopen_state"])
    def test_missing_required_field(self, field):
        lines = [line for line in MINIMAL.splitlines() if not line.strip().startswith(f"{field}:")]
        self._assert_invalid("\n".join(lines), field)

    def test_token_and_password_are_exclusive(self):
        self._assert_invalid(MINIMAL + "    personal_access_token: pat\n", "mutually exclusive")

    def test_user_without_password(self):
        self._assert_invalid(MINIMAL.replace("    password: hunter2\n", ""), "set together")

    def test_bad_duration(self):
        self._assert_invalid(MINIMAL + "    reopen_duration: soon\n", "duration")

    def test_unknown_field(self):
        self._assert_invalid(MINIMAL + "    projekt: AB\n", "projekt")

    def test_unknown_grouping(self):
        self._assert_invalid(MINIMAL + "    group_issue_by: Team\n", "group_issue_by")


class TestToYaml:
    def test_secrets_are_masked(self):
        text = parse_config(SAMPLE_CONFIG).to_yaml()
        assert "hunter2" not in text
        assert "<secret>" in text

    def test_effective_values_are_shown(self):
        dumped = yaml.safe_load(parse_config(MINIMAL + "    reopen_duration: 30d\n").to_yaml())
        receiver = dumped["receivers"][0]
        assert receiver["name"] == "jira-ab"
        assert receiver["reopen_duration"] == "4w2d"
        assert receiver["password"] == "<secret>"
        assert "personal_access_token" not in receiver


class TestLoadConfig:
    def test_template_path_relative_to_config_file(self, tmp_path):
        config_file = tmp_path / "jiralert.yml"
        config_file.write_text(MINIMAL + "template: lib.j2\n")

        assert load_config(config_file).template == str(tmp_path / "lib.j2")

    def test_absolute_template_path_kept(self, tmp_path):
        config_file = tmp_path / "jiralert.yml"
        config_file.write_text(MINIMAL + "template: /etc/jiralert/lib.j2\n")

        assert load_config(config_file).template == "/etc/jiralert/lib.j2"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read"):
            load_config(tmp_path / "missing.yml")

    def test_shipped_example_config(self):
        config = load_config(REPO_CONFIG)

        assert [r.name for r in config.receivers] == ["jira-ab", "jira-xy"]
        xy = config.receiver_by_name("jira-xy")
        assert xy.group_issue_by == GroupIssueBy.ALERT_RULE
        assert xy.reopen_duration == timedelta(days=30)
        assert config.receiver_by_name("jira-ab").reopen_duration == timedelta(0)
        assert Path(config.template).is_file()
