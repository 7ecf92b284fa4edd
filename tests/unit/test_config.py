"""Unit tests for configuration loading and validation."""

from __future__ import annotations

import typing as typ

import msgspec
import pytest
from ruamel.yaml import YAML

from vossibility.config import (
    CONFIG_ENV,
    GITHUB_TOKEN_ENV,
    ConfigValidationError,
    load_config,
    parse_config,
    resolve_config_path,
)
from vossibility.storage import Periodicity

if typ.TYPE_CHECKING:
    from pathlib import Path


def _with_changes(text: str, **changes: object) -> str:
    """Return ``text`` with top-level keys replaced.

    The result is JSON, which YAML 1.2 parses as-is and which keeps key order.
    """
    document = YAML(typ="safe").load(text)
    document.update(changes)
    return msgspec.json.encode(document).decode()


def _issues(text: str) -> list[str]:
    with pytest.raises(ConfigValidationError) as excinfo:
        parse_config(text, env={})
    return excinfo.value.issues


class TestLoad:
    """Tests for loading valid configuration."""

    def test_example_configuration(self, example_config_path: Path) -> None:
        """A complete configuration loads with its defaults filled in."""
        config = load_config(example_config_path, env={})

        assert config.elasticsearch == "http://localhost:9200"
        assert config.periodicity is Periodicity.DAILY
        assert config.amqp.exchange == "github"
        assert config.amqp.prefetch_count == 10
        assert config.mapping.not_analyzed == ["login"]
        assert set(config.repositories) == {"docker", "compose"}
        compose = config.repositories["compose"]
        assert (compose.start_index, compose.event_set) == (500, "default")
        assert config.event_set["default"]["issues"] == "issue_event"
        assert config.transformations["issue_event"]["_snapshot_field"] == "issue"

    def test_token_from_environment(self, example_config_text: str) -> None:
        """An empty token falls back to the environment."""
        text = _with_changes(example_config_text, github_api_token="")

        config = parse_config(text, env={GITHUB_TOKEN_ENV: "env-token"})

        assert config.github_api_token == "env-token"

    def test_file_token_wins(self, example_config_text: str) -> None:
        """A configured token is kept."""
        config = parse_config(example_config_text, env={GITHUB_TOKEN_ENV: "other"})

        assert config.github_api_token == "token-123"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Unreadable files raise ConfigValidationError."""
        with pytest.raises(ConfigValidationError, match="failed to read"):
            load_config(tmp_path / "absent.yaml")

    @pytest.mark.parametrize(
        ("explicit", "env", "expected"),
        [
            ("cli.yaml", {CONFIG_ENV: "env.yaml"}, "cli.yaml"),
            (None, {CONFIG_ENV: "env.yaml"}, "env.yaml"),
            (None, {}, "config.yaml"),
        ],
    )
    def test_resolve_config_path(
        self, explicit: str | None, env: dict[str, str], expected: str
    ) -> None:
        """The CLI flag beats the environment, which beats the default."""
        assert str(resolve_config_path(explicit, env=env)) == expected


class TestSchemaErrors:
    """Tests for documents that do not match the schema."""

    @pytest.mark.parametrize(
        ("text", "message"),
        [
            ("", "configuration file is empty"),
            ("elasticsearch: [unclosed", "failed to parse YAML"),
            ("elasticsearch: a\nelasticsearch: b\n", "failed to parse YAML"),
            ("github_api_token: x\n", "schema validation failed"),
            ("elasticsearch: x\nrepositories: [1]\n", "schema validation failed"),
        ],
    )
    def test_schema_errors(self, text: str, message: str) -> None:
        """Parse and schema failures carry one descriptive issue."""
        (issue,) = _issues(text)

        assert message in issue


class TestValidation:
    """Tests for cross-field validation."""

    def test_invalid_periodicity(self, example_config_text: str) -> None:
        """Only hourly, daily and weekly are accepted."""
        issues = _issues(_with_changes(example_config_text, sync_periodicity="monthly"))

        assert issues == [
            "invalid sync_periodicity 'monthly': expected one of daily, hourly, weekly"
        ]

    def test_empty_elasticsearch(self, example_config_text: str) -> None:
        """An Elasticsearch URL is required."""
        issues = _issues(_with_changes(example_config_text, elasticsearch=" "))

        assert issues == ["elasticsearch URL must not be empty"]

    def test_transformation_errors(self, example_config_text: str) -> None:
        """Metadata, syntax, function and target errors are all reported."""
        text = _with_changes(
            example_config_text,
            transformations={
                "snapshot_issue": {"number": ""},
                "snapshot_pull_request": {"number": ""},
                "issue_event": {
                    "_bogus": "x",
                    "_snapshot_id": "number",
                    "title": "{{ .title",
                    "login": "{{ whoami .user }}",
                    "issue": '{{ apply_transformation "missing" .issue }}',
                },
                "pull_request_event": {"number": ""},
            },
        )

        issues = _issues(text)

        assert issues == [
            "transformation issue_event field '_bogus' is not a known metadata field",
            "transformation issue_event must define both or neither of "
            "_snapshot_id and _snapshot_field",
            "transformation issue_event: field 'title': template syntax error "
            "at offset 0: unclosed action",
            "transformation issue_event field 'login' calls undefined function "
            "'whoami'",
            "transformation issue_event applies unknown transformation 'missing'",
        ]

    def test_configured_functions_are_known(self, example_config_text: str) -> None:
        """Executables declared under functions may be called."""
        text = _with_changes(
            example_config_text,
            functions={"whoami": "/usr/local/bin/whoami"},
            transformations={
                "issue_event": {"login": "{{ whoami .user.login }}"},
                "pull_request_event": {"number": ""},
                "snapshot_issue": {"number": ""},
                "snapshot_pull_request": {"number": ""},
            },
        )

        config = parse_config(text, env={})

        assert config.functions == {"whoami": "/usr/local/bin/whoami"}

    def test_event_set_errors(self, example_config_text: str) -> None:
        """Event sets must bind known events to known transformations."""
        text = _with_changes(
            example_config_text,
            event_set={
                "default": {
                    "issues": "issue_event",
                    "made_up": "issue_event",
                    "pull_request": "nope",
                }
            },
        )

        issues = _issues(text)

        assert issues == [
            "event set default binds unknown event type 'made_up'",
            "event set default binds pull_request to unknown transformation 'nope'",
            "event set default must define snapshot_issue",
            "event set default must define snapshot_pull_request",
        ]

    def test_repository_errors(self, example_config_text: str) -> None:
        """Repositories need names, a known event set and unique topics."""
        text = _with_changes(
            example_config_text,
            repositories={
                "docker": {"user": "docker", "repo": "docker", "topic": "t"},
                "compose": {
                    "user": "",
                    "repo": "compose",
                    "topic": "t",
                    "event_set": "other",
                    "start_index": 0,
                },
            },
        )

        issues = _issues(text)

        assert issues == [
            "repository compose is missing user",
            "repository compose references unknown event set 'other'",
            "repository compose start_index must be >= 1",
            "duplicate topic 't' used by repositories docker and compose",
        ]
