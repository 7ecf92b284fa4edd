"""Cross-field validation of collector configuration."""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from vossibility.blob import MetadataField, is_metadata_key
from vossibility.github.events import SnapshotEvent, is_valid_event_set_key
from vossibility.storage.repository import Periodicity
from vossibility.transformation import (
    APPLY_TRANSFORMATION,
    BUILTIN_FUNCTION_NAMES,
    FunctionRegistry,
    Template,
    TemplateSyntaxError,
    Transformation,
    parse_template,
)
from vossibility.transformation.nodes import iter_function_calls

if typ.TYPE_CHECKING:
    from .models import CollectorConfig

COLLECTOR_FUNCTION_NAMES: typ.Final = frozenset(
    {APPLY_TRANSFORMATION, "context", "days_difference", "user_data"}
)
_METADATA_NAMES: typ.Final = frozenset(field.value for field in MetadataField)
_SNAPSHOT_KEYS: typ.Final = (
    MetadataField.SNAPSHOT_ID.value,
    MetadataField.SNAPSHOT_FIELD.value,
)


class ConfigValidationError(ValueError):
    """Raised when a configuration fails validation; carries every issue."""

    def __init__(self, issues: list[str]) -> None:
        """Capture validation issues whilst preserving the aggregated message."""
        message = "\n".join(issues)
        super().__init__(message)
        self.issues = issues


def validate_config(config: CollectorConfig) -> CollectorConfig:
    """Validate ``config``, returning it when all checks pass."""
    issues: list[str] = []

    if not config.elasticsearch.strip():
        issues.append("elasticsearch URL must not be empty")

    periodicities = {item.value for item in Periodicity}
    if config.sync_periodicity not in periodicities:
        issues.append(
            f"invalid sync_periodicity '{config.sync_periodicity}': "
            f"expected one of {', '.join(sorted(periodicities))}"
        )

    known_functions = (
        BUILTIN_FUNCTION_NAMES | COLLECTOR_FUNCTION_NAMES | frozenset(config.functions)
    )
    for name, fields in config.transformations.items():
        _validate_transformation(
            name, fields, known_functions, frozenset(config.transformations), issues
        )

    for name, bindings in config.event_set.items():
        _validate_event_set(name, bindings, config.transformations, issues)

    _validate_repositories(config, issues)

    if issues:
        raise ConfigValidationError(issues)
    return config


def _validate_transformation(
    name: str,
    fields: cabc.Mapping[str, str],
    known_functions: frozenset[str],
    known_transformations: frozenset[str],
    issues: list[str],
) -> None:
    for path in fields:
        if is_metadata_key(path) and path not in _METADATA_NAMES:
            issues.append(
                f"transformation {name} field '{path}' is not a known metadata field"
            )

    defined = [key in fields for key in _SNAPSHOT_KEYS]
    if any(defined) and not all(defined):
        issues.append(
            f"transformation {name} must define both or neither of "
            f"{' and '.join(_SNAPSHOT_KEYS)}"
        )

    templates: dict[str, Template | None] = {}
    for path, source in fields.items():
        if not source:
            templates[path] = None
            continue
        try:
            template = parse_template(source)
        except TemplateSyntaxError as exc:
            issues.append(f"transformation {name}: {exc.for_field(path)}")
            continue
        for function_name, _ in iter_function_calls(template.nodes):
            if function_name not in known_functions:
                issues.append(
                    f"transformation {name} field '{path}' calls undefined "
                    f"function '{function_name}'"
                )
        templates[path] = template

    compiled = Transformation(name, templates, FunctionRegistry())
    for target in sorted(compiled.referenced_transformations()):
        if target not in known_transformations:
            issues.append(
                f"transformation {name} applies unknown transformation '{target}'"
            )


def _validate_event_set(
    name: str,
    bindings: cabc.Mapping[str, str],
    transformations: cabc.Mapping[str, object],
    issues: list[str],
) -> None:
    for event, transformation in bindings.items():
        if not is_valid_event_set_key(event):
            issues.append(f"event set {name} binds unknown event type '{event}'")
        if transformation not in transformations:
            issues.append(
                f"event set {name} binds {event} to unknown transformation "
                f"'{transformation}'"
            )
    for required in SnapshotEvent:
        if required.value not in bindings:
            issues.append(f"event set {name} must define {required.value}")


def _validate_repositories(config: CollectorConfig, issues: list[str]) -> None:
    topics: dict[str, str] = {}
    for given_name, repository in config.repositories.items():
        for field_name in ("user", "repo", "topic"):
            if not getattr(repository, field_name).strip():
                issues.append(f"repository {given_name} is missing {field_name}")
        if repository.event_set not in config.event_set:
            issues.append(
                f"repository {given_name} references unknown event set "
                f"'{repository.event_set}'"
            )
        if repository.start_index < 1:
            issues.append(f"repository {given_name} start_index must be >= 1")
        if not repository.topic:
            continue
        if repository.topic in topics:
            issues.append(
                f"duplicate topic '{repository.topic}' used by repositories "
                f"{topics[repository.topic]} and {given_name}"
            )
        else:
            topics[repository.topic] = given_name
