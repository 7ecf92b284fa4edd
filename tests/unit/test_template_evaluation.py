"""Unit tests for object template evaluation and builtin functions."""

from __future__ import annotations

import typing as typ

import pytest

from vossibility.transformation import (
    EvaluationContext,
    FunctionRegistry,
    TemplateEvaluationError,
    UnknownFunctionError,
    collapse,
    evaluate,
    is_truthy,
    parse_template,
)

_ISSUE: dict[str, typ.Any] = {
    "number": 42,
    "title": "Crash on start",
    "merged": False,
    "user": {"login": "icecrime"},
    "milestone": None,
    "labels": [{"name": "bug"}, {"name": "area/runtime"}],
    "reactions": {"b": 2, "a": 1},
}


async def _values(
    source: str,
    document: object = None,
    *,
    functions: FunctionRegistry | None = None,
    context: EvaluationContext | None = None,
) -> list[object]:
    return await evaluate(
        parse_template(source),
        _ISSUE if document is None else document,
        functions=functions or FunctionRegistry(),
        context=context,
    )


async def _value(source: str, document: object = None) -> object:
    return collapse(await _values(source, document))


class TestCollapse:
    """Tests for collapse."""

    @pytest.mark.parametrize(
        ("values", "expected"),
        [([], None), ([1], 1), ([None], None), ([1, "a"], [1, "a"])],
    )
    def test_collapse(self, values: list[object], expected: object) -> None:
        """No value is null, one is itself, several become a list."""
        assert collapse(values) == expected


class TestFieldsAndText:
    """Tests for field access and literal text."""

    @pytest.mark.asyncio
    async def test_field_value_keeps_its_type(self) -> None:
        """A single action yields the raw JSON value."""
        assert await _value("{{ .number }}") == 42
        assert await _value("{{ .labels }}") == _ISSUE["labels"]

    @pytest.mark.asyncio
    async def test_missing_fields_are_null(self) -> None:
        """Missing keys and lookups through null yield None."""
        assert await _value("{{ .assignee }}") is None
        assert await _value("{{ .milestone.title }}") is None

    @pytest.mark.asyncio
    async def test_text_is_emitted_alongside_values(self) -> None:
        """Literal text is one more emitted value."""
        assert await _values("issue-{{ .number }}") == ["issue-", 42]

    @pytest.mark.asyncio
    async def test_plain_text_is_the_value(self) -> None:
        """Templates without actions evaluate to their text."""
        assert await _value("pull_request") == "pull_request"

    @pytest.mark.asyncio
    async def test_root_variable_inside_range(self) -> None:
        """``$`` always refers to the whole document."""
        values = await _values("{{ range .labels }}{{ $.number }}{{ end }}")

        assert values == [42, 42]

    @pytest.mark.asyncio
    async def test_value_given_arguments_fails(self) -> None:
        """Only functions accept arguments."""
        with pytest.raises(TemplateEvaluationError, match="non-function"):
            await _values("{{ .title .number }}")


class TestControlFlow:
    """Tests for if, range and with."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("document", "expected"),
        [
            ({"merged": True}, "merged"),
            ({"merged": False, "state": "closed"}, "closed"),
            ({"merged": False, "state": ""}, "open"),
        ],
    )
    async def test_if_chain(self, document: dict[str, object], expected: str) -> None:
        """The first truthy branch runs."""
        source = (
            "{{ if .merged }}merged{{ else if .state }}closed{{ else }}open{{ end }}"
        )

        assert await _value(source, document) == expected

    @pytest.mark.asyncio
    async def test_range_over_list(self) -> None:
        """Each element becomes dot in turn."""
        values = await _values("{{ range .labels }}{{ .name }}{{ end }}")

        assert values == ["bug", "area/runtime"]

    @pytest.mark.asyncio
    async def test_range_over_object_is_sorted_by_key(self) -> None:
        """Object values are visited in key order."""
        assert await _values("{{ range .reactions }}{{ . }}{{ end }}") == [1, 2]

    @pytest.mark.asyncio
    async def test_range_else_on_empty(self) -> None:
        """Empty and null collections run the else body."""
        source = "{{ range .items }}{{ . }}{{ else }}none{{ end }}"

        assert await _value(source, {"items": []}) == "none"
        assert await _value(source, {}) == "none"

    @pytest.mark.asyncio
    async def test_range_over_scalar_fails(self) -> None:
        """Strings and numbers cannot be ranged over."""
        with pytest.raises(TemplateEvaluationError, match="range can't iterate"):
            await _values("{{ range .title }}{{ . }}{{ end }}")

    @pytest.mark.asyncio
    async def test_with_rebinds_dot(self) -> None:
        """with runs its body with dot set to a truthy value."""
        assert await _value("{{ with .user }}{{ .login }}{{ end }}") == "icecrime"
        assert (
            await _value("{{ with .milestone }}{{ .title }}{{ else }}none{{ end }}")
            == "none"
        )

    @pytest.mark.asyncio
    async def test_nothing_emitted_is_null(self) -> None:
        """A false condition without else yields null."""
        assert await _value("{{ if .merged }}merged{{ end }}") is None


class TestBuiltins:
    """Tests for the comparison and collection builtins."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("{{ eq .number 42 }}", True),
            ("{{ eq .number 42.0 }}", True),
            ('{{ eq .number "42" }}', False),
            ('{{ eq .user.login "a" "icecrime" }}', True),
            ("{{ eq .milestone nil }}", True),
            ("{{ ne .number 1 }}", True),
            ("{{ lt .number 100 }}", True),
            ("{{ ge .number 42 }}", True),
            ('{{ gt "b" "a" }}', True),
            ("{{ not .merged }}", True),
            ('{{ and .number "" }}', ""),
            ("{{ or .milestone .number }}", 42),
            ("{{ len .labels }}", 2),
            ("{{ .labels | len }}", 2),
            ('{{ index . "user" "login" }}', "icecrime"),
            ("{{ index .labels 1 }}", {"name": "area/runtime"}),
            ('{{ index .milestone "title" }}', None),
            ('{{ (index .labels 0).name }}', "bug"),
        ],
    )
    async def test_builtin(self, source: str, expected: object) -> None:
        """Builtins follow template semantics."""
        assert await _value(source) == expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("source", "message"),
        [
            ('{{ lt .number "a" }}', "incompatible types"),
            ("{{ len .number }}", "len of int"),
            ("{{ index .labels 5 }}", "index out of range"),
            ('{{ index .labels "a" }}', "can't index list"),
            ("{{ len }}", "wrong arguments for len"),
        ],
    )
    async def test_builtin_errors(self, source: str, message: str) -> None:
        """Misused builtins raise TemplateEvaluationError."""
        with pytest.raises(TemplateEvaluationError, match=message):
            await _values(source)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, False),
            (False, False),
            (0, False),
            (0.0, False),
            ("", False),
            ([], False),
            ({}, False),
            (True, True),
            (-1, True),
            ("x", True),
            ([0], True),
        ],
    )
    def test_truthiness(self, value: object, *, expected: bool) -> None:
        """Null, false, zero and empty values are false."""
        assert is_truthy(value) is expected


class TestRegistry:
    """Tests for custom functions."""

    @pytest.mark.asyncio
    async def test_unknown_function(self) -> None:
        """Calling an unregistered name raises UnknownFunctionError."""
        with pytest.raises(UnknownFunctionError, match="'missing'"):
            await _values("{{ missing .number }}")

    @pytest.mark.asyncio
    async def test_sync_and_async_functions(self) -> None:
        """Registered functions may be plain or coroutine functions."""
        registry = FunctionRegistry()

        @registry.function()
        def double(value: int) -> int:
            return value * 2

        async def shout(value: str) -> str:
            return value.upper()

        registry.register("shout", shout)

        values = await _values(
            "{{ double .number }}{{ .title | shout }}", functions=registry
        )

        assert values == [84, "CRASH ON START"]

    @pytest.mark.asyncio
    async def test_contextual_function_receives_context(self) -> None:
        """Contextual functions get the evaluation context first."""
        registry = FunctionRegistry()
        seen: list[EvaluationContext] = []

        def depth(context: EvaluationContext) -> int:
            seen.append(context)
            return context.depth

        registry.register("depth", depth, contextual=True)
        context = EvaluationContext(depth=3)

        assert await _values("{{ depth }}", functions=registry, context=context) == [3]
        assert seen == [context]

    def test_copy_is_independent(self) -> None:
        """Registering on a copy leaves the original untouched."""
        registry = FunctionRegistry()
        clone = registry.copy()
        clone.register("extra", lambda: 1)

        assert "extra" in clone
        assert "extra" not in registry
        assert "eq" in registry.names()
