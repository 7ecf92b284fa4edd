"""Unit tests for the object template parser."""

from __future__ import annotations

import re

import pytest

from vossibility.transformation import TemplateSyntaxError, parse_template
from vossibility.transformation.nodes import (
    ActionNode,
    Command,
    FieldNode,
    FunctionNode,
    IfNode,
    LiteralNode,
    Pipeline,
    RangeNode,
    SubPipelineNode,
    TextNode,
    VariableNode,
    WithNode,
    iter_function_calls,
)


def _action(*commands: tuple[object, ...]) -> ActionNode:
    return ActionNode(Pipeline(tuple(Command(tuple(ops)) for ops in commands)))


def test_plain_text_is_a_single_text_node() -> None:
    """Sources without actions are literal text."""
    template = parse_template("pull_request")

    assert template.nodes == (TextNode("pull_request"),)
    assert template.source == "pull_request"


def test_field_chain() -> None:
    """Dotted chains become one field node."""
    template = parse_template("{{ .issue.user.login }}")

    assert template.nodes == (_action((FieldNode(("issue", "user", "login")),)),)


def test_dot_and_root_variable() -> None:
    """A bare dot and ``$`` chains are distinct operands."""
    template = parse_template("{{ . }}{{ $.repository.name }}")

    assert template.nodes == (
        _action((FieldNode(()),)),
        _action((VariableNode(("repository", "name")),)),
    )


def test_literals_and_constants() -> None:
    """Strings, numbers and the named constants parse as literals."""
    template = parse_template('{{ eq "a" 1 2.5 true nil `raw` }}')

    assert template.nodes == (
        _action(
            (
                FunctionNode("eq"),
                LiteralNode("a"),
                LiteralNode(1),
                LiteralNode(2.5),
                LiteralNode(value=True),
                LiteralNode(None),
                LiteralNode("raw"),
            )
        ),
    )


def test_pipeline_stages() -> None:
    """``|`` splits a pipeline into commands."""
    template = parse_template("{{ .labels | len }}")

    assert template.nodes == (
        _action((FieldNode(("labels",)),), (FunctionNode("len"),)),
    )


def test_parenthesised_pipeline_with_attached_chain() -> None:
    """A field chain glued to ``)`` indexes the sub-pipeline result."""
    template = parse_template('{{ (index . "user").login }}')

    (node,) = template.nodes
    assert isinstance(node, ActionNode)
    (command,) = node.pipeline.commands
    (operand,) = command.operands
    assert isinstance(operand, SubPipelineNode)
    assert operand.chain == ("login",)
    assert operand.pipeline.commands[0].operands[0] == FunctionNode("index")


def test_whitespace_between_actions_is_dropped() -> None:
    """Layout whitespace between actions emits nothing."""
    template = parse_template("{{ .a }}\n  {{ .b }}")

    assert len(template.nodes) == 2
    assert all(isinstance(node, ActionNode) for node in template.nodes)


def test_trim_markers_and_comments() -> None:
    """Trim markers eat adjacent whitespace; comments vanish."""
    template = parse_template("id {{- /* the number */ -}}  {{- .n -}}  !")

    assert template.nodes == (
        TextNode("id"),
        _action((FieldNode(("n",)),)),
        TextNode("!"),
    )


def test_if_else_if_else() -> None:
    """Chained conditions become branches of one if node."""
    template = parse_template(
        "{{ if .merged }}merged{{ else if .closed }}closed{{ else }}open{{ end }}"
    )

    (node,) = template.nodes
    assert isinstance(node, IfNode)
    assert [branch.body for branch in node.branches] == [
        (TextNode("merged"),),
        (TextNode("closed"),),
    ]
    assert node.else_body == (TextNode("open"),)


def test_range_and_with_blocks() -> None:
    """range and with carry a body and an optional else body."""
    template = parse_template(
        "{{ range .labels }}{{ .name }}{{ else }}none{{ end }}"
        "{{ with .user }}{{ .login }}{{ end }}"
    )

    range_node, with_node = template.nodes
    assert isinstance(range_node, RangeNode)
    assert range_node.else_body == (TextNode("none"),)
    assert isinstance(with_node, WithNode)
    assert with_node.else_body == ()


def test_function_calls_are_enumerated_with_arguments() -> None:
    """Nested calls are reported, including inside blocks and parentheses."""
    template = parse_template(
        '{{ if (eq .a 1) }}{{ apply_transformation "x" .b }}{{ end }}'
    )

    calls = dict(iter_function_calls(template.nodes))

    assert set(calls) == {"eq", "apply_transformation"}
    assert calls["apply_transformation"][0] == LiteralNode("x")


@pytest.mark.parametrize(
    ("source", "message"),
    [
        ("{{ .a", "unclosed action"),
        ("{{ if .a }}x", "unclosed if"),
        ("{{ range .a }}x{{ else }}y", "unclosed range"),
        ("x{{ end }}", "unexpected {{ end }}"),
        ("{{ else }}", "unexpected {{ else }}"),
        ("{{ $x }}", "template variables"),
        ("{{ }}", "missing value"),
        ('{{ "abc }}', "unterminated quoted string"),
        ("{{ (len .a }}", "unexpected end of action"),
        ("{{ .a ) }}", "unexpected ')'"),
        ("{{ if .a }}{{ end .b }}", "unexpected arguments after end"),
        ("{{/* open }}", "unclosed comment"),
        ("{{ .a ! }}", "unexpected character '!'"),
        ("{{ range }}{{ end }}", "missing value"),
    ],
)
def test_syntax_errors(source: str, message: str) -> None:
    """Malformed templates raise TemplateSyntaxError."""
    with pytest.raises(TemplateSyntaxError, match=re.escape(message)):
        parse_template(source)


def test_syntax_error_names_field() -> None:
    """Errors can be attributed to the output field being compiled."""
    with pytest.raises(TemplateSyntaxError) as excinfo:
        parse_template("{{ .a")

    error = excinfo.value.for_field("title")

    assert error.field == "title"
    assert error.position == 0
    assert str(error).startswith("field 'title': template syntax error at offset 0")
