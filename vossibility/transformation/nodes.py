"""Syntax tree for object templates."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses


@dataclasses.dataclass(frozen=True, slots=True)
class FieldNode:
    """``.a.b`` relative to dot; an empty chain is dot itself."""

    chain: tuple[str, ...]


@dataclasses.dataclass(frozen=True, slots=True)
class VariableNode:
    """``$`` or ``$.a.b``: the template's root document."""

    chain: tuple[str, ...]


@dataclasses.dataclass(frozen=True, slots=True)
class LiteralNode:
    """A string, number, boolean, or ``nil`` constant."""

    value: object


@dataclasses.dataclass(frozen=True, slots=True)
class FunctionNode:
    """A registered function name."""

    name: str


@dataclasses.dataclass(frozen=True, slots=True)
class SubPipelineNode:
    """A parenthesised pipeline, optionally followed by a field chain."""

    pipeline: Pipeline
    chain: tuple[str, ...] = ()


type Operand = FieldNode | VariableNode | LiteralNode | FunctionNode | SubPipelineNode


@dataclasses.dataclass(frozen=True, slots=True)
class Command:
    """One pipeline stage: a function call or a single operand."""

    operands: tuple[Operand, ...]


@dataclasses.dataclass(frozen=True, slots=True)
class Pipeline:
    """Commands joined by ``|``; each result feeds the next as last argument."""

    commands: tuple[Command, ...]


@dataclasses.dataclass(frozen=True, slots=True)
class TextNode:
    """Literal text outside actions, emitted as a string value."""

    value: str


@dataclasses.dataclass(frozen=True, slots=True)
class ActionNode:
    """``{{ pipeline }}``: emits the pipeline's value."""

    pipeline: Pipeline


@dataclasses.dataclass(frozen=True, slots=True)
class IfBranch:
    condition: Pipeline
    body: tuple[Node, ...]


@dataclasses.dataclass(frozen=True, slots=True)
class IfNode:
    branches: tuple[IfBranch, ...]
    else_body: tuple[Node, ...] = ()


@dataclasses.dataclass(frozen=True, slots=True)
class RangeNode:
    pipeline: Pipeline
    body: tuple[Node, ...]
    else_body: tuple[Node, ...] = ()


@dataclasses.dataclass(frozen=True, slots=True)
class WithNode:
    pipeline: Pipeline
    body: tuple[Node, ...]
    else_body: tuple[Node, ...] = ()


type Node = TextNode | ActionNode | IfNode | RangeNode | WithNode


def _pipelines_of(node: Node) -> cabc.Iterator[Pipeline]:
    match node:
        case ActionNode(pipeline=pipeline):
            yield pipeline
        case IfNode(branches=branches):
            for branch in branches:
                yield branch.condition
        case RangeNode(pipeline=pipeline) | WithNode(pipeline=pipeline):
            yield pipeline
        case _:
            return


def _children_of(node: Node) -> cabc.Iterator[Node]:
    match node:
        case IfNode(branches=branches, else_body=else_body):
            for branch in branches:
                yield from branch.body
            yield from else_body
        case RangeNode(body=body, else_body=else_body) | WithNode(
            body=body, else_body=else_body
        ):
            yield from body
            yield from else_body
        case _:
            return


def iter_commands(nodes: cabc.Iterable[Node]) -> cabc.Iterator[Command]:
    """Yield every command in ``nodes``, including nested pipelines."""
    pending: list[Pipeline] = []
    for node in _walk(nodes):
        pending.extend(_pipelines_of(node))
    while pending:
        pipeline = pending.pop()
        for command in pipeline.commands:
            yield command
            pending.extend(
                operand.pipeline
                for operand in command.operands
                if isinstance(operand, SubPipelineNode)
            )


def _walk(nodes: cabc.Iterable[Node]) -> cabc.Iterator[Node]:
    for node in nodes:
        yield node
        yield from _walk(_children_of(node))


def iter_function_calls(
    nodes: cabc.Iterable[Node],
) -> cabc.Iterator[tuple[str, tuple[Operand, ...]]]:
    """Yield ``(name, arguments)`` for every function reference in ``nodes``."""
    for command in iter_commands(nodes):
        for index, operand in enumerate(command.operands):
            if isinstance(operand, FunctionNode):
                arguments = command.operands[1:] if index == 0 else ()
                yield operand.name, arguments
