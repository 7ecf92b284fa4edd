"""Asynchronous evaluation of parsed object templates.

Evaluating a template produces the sequence of values it emits: one per
text run or ``{{ pipeline }}`` action reached. :func:`collapse` turns that
sequence into the field value.
"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from .errors import TemplateEvaluationError
from .functions import EvaluationContext, FunctionRegistry, is_truthy
from .nodes import (
    ActionNode,
    Command,
    FieldNode,
    FunctionNode,
    IfNode,
    LiteralNode,
    Node,
    Operand,
    Pipeline,
    RangeNode,
    SubPipelineNode,
    TextNode,
    VariableNode,
    WithNode,
)

if typ.TYPE_CHECKING:
    from .parser import Template

_NO_ARGUMENT: typ.Final = object()


def resolve_chain(value: object, chain: cabc.Iterable[str]) -> object:
    """Follow a field chain; missing keys and non-objects yield None."""
    for name in chain:
        if not isinstance(value, dict):
            return None
        value = value.get(name)
    return value


def collapse(values: cabc.Sequence[object]) -> object:
    """Collapse emitted values: none is null, one is itself, more is a list."""
    match len(values):
        case 0:
            return None
        case 1:
            return values[0]
        case _:
            return list(values)


def _iteration_items(value: object) -> list[object]:
    match value:
        case None:
            return []
        case list():
            return value
        case dict():
            return [value[key] for key in sorted(value)]
        case _:
            raise TemplateEvaluationError.cannot_range(value)


class _Evaluation:
    """One template run against one root document."""

    def __init__(
        self,
        root: object,
        functions: FunctionRegistry,
        context: EvaluationContext,
    ) -> None:
        self._root = root
        self._functions = functions
        self._context = context
        self.emitted: list[object] = []

    async def run(self, nodes: cabc.Iterable[Node], dot: object) -> None:
        for node in nodes:
            await self._node(node, dot)

    async def _node(self, node: Node, dot: object) -> None:
        match node:
            case TextNode(value=value):
                self.emitted.append(value)
            case ActionNode(pipeline=pipeline):
                self.emitted.append(await self._pipeline(pipeline, dot))
            case IfNode(branches=branches, else_body=else_body):
                for branch in branches:
                    if is_truthy(await self._pipeline(branch.condition, dot)):
                        await self.run(branch.body, dot)
                        return
                await self.run(else_body, dot)
            case RangeNode(pipeline=pipeline, body=body, else_body=else_body):
                items = _iteration_items(await self._pipeline(pipeline, dot))
                if not items:
                    await self.run(else_body, dot)
                for item in items:
                    await self.run(body, item)
            case WithNode(pipeline=pipeline, body=body, else_body=else_body):
                value = await self._pipeline(pipeline, dot)
                if is_truthy(value):
                    await self.run(body, value)
                else:
                    await self.run(else_body, dot)

    async def _pipeline(self, pipeline: Pipeline, dot: object) -> object:
        value: object = _NO_ARGUMENT
        for command in pipeline.commands:
            value = await self._command(command, dot, value)
        return value

    async def _command(self, command: Command, dot: object, piped: object) -> object:
        head, *rest = command.operands
        if isinstance(head, FunctionNode):
            args = [await self._operand(operand, dot) for operand in rest]
            if piped is not _NO_ARGUMENT:
                args.append(piped)
            return await self._functions.call(head.name, self._context, args)
        if rest or piped is not _NO_ARGUMENT:
            raise TemplateEvaluationError.not_a_function()
        return await self._operand(head, dot)

    async def _operand(self, operand: Operand, dot: object) -> object:
        match operand:
            case FieldNode(chain=chain):
                return resolve_chain(dot, chain)
            case VariableNode(chain=chain):
                return resolve_chain(self._root, chain)
            case LiteralNode(value=value):
                return value
            case FunctionNode(name=name):
                return await self._functions.call(name, self._context, ())
            case SubPipelineNode(pipeline=pipeline, chain=chain):
                return resolve_chain(await self._pipeline(pipeline, dot), chain)


async def evaluate(
    template: Template,
    document: object,
    *,
    functions: FunctionRegistry,
    context: EvaluationContext | None = None,
) -> list[object]:
    """Run ``template`` against ``document`` and return the emitted values."""
    evaluation = _Evaluation(document, functions, context or EvaluationContext())
    await evaluation.run(template.nodes, document)
    return evaluation.emitted
