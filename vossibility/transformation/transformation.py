"""Compiled transformations and the per-configuration transformation table."""

from __future__ import annotations

import collections.abc as cabc
import copy
import logging
import types
import typing as typ

from vossibility.blob import Blob, is_metadata_key
from vossibility.blob.paths import get_path, has_path, set_path

from .errors import (
    TemplateEvaluationError,
    TemplateSyntaxError,
    TransformationRecursionError,
    UnknownFunctionError,
    UnknownTransformationError,
)
from .evaluator import collapse, evaluate
from .functions import EvaluationContext, FunctionRegistry
from .nodes import LiteralNode, iter_function_calls
from .parser import Template, parse_template

logger = logging.getLogger(__name__)

APPLY_TRANSFORMATION = "apply_transformation"
MAX_NESTING_DEPTH = 16


class Transformation:
    """Output-path to template mapping that reshapes one document.

    A field whose template is ``None`` copies the input value found at the
    same path.
    """

    def __init__(
        self,
        name: str,
        fields: cabc.Mapping[str, Template | None],
        functions: FunctionRegistry,
    ) -> None:
        """Bind compiled field templates to the registry they call into."""
        self.name = name
        self._fields = dict(fields)
        self._functions = functions

    @classmethod
    def compile(
        cls,
        name: str,
        config: cabc.Mapping[str, str],
        functions: FunctionRegistry,
    ) -> Transformation:
        """Parse every template in ``config``; empty sources pass through.

        Raises
        ------
        TemplateSyntaxError
            If a template does not parse; the error names the field.
        UnknownFunctionError
            If a template calls a function missing from ``functions``.

        """
        fields: dict[str, Template | None] = {}
        for path, source in config.items():
            if not source:
                fields[path] = None
                continue
            try:
                template = parse_template(source)
            except TemplateSyntaxError as exc:
                raise exc.for_field(path) from exc
            for function_name, _ in iter_function_calls(template.nodes):
                if function_name not in functions:
                    raise UnknownFunctionError.named(function_name, field=path)
            fields[path] = template
        return cls(name, fields, functions)

    @property
    def fields(self) -> cabc.Mapping[str, Template | None]:
        """Return the read-only field table."""
        return types.MappingProxyType(self._fields)

    def referenced_transformations(self) -> frozenset[str]:
        """Return literal names passed to ``apply_transformation``."""
        names: set[str] = set()
        for template in self._fields.values():
            if template is None:
                continue
            for function_name, arguments in iter_function_calls(template.nodes):
                if function_name != APPLY_TRANSFORMATION or not arguments:
                    continue
                first = arguments[0]
                if isinstance(first, LiteralNode) and isinstance(first.value, str):
                    names.add(first.value)
        return frozenset(names)

    async def _field_value(
        self,
        path: str,
        template: Template | None,
        document: cabc.Mapping[str, typ.Any],
        context: EvaluationContext,
    ) -> object:
        if template is None:
            return copy.deepcopy(get_path(document, path))
        try:
            values = await evaluate(
                template, document, functions=self._functions, context=context
            )
        except TemplateEvaluationError as exc:
            raise exc.for_field(path) from exc
        return copy.deepcopy(collapse(values))

    async def apply(
        self, blob: Blob, *, context: EvaluationContext | None = None
    ) -> Blob:
        """Return a new blob built from this transformation's fields.

        The result keeps the input's type, id and timestamp. Snapshot
        metadata is never inherited; reserved output fields set it anew.
        """
        context = context or EvaluationContext()
        result = Blob(type=blob.type, id=blob.id, timestamp=blob.timestamp)
        for path, template in self._fields.items():
            if template is None and not has_path(blob.data, path):
                logger.debug(
                    "transformation %s: pass-through field %s missing from %s %s",
                    self.name,
                    path,
                    blob.type,
                    blob.id,
                )
            value = await self._field_value(path, template, blob.data, context)
            result.push(path, value)
        return result

    async def apply_to_object(
        self,
        document: cabc.Mapping[str, typ.Any],
        *,
        context: EvaluationContext | None = None,
    ) -> dict[str, typ.Any]:
        """Transform a plain object; reserved metadata fields are skipped."""
        context = context or EvaluationContext()
        result: dict[str, typ.Any] = {}
        for path, template in self._fields.items():
            if is_metadata_key(path):
                continue
            value = await self._field_value(path, template, document, context)
            set_path(result, path, value)
        return result


class Transformations(cabc.Mapping[str, Transformation]):
    """Read-only table of named transformations for one configuration load."""

    def __init__(self, table: cabc.Mapping[str, Transformation]) -> None:
        """Wrap ``table`` without copying; callers must not mutate it later."""
        self._table = types.MappingProxyType(table)

    def __getitem__(self, name: str) -> Transformation:
        """Return the transformation called ``name``."""
        return self._table[name]

    def __iter__(self) -> cabc.Iterator[str]:
        """Iterate over transformation names."""
        return iter(self._table)

    def __len__(self) -> int:
        """Return the number of transformations."""
        return len(self._table)


def apply_transformation_function(
    transformations: Transformations,
    *,
    max_depth: int = MAX_NESTING_DEPTH,
) -> cabc.Callable[..., cabc.Awaitable[dict[str, typ.Any]]]:
    """Build the contextual ``apply_transformation`` template function."""

    async def apply_transformation(
        context: EvaluationContext, name: object, data: object
    ) -> dict[str, typ.Any]:
        if not isinstance(name, str) or name not in transformations:
            raise UnknownTransformationError.named(name)
        if not isinstance(data, dict):
            msg = (
                f"{APPLY_TRANSFORMATION} {name!r} expects an object, "
                f"got {type(data).__name__}"
            )
            raise TemplateEvaluationError(msg)
        if context.depth >= max_depth:
            raise TransformationRecursionError.too_deep(name, max_depth)
        return await transformations[name].apply_to_object(
            data, context=context.nested()
        )

    return apply_transformation


def compile_transformations(
    configs: cabc.Mapping[str, cabc.Mapping[str, str]],
    functions: FunctionRegistry,
) -> Transformations:
    """Compile every named transformation against a shared registry.

    The registry is copied and extended with ``apply_transformation`` bound
    to the returned table, so transformations can call each other by name.
    """
    table: dict[str, Transformation] = {}
    transformations = Transformations(table)
    registry = functions.copy()
    registry.register(
        APPLY_TRANSFORMATION,
        apply_transformation_function(transformations),
        contextual=True,
    )
    for name, config in configs.items():
        table[name] = Transformation.compile(name, config, registry)
    return transformations
