"""Template-driven document transformations."""

from __future__ import annotations

from .errors import (
    TemplateEvaluationError,
    TemplateSyntaxError,
    TransformationError,
    TransformationRecursionError,
    UnknownFunctionError,
    UnknownTransformationError,
    UserFunctionError,
)
from .evaluator import collapse, evaluate
from .functions import (
    BUILTIN_FUNCTION_NAMES,
    EvaluationContext,
    FunctionRegistry,
    RepositoryInfo,
    is_truthy,
)
from .parser import Template, parse_template
from .transformation import (
    APPLY_TRANSFORMATION,
    MAX_NESTING_DEPTH,
    Transformation,
    Transformations,
    compile_transformations,
)

__all__ = [
    "APPLY_TRANSFORMATION",
    "BUILTIN_FUNCTION_NAMES",
    "MAX_NESTING_DEPTH",
    "EvaluationContext",
    "FunctionRegistry",
    "RepositoryInfo",
    "Template",
    "TemplateEvaluationError",
    "TemplateSyntaxError",
    "Transformation",
    "TransformationError",
    "TransformationRecursionError",
    "Transformations",
    "UnknownFunctionError",
    "UnknownTransformationError",
    "UserFunctionError",
    "collapse",
    "compile_transformations",
    "evaluate",
    "is_truthy",
    "parse_template",
]
