"""Function registry for object templates.

A :class:`FunctionRegistry` is built once per configuration load and shared
by every compiled transformation. Functions are plain callables, sync or
async; contextual functions additionally receive the
:class:`EvaluationContext` of the current apply call as first argument.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import inspect
import typing as typ

from .errors import TemplateEvaluationError, UnknownFunctionError

type TemplateFunction = cabc.Callable[..., object]


class RepositoryInfo(typ.Protocol):
    """The repository facts templates may read through ``context``."""

    @property
    def given_name(self) -> str: ...

    @property
    def user(self) -> str: ...

    @property
    def repo(self) -> str: ...

    @property
    def full_name(self) -> str: ...

    @property
    def pretty_name(self) -> str: ...


@dataclasses.dataclass(frozen=True, slots=True)
class EvaluationContext:
    """Per-apply state threaded through function calls."""

    repository: RepositoryInfo | None = None
    depth: int = 0

    def nested(self) -> EvaluationContext:
        """Return the context for one more level of nested transformation."""
        return dataclasses.replace(self, depth=self.depth + 1)


@dataclasses.dataclass(frozen=True, slots=True)
class _RegisteredFunction:
    function: TemplateFunction
    signature: inspect.Signature
    contextual: bool


def is_truthy(value: object) -> bool:
    """Apply template truthiness: null, false, zero and empties are false."""
    match value:
        case None | False:
            return False
        case int() | float():
            return value != 0
        case str() | list() | dict() | tuple():
            return len(value) > 0
        case _:
            return True


class FunctionRegistry:
    """Named functions callable from templates."""

    def __init__(self) -> None:
        """Start with the comparison and logic builtins."""
        self._functions: dict[str, _RegisteredFunction] = dict(_BUILTINS)

    def register(
        self,
        name: str,
        function: TemplateFunction,
        *,
        contextual: bool = False,
    ) -> None:
        """Register ``function`` under ``name``, replacing any previous entry."""
        self._functions[name] = _RegisteredFunction(
            function=function,
            signature=inspect.signature(function),
            contextual=contextual,
        )

    def function(
        self, name: str | None = None, *, contextual: bool = False
    ) -> cabc.Callable[[TemplateFunction], TemplateFunction]:
        """Decorator form of :meth:`register`."""

        def _inner(func: TemplateFunction) -> TemplateFunction:
            self.register(name or func.__name__, func, contextual=contextual)
            return func

        return _inner

    def __contains__(self, name: object) -> bool:
        """Return True when ``name`` is registered."""
        return name in self._functions

    def names(self) -> frozenset[str]:
        """Return every registered function name."""
        return frozenset(self._functions)

    def copy(self) -> FunctionRegistry:
        """Return an independent registry with the same functions."""
        clone = FunctionRegistry()
        clone._functions = dict(self._functions)
        return clone

    async def call(
        self,
        name: str,
        context: EvaluationContext,
        args: cabc.Sequence[object],
    ) -> object:
        """Invoke ``name`` with ``args`` and await the result when needed.

        Raises
        ------
        UnknownFunctionError
            If ``name`` is not registered.
        TemplateEvaluationError
            If ``args`` do not fit the function's signature, or a builtin
            rejects its operands.

        """
        entry = self._functions.get(name)
        if entry is None:
            raise UnknownFunctionError.named(name)
        call_args = (context, *args) if entry.contextual else tuple(args)
        try:
            entry.signature.bind(*call_args)
        except TypeError as exc:
            raise TemplateEvaluationError.wrong_arguments(name, exc) from exc
        result = entry.function(*call_args)
        if inspect.isawaitable(result):
            result = await result
        return result


_BUILTINS: dict[str, _RegisteredFunction] = {}


def _builtin(
    name: str,
) -> cabc.Callable[[TemplateFunction], TemplateFunction]:
    def _inner(func: TemplateFunction) -> TemplateFunction:
        _BUILTINS[name] = _RegisteredFunction(
            function=func,
            signature=inspect.signature(func),
            contextual=False,
        )
        return func

    return _inner


def _same_kind(lhs: object, rhs: object) -> bool:
    if isinstance(lhs, bool) or isinstance(rhs, bool):
        return isinstance(lhs, bool) and isinstance(rhs, bool)
    numbers = (int, float)
    if isinstance(lhs, numbers) and isinstance(rhs, numbers):
        return True
    return type(lhs) is type(rhs)


def _equal(lhs: object, rhs: object) -> bool:
    if lhs is None or rhs is None:
        return lhs is rhs
    return _same_kind(lhs, rhs) and lhs == rhs


def _ordered(name: str, lhs: object, rhs: object) -> tuple[typ.Any, typ.Any]:
    comparable = (
        isinstance(lhs, (int, float, str))
        and not isinstance(lhs, bool)
        and _same_kind(lhs, rhs)
    )
    if not comparable:
        msg = (
            f"{name}: incompatible types for comparison: "
            f"{type(lhs).__name__} and {type(rhs).__name__}"
        )
        raise TemplateEvaluationError(msg)
    return lhs, rhs


@_builtin("not")
def _not(value: object) -> bool:
    return not is_truthy(value)


@_builtin("and")
def _and(first: object, *rest: object) -> object:
    for value in (first, *rest):
        if not is_truthy(value):
            return value
    return rest[-1] if rest else first


@_builtin("or")
def _or(first: object, *rest: object) -> object:
    for value in (first, *rest):
        if is_truthy(value):
            return value
    return rest[-1] if rest else first


@_builtin("eq")
def _eq(lhs: object, first: object, *rest: object) -> bool:
    return any(_equal(lhs, rhs) for rhs in (first, *rest))


@_builtin("ne")
def _ne(lhs: object, rhs: object) -> bool:
    return not _equal(lhs, rhs)


@_builtin("lt")
def _lt(lhs: object, rhs: object) -> bool:
    left, right = _ordered("lt", lhs, rhs)
    return left < right


@_builtin("le")
def _le(lhs: object, rhs: object) -> bool:
    left, right = _ordered("le", lhs, rhs)
    return left <= right


@_builtin("gt")
def _gt(lhs: object, rhs: object) -> bool:
    left, right = _ordered("gt", lhs, rhs)
    return left > right


@_builtin("ge")
def _ge(lhs: object, rhs: object) -> bool:
    left, right = _ordered("ge", lhs, rhs)
    return left >= right


@_builtin("len")
def _len(value: object) -> int:
    if isinstance(value, (str, list, dict)):
        return len(value)
    msg = f"len of {type(value).__name__}"
    raise TemplateEvaluationError(msg)


@_builtin("index")
def _index(value: object, *keys: object) -> object:
    for key in keys:
        match value, key:
            case dict(), str():
                value = value.get(key)
            case list(), int() if not isinstance(key, bool):
                if not 0 <= key < len(value):
                    msg = f"index out of range: {key}"
                    raise TemplateEvaluationError(msg)
                value = value[key]
            case None, _:
                return None
            case _:
                msg = f"can't index {type(value).__name__} with {key!r}"
                raise TemplateEvaluationError(msg)
    return value


BUILTIN_FUNCTION_NAMES: typ.Final = frozenset(_BUILTINS)
