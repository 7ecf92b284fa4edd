"""Errors raised while compiling or applying transformations."""

from __future__ import annotations


class TransformationError(Exception):
    """Base class for transformation failures."""


class TemplateSyntaxError(TransformationError):
    """Raised when a template source cannot be parsed."""

    def __init__(
        self,
        message: str,
        *,
        position: int | None = None,
        field: str | None = None,
    ) -> None:
        """Record where in the template, and in which field, parsing failed."""
        self.message = message
        self.position = position
        self.field = field
        super().__init__(self._render())

    def _render(self) -> str:
        location = f" at offset {self.position}" if self.position is not None else ""
        prefix = f"field {self.field!r}: " if self.field else ""
        return f"{prefix}template syntax error{location}: {self.message}"

    def for_field(self, field: str) -> TemplateSyntaxError:
        """Return a copy of this error attributed to ``field``."""
        return TemplateSyntaxError(self.message, position=self.position, field=field)


class TemplateEvaluationError(TransformationError):
    """Raised when a template fails while producing a value."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        """Record the failing output field when known."""
        self.message = message
        self.field = field
        prefix = f"field {field!r}: " if field else ""
        super().__init__(f"{prefix}{message}")

    def for_field(self, field: str) -> TemplateEvaluationError:
        """Return a copy of this error attributed to ``field``."""
        if self.field is not None:
            return self
        return TemplateEvaluationError(self.message, field=field)

    @classmethod
    def wrong_arguments(cls, name: str, detail: object) -> TemplateEvaluationError:
        """Create an error for a function called with unusable arguments."""
        return cls(f"wrong arguments for {name}: {detail}")

    @classmethod
    def not_a_function(cls) -> TemplateEvaluationError:
        """Create an error for arguments given to a plain value."""
        return cls("can't give argument to non-function")

    @classmethod
    def cannot_range(cls, value: object) -> TemplateEvaluationError:
        """Create an error for ``range`` over a non-iterable value."""
        return cls(f"range can't iterate over {type(value).__name__}")


class UnknownFunctionError(TransformationError):
    """Raised when a template calls a function that is not registered."""

    @classmethod
    def named(cls, name: str, *, field: str | None = None) -> UnknownFunctionError:
        """Create an error naming the missing function and the calling field."""
        suffix = f" in field {field!r}" if field else ""
        return cls(f"function {name!r} not defined{suffix}")


class UnknownTransformationError(TransformationError):
    """Raised when ``apply_transformation`` names a missing transformation."""

    @classmethod
    def named(cls, name: object) -> UnknownTransformationError:
        """Create an error naming the missing transformation."""
        return cls(f"unknown transformation {name!r}")


class TransformationRecursionError(TransformationError):
    """Raised when nested transformation calls exceed the depth limit."""

    @classmethod
    def too_deep(cls, name: str, limit: int) -> TransformationRecursionError:
        """Create an error for a nesting chain deeper than ``limit``."""
        return cls(
            f"applying transformation {name!r} exceeds the nesting limit of {limit}"
        )


class UserFunctionError(TransformationError):
    """Raised when an external user function fails or prints invalid JSON."""

    def __init__(self, message: str, *, name: str) -> None:
        """Record the configured function name."""
        super().__init__(f"user function {name!r}: {message}")
        self.name = name

    @classmethod
    def exited(cls, name: str, code: int, stderr: str) -> UserFunctionError:
        """Create an error for a nonzero exit status."""
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        return cls(f"exited with status {code}{detail}", name=name)

    @classmethod
    def not_started(cls, name: str, detail: object) -> UserFunctionError:
        """Create an error for an executable that could not be launched."""
        return cls(f"failed to start: {detail}", name=name)

    @classmethod
    def invalid_output(cls, name: str, detail: object) -> UserFunctionError:
        """Create an error for stdout that is not JSON."""
        return cls(f"invalid JSON output: {detail}", name=name)
