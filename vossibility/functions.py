"""Collector template functions: context, dates, users and user executables.

Builtins are registered first so operator-configured executables can
replace them; ``apply_transformation`` is bound later, when transformations
are compiled, and always wins.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import os
import typing as typ

import msgspec

from vossibility.common.time import parse_rfc3339
from vossibility.storage.users import lookup_user
from vossibility.transformation import FunctionRegistry, UserFunctionError

if typ.TYPE_CHECKING:
    from vossibility.storage.users import UserStore
    from vossibility.transformation import EvaluationContext

ELASTICSEARCH_ENV = "ELASTICSEARCH"
_SECONDS_PER_DAY = 86400.0


def context_record(context: EvaluationContext) -> dict[str, typ.Any]:
    """Describe the repository whose event is being transformed."""
    repository = context.repository
    if repository is None:
        return {"repository": None}
    return {
        "repository": {
            "given_name": repository.given_name,
            "full_name": repository.full_name,
            "pretty_name": repository.pretty_name,
            "user": repository.user,
            "repo": repository.repo,
        }
    }


def days_difference(lhs: object, rhs: object) -> float | None:
    """Return ``lhs - rhs`` in days, or None if either is not a timestamp."""
    if not isinstance(lhs, str) or not isinstance(rhs, str):
        return None
    try:
        delta = parse_rfc3339(lhs) - parse_rfc3339(rhs)
    except ValueError:
        return None
    return delta.total_seconds() / _SECONDS_PER_DAY


def user_data_function(
    store: UserStore,
) -> cabc.Callable[[object], cabc.Awaitable[dict[str, typ.Any]]]:
    """Build ``user_data``, which never fails for a missing profile."""

    async def user_data(login: object) -> dict[str, typ.Any]:
        if not isinstance(login, str) or not login:
            return {"login": login}
        user = await lookup_user(store, login)
        return user.to_document()

    return user_data


def _argument(value: object) -> str:
    if isinstance(value, str):
        return value
    return msgspec.json.encode(value).decode()


def user_function(
    name: str, executable: str, *, elasticsearch_url: str
) -> cabc.Callable[..., cabc.Awaitable[object]]:
    """Build a function that runs ``executable`` and decodes its JSON stdout.

    Arguments are passed on the command line; strings verbatim, other values
    JSON-encoded. The child inherits the environment plus ``ELASTICSEARCH``.
    """

    async def run(*args: object) -> object:
        env = {**os.environ, ELASTICSEARCH_ENV: elasticsearch_url}
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *(_argument(arg) for arg in args),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            raise UserFunctionError.not_started(name, exc) from exc
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise UserFunctionError.exited(
                name, process.returncode or 0, stderr.decode(errors="replace")
            )
        try:
            return msgspec.json.decode(stdout)
        except msgspec.DecodeError as exc:
            raise UserFunctionError.invalid_output(name, exc) from exc

    return run


def build_function_registry(
    *,
    users: UserStore,
    executables: cabc.Mapping[str, str],
    elasticsearch_url: str,
) -> FunctionRegistry:
    """Return the registry shared by every transformation of one load."""
    registry = FunctionRegistry()
    registry.register("context", context_record, contextual=True)
    registry.register("days_difference", days_difference)
    registry.register("user_data", user_data_function(users))
    for name, executable in executables.items():
        registry.register(
            name,
            user_function(name, executable, elasticsearch_url=elasticsearch_url),
        )
    return registry
