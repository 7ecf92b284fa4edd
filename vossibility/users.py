"""Loading and indexing of the user profile file used by ``sync-users``."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ
from pathlib import Path

import msgspec
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from vossibility.logging import get_logger, log_error, log_info
from vossibility.storage.errors import ElasticsearchError
from vossibility.storage.users import UserData

if typ.TYPE_CHECKING:
    from vossibility.storage.users import UserStore

logger = get_logger(__name__)

DEFAULT_USERS_PATH = "users.yaml"
YAML_VERSION = (1, 2)


class UserFileError(ValueError):
    """Raised when a users file cannot be read or does not match the schema."""


class _UserEntry(msgspec.Struct, kw_only=True, forbid_unknown_fields=True):
    company: str = ""
    is_maintainer: bool = False


def load_users(path: Path | str) -> list[UserData]:
    """Parse a YAML mapping of login to ``{company, is_maintainer}``.

    Raises
    ------
    UserFileError
        If the file cannot be read, is not YAML, or has unknown fields.

    """
    yaml = YAML(typ="safe")
    yaml.version = YAML_VERSION
    yaml.allow_duplicate_keys = False
    try:
        loaded = yaml.load(Path(path).read_text(encoding="utf-8"))
    except (OSError, YAMLError) as exc:
        msg = f"failed to read users file {path}: {exc}"
        raise UserFileError(msg) from exc
    if loaded is None:
        return []
    try:
        entries = msgspec.convert(loaded, type=dict[str, _UserEntry])
    except msgspec.ValidationError as exc:
        msg = f"invalid users file {path}: {exc}"
        raise UserFileError(msg) from exc
    return [
        UserData(login=login, company=entry.company, is_maintainer=entry.is_maintainer)
        for login, entry in entries.items()
    ]


@dataclasses.dataclass(slots=True)
class UserSyncResult:
    """Outcome of indexing a users file."""

    saved: list[str] = dataclasses.field(default_factory=list)
    failed: list[str] = dataclasses.field(default_factory=list)


async def sync_users(
    store: UserStore, users: cabc.Iterable[UserData]
) -> UserSyncResult:
    """Index every record; a failed record is logged and the rest proceed."""
    result = UserSyncResult()
    for user in users:
        try:
            await store.put(user)
        except ElasticsearchError as exc:
            log_error(logger, "indexing data for %r: %s", user.login, exc)
            result.failed.append(user.login)
        else:
            log_info(logger, "saved data for %r", user.login)
            result.saved.append(user.login)
    return result
