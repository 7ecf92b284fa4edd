"""Out-of-band user profile records."""

from __future__ import annotations

import logging
import typing as typ

import msgspec

from .errors import ElasticsearchError

if typ.TYPE_CHECKING:
    from .elasticsearch import ElasticsearchClient

logger = logging.getLogger(__name__)

USERS_INDEX = "users"


class UserData(msgspec.Struct, kw_only=True):
    """Profile data attached to a GitHub login.

    Attributes
    ----------
    login : str
        GitHub login as written by the operator.
    company : str
        Affiliation used to group contributors.
    is_maintainer : bool
        Whether the user maintains the tracked projects.

    """

    login: str
    company: str = ""
    is_maintainer: bool = False

    def to_document(self) -> dict[str, typ.Any]:
        """Return the record as a plain JSON object."""
        return msgspec.to_builtins(self)


def user_document_id(login: str) -> str:
    """Return the document id for ``login``; logins are case-insensitive."""
    return login.lower()


class UserStore(typ.Protocol):
    """Reads and writes :class:`UserData` records."""

    async def get(self, login: str) -> UserData | None:
        """Return the record for ``login``, or None when unknown."""
        ...

    async def put(self, user: UserData) -> None:
        """Create or overwrite the record for ``user.login``."""
        ...


class ElasticsearchUserStore:
    """:class:`UserStore` persisted in the ``users`` index."""

    def __init__(
        self, client: ElasticsearchClient, *, index: str = USERS_INDEX
    ) -> None:
        """Bind the store to a client and index name."""
        self._client = client
        self._index = index

    async def get(self, login: str) -> UserData | None:
        """Fetch the record for ``login``.

        Raises
        ------
        ElasticsearchError
            If the backend fails for a reason other than a missing document.
        msgspec.ValidationError
            If the stored source does not describe a user.

        """
        source = await self._client.get_source(self._index, user_document_id(login))
        if source is None:
            return None
        source.setdefault("login", login)
        return msgspec.convert(source, type=UserData)

    async def put(self, user: UserData) -> None:
        """Index ``user`` under its lowercased login."""
        await self._client.index_document(
            self._index, user_document_id(user.login), user.to_document()
        )


async def lookup_user(store: UserStore, login: str) -> UserData:
    """Return the best-effort record for ``login``.

    Missing records and lookup failures both yield a record carrying only
    the login; failures are logged.
    """
    try:
        user = await store.get(login)
    except (ElasticsearchError, msgspec.ValidationError) as exc:
        logger.warning("user lookup failed for %s: %s", login, exc)
        return UserData(login=login)
    return user if user is not None else UserData(login=login)
