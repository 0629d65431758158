"""Connection plumbing for the read-side services."""

from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from functools import partial
from pathlib import Path
from typing import Callable, TypeVar

from cellarsync.infrastructure.db import get_connection
from cellarsync.infrastructure.observability import get_logger

ConnectionFactory = Callable[[], AbstractContextManager[sqlite3.Connection]]
T = TypeVar("T")
S = TypeVar("S", bound="BaseService")


class BaseService:
    """A service opens a short-lived connection per call.

    The API and the CLI build services with :meth:`from_sqlite_path`; tests
    may pass any factory returning a connection context manager. The
    repositories create missing tables themselves, so an empty database file
    reads as an empty store.
    """

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        self._connection_factory = connection_factory
        self._logger = get_logger(type(self).__module__)

    @classmethod
    def from_sqlite_path(cls: type[S], db_path: str | Path) -> S:
        return cls(partial(get_connection, db_path))

    def _with_connection(self, work: Callable[[sqlite3.Connection], T]) -> T:
        with self._connection_factory() as conn:
            return work(conn)
