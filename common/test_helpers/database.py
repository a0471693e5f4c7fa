# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""In memory sqlite database standing in for postgres in unit tests."""

import typing

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import common.db.postgres as db
from common.db import document_store  # noqa:F401 registers the document table


def sqlite_session_local() -> sessionmaker:
    """Session factory of a fresh, empty database. All sessions share the one connection."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    db.Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)


def sqlite_session_override() -> typing.Callable[[], typing.Generator[Session, None, None]]:
    """
    Override function for `common.db.postgres.env_session`, e.g.
    `app.dependency_overrides[db.env_session] = sqlite_session_override()`
    """
    session_local = sqlite_session_local()

    def t_session() -> typing.Generator[Session, None, None]:
        session = session_local()
        try:
            yield session
        finally:
            session.close()

    return t_session
