# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Document storage for claims and verification sessions.

Documents are json bodies grouped in collections. Every document carries a version
which is incremented on each write. Writes are compare-and-set on that version, so
two requests racing on the same document can not overwrite each other silently.
"""

import copy
import datetime
import logging
from abc import ABC, abstractmethod
from typing import Annotated

from fastapi import Depends
from pydantic import BaseModel
from sqlalchemy import DateTime, Integer, String, JSON, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, mapped_column, Session

import common.db.postgres as db

_logger = logging.getLogger(__name__)


class Document(db.Base):
    __tablename__ = "document"
    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    body: Mapped[dict] = mapped_column(JSON, nullable=False)


class StoredDocument(BaseModel):
    id: str
    version: int
    body: dict


class DocumentConflictError(Exception):
    """A document with the same id already exists in the collection."""


class DocumentStore(ABC):
    """Key value / document CRUD interface used by the ledgers."""

    @abstractmethod
    def get(self, collection: str, id: str) -> StoredDocument | None:
        """Fresh read of the document, None if it does not exist."""

    @abstractmethod
    def create(self, collection: str, id: str, body: dict) -> StoredDocument:
        """Stores a new document with version 1. Raises `DocumentConflictError` if the id is taken."""

    @abstractmethod
    def replace(self, collection: str, id: str, body: dict, expected_version: int) -> StoredDocument | None:
        """Replaces the body if the stored version still is `expected_version`. None if another write came first."""

    @abstractmethod
    def find(self, collection: str, where: dict[str, str | int | bool] | None = None, limit: int | None = None, offset: int = 0) -> list[StoredDocument]:
        """Documents whose top level fields equal all values of `where`, newest first."""


def _to_stored(document: Document) -> StoredDocument:
    return StoredDocument(id=document.id, version=document.version, body=copy.deepcopy(document.body))


def _field_condition(field: str, value: str | int | bool):
    element = Document.body[field]
    if isinstance(value, bool):
        return element.as_boolean() == value
    if isinstance(value, int):
        return element.as_integer() == value
    return element.as_string() == value


class SqlDocumentStore(DocumentStore):
    """`DocumentStore` on the `document` table of the configured sql database."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, collection: str, id: str) -> StoredDocument | None:
        document = self._session.scalars(
            select(Document).where(Document.collection == collection, Document.id == id).execution_options(populate_existing=True)
        ).one_or_none()
        return _to_stored(document) if document else None

    def create(self, collection: str, id: str, body: dict) -> StoredDocument:
        document = Document(
            collection=collection,
            id=id,
            version=1,
            created_at=datetime.datetime.now(tz=datetime.timezone.utc),
            body=body,
        )
        self._session.add(document)
        try:
            self._session.commit()
        except IntegrityError as e:
            self._session.rollback()
            raise DocumentConflictError(f"Document {collection}/{id} already exists") from e
        return StoredDocument(id=id, version=1, body=copy.deepcopy(body))

    def replace(self, collection: str, id: str, body: dict, expected_version: int) -> StoredDocument | None:
        result = self._session.execute(
            update(Document)
            .where(
                Document.collection == collection,
                Document.id == id,
                Document.version == expected_version,
            )
            .values(body=body, version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        self._session.commit()
        if result.rowcount != 1:
            _logger.info(f"Version conflict writing {collection}/{id} {expected_version=}")
            return None
        return StoredDocument(id=id, version=expected_version + 1, body=copy.deepcopy(body))

    def find(self, collection: str, where: dict[str, str | int | bool] | None = None, limit: int | None = None, offset: int = 0) -> list[StoredDocument]:
        statement = select(Document).where(Document.collection == collection)
        for field, value in (where or {}).items():
            statement = statement.where(_field_condition(field, value))
        statement = statement.order_by(Document.created_at.desc(), Document.id).offset(offset)
        if limit is not None:
            statement = statement.limit(limit)
        return [_to_stored(document) for document in self._session.scalars(statement.execution_options(populate_existing=True))]


def get_document_store(session: db.inject) -> DocumentStore:
    return SqlDocumentStore(session)


inject = Annotated[DocumentStore, Depends(get_document_store)]
