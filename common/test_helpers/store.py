# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from typing import Callable

from common.db.document_store import DocumentStore, StoredDocument


class RacingDocumentStore(DocumentStore):
    """
    Wraps a store to lose compare-and-set races on purpose.

    `competing_write` runs once, right before the first `replace` reaches the wrapped store,
    as if another request committed in between the read and the write of a ledger.
    With `always_lose` every `replace` reports a conflict.
    """

    def __init__(self, store: DocumentStore, competing_write: Callable[[], object] | None = None, always_lose: bool = False) -> None:
        self._store = store
        self._competing_write = competing_write
        self._always_lose = always_lose
        self.replace_calls = 0

    def get(self, collection: str, id: str) -> StoredDocument | None:
        return self._store.get(collection, id)

    def create(self, collection: str, id: str, body: dict) -> StoredDocument:
        return self._store.create(collection, id, body)

    def replace(self, collection: str, id: str, body: dict, expected_version: int) -> StoredDocument | None:
        self.replace_calls += 1
        if self._always_lose:
            return None
        if self._competing_write:
            competing_write, self._competing_write = self._competing_write, None
            competing_write()
        return self._store.replace(collection, id, body, expected_version)

    def find(self, collection: str, where: dict[str, str | int | bool] | None = None, limit: int | None = None, offset: int = 0) -> list[StoredDocument]:
        return self._store.find(collection, where, limit, offset)
