"""Durable collections of users, folders and files.

Each collection lives in its own table and is always read and written as a
whole. A save replaces the table contents inside one transaction, so readers
never observe a half-written collection. Read-modify-write sequences must go
through :meth:`MetadataStore.mutate`, which serializes writers per collection.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import delete, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from filevault.core.errors import StorageIOError
from filevault.models.database import Base, make_session_factory
from filevault.models.file import FileMeta
from filevault.models.folder import Folder
from filevault.models.user import User

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "users": User,
    "folders": Folder,
    "files": FileMeta,
}


def _as_row(model, record, position: int) -> dict:
    row = {column.name: getattr(record, column.name) for column in model.__table__.columns}
    row["position"] = position
    return row


class MetadataStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = make_session_factory(engine)
        self._locks = {name: threading.RLock() for name in COLLECTIONS}
        try:
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as e:
            raise StorageIOError(f"Cannot initialize metadata store: {e}") from e

    def lock(self, name: str) -> threading.RLock:
        """Return the writer lock of a collection."""
        return self._locks[name]

    def load_collection(self, name: str) -> list:
        """Return all records of a collection in saved order (empty if none were saved)."""
        model = COLLECTIONS[name]
        try:
            with self.session_factory() as session:
                records = list(session.scalars(select(model).order_by(model.position)))
                session.expunge_all()
        except SQLAlchemyError as e:
            logger.exception("Error reading collection %s", name)
            raise StorageIOError(f"Cannot read collection {name}") from e
        return records

    def save_collection(self, name: str, records: list) -> None:
        """Replace the whole collection with ``records``, atomically."""
        model = COLLECTIONS[name]
        rows = [_as_row(model, record, i) for i, record in enumerate(records)]
        try:
            with self.session_factory() as session, session.begin():
                session.execute(delete(model))
                if rows:
                    session.execute(insert(model), rows)
        except SQLAlchemyError as e:
            logger.exception("Error writing collection %s", name)
            raise StorageIOError(f"Cannot write collection {name}") from e
        logger.debug("Saved %d records to %s", len(rows), name)

    @contextmanager
    def mutate(self, name: str) -> Iterator[list]:
        """Load a collection under its lock and save it back when the block succeeds.

        The yielded list may be changed in place. If the block raises, nothing
        is written.
        """
        with self._locks[name]:
            records = self.load_collection(name)
            yield records
            self.save_collection(name, records)
