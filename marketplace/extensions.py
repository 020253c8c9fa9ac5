"""Shared Flask extensions and the transaction scope used by the services."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PersistenceError

# SQLAlchemy database instance shared across the app.
db = SQLAlchemy()


@contextmanager
def transaction() -> Iterator[Session]:
    """Run a unit of work on the request session.

    Commits when the block exits cleanly and rolls back on every other exit
    path. Driver and ORM failures are reported as ``PersistenceError``; any
    other exception (domain failures included) propagates unchanged after the
    rollback.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise PersistenceError("the database rejected the operation") from exc
    except BaseException:
        session.rollback()
        raise
