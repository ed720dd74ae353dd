from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


@contextmanager
def smart_transaction(session: Session) -> Iterator[Session]:
    """
    Run a unit of slot writes atomically on `session`.

    Joins an already-open transaction through a SAVEPOINT, otherwise opens
    (and commits on exit) a fresh one. Any exception rolls the unit back and
    propagates.
    """
    cm = session.begin_nested() if session.in_transaction() else session.begin()
    with cm:
        yield session
