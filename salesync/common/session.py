"""
Transactions for the SQL datastore.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


logger = logging.getLogger(__name__)


class SessionManager:
    """
    Hands out one SQLAlchemy session per transaction.

    The header insert and the row insert each open their own scope, so a
    failure in the second one cannot undo the first.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        # Generated ids stay readable after commit
        self._factory = sessionmaker(bind=engine, expire_on_commit=False)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Yield a session; commit when the block finishes, roll back if it raises.

        Example:
            with session_manager.session_scope() as session:
                session.add(ReportHeader(company_name='Acme'))
        """
        session = self._factory()
        try:
            yield session
            session.commit()
        except Exception:
            logger.warning(f"Rolling back transaction on {self.engine.url.render_as_string(hide_password=True)}")
            session.rollback()
            raise
        finally:
            session.close()
