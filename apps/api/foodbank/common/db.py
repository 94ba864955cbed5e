from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session

from foodbank.core.config import settings

engine = create_engine(settings.postgres_url, pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

# Session.info key for a per-session override of the statement timeout
STATEMENT_TIMEOUT_KEY = "statement_timeout_seconds"


def _is_postgresql_connection(connection) -> bool:
    """Check if the connection is to PostgreSQL."""
    try:
        return connection.dialect.name == "postgresql"
    except (AttributeError, TypeError):
        return False


@event.listens_for(Session, "after_begin")
def set_statement_timeout(session, transaction, connection):  # noqa: ARG001
    """
    Bound every statement of the new transaction with a server-side timeout.

    A session can override the configured default through
    ``session.info[STATEMENT_TIMEOUT_KEY]``; a falsy value disables it.

    Note:
        This is a no-op for non-PostgreSQL databases (e.g., SQLite).
    """
    if not _is_postgresql_connection(connection):
        return

    timeout = session.info.get(STATEMENT_TIMEOUT_KEY, settings.storage_timeout_seconds)
    if not timeout:
        return

    connection.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
