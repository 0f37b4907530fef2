from contextlib import contextmanager

from tracker.db.session import SessionLocal


@contextmanager
def get_db_session():
    """Session for scripts and worker jobs; rolls back on error."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
