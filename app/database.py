from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from config.config import Config
from app.models.base import Base

# Create database engine. SQLite waits on its busy handler while another
# connection holds the write lock, which conditional updates rely on.
engine = create_engine(
    Config.DATABASE_URL,
    connect_args={'check_same_thread': False, 'timeout': 30} if 'sqlite' in Config.DATABASE_URL else {}
)

# Instances stay readable after the session that loaded them closes
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db():
    """Initialize database, create all tables"""
    import app.models  # noqa: F401  registers every model on Base.metadata
    Base.metadata.create_all(bind=engine)


def drop_db():
    """Drop all tables"""
    Base.metadata.drop_all(bind=engine)


@contextmanager
def get_db():
    """Provide a transactional scope for database operations"""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


class DatabaseManager:
    """Creates records this subsystem does not own (users, applicant rows).

    Screening fields on Applicant must go through ScreeningStore instead.
    """

    def __init__(self, model_class):
        self.model_class = model_class

    def create(self, **kwargs):
        """Create a new record"""
        with get_db() as db:
            instance = self.model_class(**kwargs)
            db.add(instance)
            db.flush()
            db.refresh(instance)
            return instance
