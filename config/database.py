import os
import logging
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool

# Configure logging
logger = logging.getLogger(__name__)

# =============================================================================
# Hosted PostgreSQL in production, local SQLite file when DATABASE_URL is unset
# =============================================================================
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./crystal.db")
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    # SQLite needs check_same_thread=False for FastAPI's threadpool
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=DB_ECHO,
        future=True
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    logger.info("Database mode: SQLite (local)")
else:
    engine = create_engine(
        DATABASE_URL,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=5,
        pool_timeout=30,
        pool_recycle=300,
        pool_pre_ping=True,
        connect_args={
            "connect_timeout": 10,
            "application_name": "crystal_api",
        },
        echo=DB_ECHO,
        pool_reset_on_return='rollback',
        isolation_level="READ_COMMITTED",
        future=True
    )
    logger.info("Database mode: PostgreSQL (pooled)")

# Create a session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Define a base class for the models
Base = declarative_base()


def get_db():
    """
    Database dependency: one session per request, rolled back on error and always closed
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        try:
            db.rollback()
        except Exception as rollback_error:
            logger.error(f"Error during rollback: {rollback_error}")
        raise
    finally:
        try:
            db.close()
        except Exception as close_error:
            logger.error(f"Error closing database session: {close_error}")


def test_db_connection() -> bool:
    """Test database connection - used by the health check"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection test failed: {e}")
        return False
