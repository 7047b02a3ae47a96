# dynforms/db/session.py
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from dynforms.core.config import get_settings

settings = get_settings()


def _connect_args(url: str) -> dict:
    # Solo PostgreSQL entiende "options"; SQLite (tests/local) no
    if url.startswith("postgresql"):
        return {"options": "-c client_encoding=UTF8"}
    return {}


# Engine
engine = create_engine(
    settings.database_url,
    poolclass=NullPool,     # evita conexiones colgadas entre requests
    echo=settings.sql_echo,
    future=True,
    connect_args=_connect_args(settings.database_url),
)

# Sesión
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def get_db():
    """Dependency para FastAPI."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_connection() -> bool:
    """Para /db/ping."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
