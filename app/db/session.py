import json

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.utils.logger import db_logger


def json_serializer(value) -> str:
    # Non-ASCII stays unescaped so tag search can match Hangul
    return json.dumps(value, ensure_ascii=False)


db_url = settings.database_url

db_logger.info("Configuring database engine", "CONFIG",
               environment=settings.ENVIRONMENT,
               source="LOCAL_DATABASE_URL" if settings.ENVIRONMENT == "development" else "DATABASE_URL")

engine = create_engine(
    db_url,
    pool_pre_ping=True,
    echo=settings.DB_ECHO,
    json_serializer=json_serializer,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Dependency for database session.

    Yields:
        Session: Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
