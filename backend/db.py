"""
Database engine and session management (SQLAlchemy 2.0+).
Sync records, data imports and user tables all live in the same Postgres database.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
import os

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql://postgres:postgres@db:5432/postgres")

engine = create_engine(DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)

def get_db():
    """Yield a DB session and close it after use (FastAPI dependency style)"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
