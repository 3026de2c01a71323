# apps/backend/app/db.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from app.core.config import settings

DATABASE_URL = settings.database_url.strip()

if not DATABASE_URL:
  # nothing can be stored without a database
  raise RuntimeError("DATABASE_URL is not set")

if DATABASE_URL.startswith("sqlite"):
  # background counter updates write from worker threads
  engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
else:
  engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
  )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
  db = SessionLocal()
  try:
    yield db
  finally:
    db.close()
