from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from deals_pipeline.config import settings

SQLALCHEMY_DATABASE_URL = settings.database_url

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {},
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    # Import models here to create tables
    from deals_pipeline.models import Booking  # noqa: F401
    Base.metadata.create_all(bind=engine)
