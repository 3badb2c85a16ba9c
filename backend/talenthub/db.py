from __future__ import annotations
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./talenthub.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_connection, connection_record):
	# Responses must point at an existing session and student
	if type(dbapi_connection).__module__.startswith("sqlite3"):
		cursor = dbapi_connection.cursor()
		cursor.execute("PRAGMA foreign_keys=ON")
		cursor.close()


def init_db(bind: Engine | None = None) -> None:
	from . import models  # noqa: F401  registers tables on Base.metadata

	Base.metadata.create_all(bind=bind or engine)


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()
