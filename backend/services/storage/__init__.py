"""Persistence for subjects, jobs, skills, catalog and vocabulary."""

from services.storage.database import create_db_engine, get_engine, init_db, reset_engine
from services.storage.repository import Store

__all__ = ["Store", "create_db_engine", "get_engine", "init_db", "reset_engine"]
