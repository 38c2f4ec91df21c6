# database.py
"""
SQLAlchemy database connection and session management.

This module provides:
- Database engine configuration (Azure SQL by default, any SQLAlchemy URL via DATABASE_URL)
- Session factory shared by the ledger store
- Connection utilities

Usage:
     from database import SessionLocal, engine
     from services.ledger_store import LedgerStore

     store = LedgerStore(SessionLocal)
"""
import logging
import os

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool

from config import build_database_url

logger = logging.getLogger(__name__)

DATABASE_URL = build_database_url()


def create_db_engine(url: str = DATABASE_URL) -> Engine:
     """
     Create the SQLAlchemy engine for a database URL.

     SQLite URLs get thread-shareable connections so the ledger can be
     exercised from several worker threads in development and tests.
     """
     echo = os.getenv("SQL_ECHO", "false").lower() == "true"  # Log SQL if SQL_ECHO=true
     if url.startswith("sqlite"):
          return create_engine(
               url,
               echo=echo,
               connect_args={"check_same_thread": False, "timeout": 30},
          )
     return create_engine(
          url,
          poolclass=QueuePool,
          pool_size=5,
          max_overflow=10,
          pool_timeout=30,
          pool_recycle=1800,  # Recycle connections after 30 minutes
          pool_pre_ping=True,
          echo=echo,
     )


def create_session_factory(bind: Engine) -> sessionmaker:
     """Session factory configured the way the ledger store expects."""
     return sessionmaker(
          bind=bind,
          autocommit=False,
          autoflush=False,
          expire_on_commit=False,
     )


# Create SQLAlchemy engine
engine = create_db_engine()

# Session factory
SessionLocal = create_session_factory(engine)


def check_connection(bind: Engine = engine) -> bool:
     """
     Test database connectivity.

     Returns:
          bool: True if connection successful, False otherwise
     """
     try:
          with bind.connect() as conn:
               conn.execute(text("SELECT 1"))
          return True
     except SQLAlchemyError as e:
          logger.error("Database connection failed: %s", e)
          return False
