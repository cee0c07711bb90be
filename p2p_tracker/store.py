"""Persistence layer for portfolio state.

This module abstracts persistence so the CLI and the web app can keep whole
portfolios in a database. Each portfolio is stored as a single JSON document
under a key (``"default"`` for the CLI, a per-session token for the web app).
It defaults to SQLite for local use, but accepts any SQLAlchemy-compatible URL
(e.g. PostgreSQL/MySQL).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from . import config
from .data_models import Portfolio
from .exceptions import StoreError, ValidationError
from .serialization import dumps, loads

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_KEY = "default"


class PortfolioStateModel(Base):
    __tablename__ = "portfolio_state"

    key = Column(String(64), primary_key=True)
    payload_json = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class PortfolioStore:
    """Database-backed key-value store of serialized portfolios."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def load(self, key: str = DEFAULT_KEY) -> Portfolio:
        """Return the portfolio stored under ``key``, or an empty one."""
        try:
            with self._session_factory() as session:
                row = session.get(PortfolioStateModel, key)
                payload = row.payload_json if row else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not load portfolio '{key}'", {"error": str(exc)}) from exc
        if payload is None:
            logger.debug("No stored portfolio for %r; starting empty", key)
            return Portfolio()
        try:
            return loads(payload)
        except ValidationError as exc:
            raise StoreError(f"Stored portfolio '{key}' is corrupt", {"error": exc.message}) from exc

    def save(self, portfolio: Portfolio, key: str = DEFAULT_KEY) -> None:
        """Replace whatever is stored under ``key`` with ``portfolio``."""
        payload = dumps(portfolio)
        try:
            with self._session_factory() as session:
                row = session.get(PortfolioStateModel, key)
                if row is None:
                    session.add(PortfolioStateModel(key=key, payload_json=payload))
                else:
                    row.payload_json = payload
                    row.updated_at = datetime.utcnow()
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not save portfolio '{key}'", {"error": str(exc)}) from exc
        logger.debug("Saved portfolio %r (%d platforms)", key, len(portfolio.platforms))

    def delete(self, key: str = DEFAULT_KEY) -> None:
        try:
            with self._session_factory() as session:
                row = session.get(PortfolioStateModel, key)
                if row:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not delete portfolio '{key}'", {"error": str(exc)}) from exc


def create_store_from_env(url: Optional[str] = None) -> PortfolioStore:
    return PortfolioStore(url or config.database_url())
