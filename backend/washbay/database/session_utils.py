"""
Helpers for working with SQLAlchemy sessions in a dialect-agnostic way.
"""

from __future__ import annotations

from sqlalchemy.orm import Session


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """
    Return the SQLAlchemy dialect name of the engine bound to ``session``.

    Falls back to ``default`` when the bound engine cannot be resolved.
    """
    bind = session.get_bind()
    dialect = getattr(bind, "dialect", None)
    name = getattr(dialect, "name", None)
    return name or default


def is_postgres(session: Session) -> bool:
    return get_dialect_name(session) == "postgresql"
