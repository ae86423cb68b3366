"""Database layer - engine, base classes, column types."""

from coin_kernel.db.base import UUID, Base, UTCDateTime, UUIDString
from coin_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from coin_kernel.db.types import CoinAmount, round_coins

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "UTCDateTime",
    "UUIDString",
    "UUID",
    "CoinAmount",
    "round_coins",
]
