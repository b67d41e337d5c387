"""Persistence for report history and report designs."""

from reporting_engine.state.base import TERMINAL_STATUSES, ReportDesignStore, ReportHistoryStore
from reporting_engine.state.database import create_tables, get_engine, get_session_factory, session_scope
from reporting_engine.state.memory import InMemoryDesignStore, InMemoryHistoryStore
from reporting_engine.state.repository import SqlDesignStore, SqlHistoryStore

__all__ = [
    "TERMINAL_STATUSES",
    "InMemoryDesignStore",
    "InMemoryHistoryStore",
    "ReportDesignStore",
    "ReportHistoryStore",
    "SqlDesignStore",
    "SqlHistoryStore",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
