"""
Database package for the reference payment store.

Exports database initialization, models, and the SQLAlchemy store.
"""
from .init_db import initialize_database, get_db, create_db_engine, SessionLocal
from .models import (
    Base,
    PaymentModel,
    PaymentNoteModel,
    AccessTokenModel
)
from .store import SqlPayment, SqlPaymentStore

__all__ = [
    "initialize_database",
    "get_db",
    "create_db_engine",
    "SessionLocal",
    "Base",
    "PaymentModel",
    "PaymentNoteModel",
    "AccessTokenModel",
    "SqlPayment",
    "SqlPaymentStore",
]
