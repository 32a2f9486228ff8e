"""
SQLAlchemy ORM Models for the reference payment store

Payments, their audit notes, and the persisted access token.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentModel(Base):
    """
    ORM model for payments table.

    `slug` is `<prefix>-<processor order id>`, set when the order is announced.
    """
    __tablename__ = "payments"

    id = Column(String, primary_key=True)
    slug = Column(String, unique=True, index=True)
    transaction_id = Column(String, index=True)
    status = Column(String, nullable=False, default="open")
    amount = Column(Integer, nullable=False)
    currency = Column(String, nullable=False, default="EUR")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    notes = relationship("PaymentNoteModel", order_by="PaymentNoteModel.id", back_populates="payment")

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'success', 'cancelled', 'expired', 'failure')",
            name="payment_status_check"
        ),
    )


class PaymentNoteModel(Base):
    """
    ORM model for payment_notes table.

    Append-only audit trail of processor payloads and return attempts.
    """
    __tablename__ = "payment_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(String, ForeignKey("payments.id"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    payment = relationship("PaymentModel", back_populates="notes")


class AccessTokenModel(Base):
    """
    ORM model for access_tokens table.

    One row per processor environment, replaced on every refresh.
    """
    __tablename__ = "access_tokens"

    environment = Column(String, primary_key=True)
    token = Column(String, nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
