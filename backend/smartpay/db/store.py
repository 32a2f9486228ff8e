"""
SQLAlchemy Payment Store

Reference implementation of the payment store interface.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.responses import AccessToken
from ..services.payment_store import PaymentStatus
from .models import AccessTokenModel, PaymentModel, PaymentNoteModel

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite drops the offset on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlPayment:
    """Payment record bound to a database session."""

    def __init__(self, session: Session, model: PaymentModel):
        self._session = session
        self._model = model

    @property
    def id(self) -> str:
        return self._model.id

    @property
    def slug(self) -> Optional[str]:
        return self._model.slug

    @property
    def status(self) -> Optional[PaymentStatus]:
        return PaymentStatus(self._model.status) if self._model.status else None

    @property
    def transaction_id(self) -> Optional[str]:
        return self._model.transaction_id

    @property
    def amount(self) -> int:
        return self._model.amount

    @property
    def currency(self) -> str:
        return self._model.currency

    @property
    def notes(self) -> List[str]:
        return [note.text for note in self._model.notes]

    def set_status(self, status: PaymentStatus) -> None:
        self._model.status = PaymentStatus(status).value

    def set_transaction_id(self, transaction_id: str) -> None:
        self._model.transaction_id = transaction_id

    def set_slug(self, slug: str) -> None:
        self._model.slug = slug

    def add_note(self, text: str) -> None:
        self._model.notes.append(PaymentNoteModel(payment_id=self._model.id, text=text))

    def save(self) -> None:
        self._session.commit()
        logger.debug(f"Saved payment {self._model.id}")


class SqlPaymentStore:
    """
    Payment lookups and access token persistence on one session.
    """

    def __init__(self, session: Session, environment: str = "sandbox"):
        self.session = session
        self.environment = environment

    def _one(self, statement) -> Optional[SqlPayment]:
        model = self.session.execute(statement).scalar_one_or_none()

        if model is None:
            return None

        return SqlPayment(self.session, model)

    # ========================================================================
    # Payment Lookup
    # ========================================================================

    def create_payment(self, payment_id: str, amount: int, currency: str = "EUR") -> SqlPayment:
        model = PaymentModel(id=payment_id, amount=amount, currency=currency, status=PaymentStatus.OPEN.value)
        self.session.add(model)
        self.session.commit()

        logger.info(f"Created payment {payment_id}: {amount} {currency}")

        return SqlPayment(self.session, model)

    def get_payment(self, payment_id: str) -> Optional[SqlPayment]:
        return self._one(select(PaymentModel).where(PaymentModel.id == payment_id))

    def find_payment_by_slug(self, slug: str) -> Optional[SqlPayment]:
        return self._one(select(PaymentModel).where(PaymentModel.slug == slug))

    def find_payment_by_transaction_id(self, transaction_id: str) -> Optional[SqlPayment]:
        return self._one(
            select(PaymentModel)
            .where(PaymentModel.transaction_id == transaction_id)
            .order_by(PaymentModel.created_at.desc())
            .limit(1)
        )

    # ========================================================================
    # Access Token Persistence
    # ========================================================================

    def load_access_token(self) -> Optional[AccessToken]:
        model = self.session.get(AccessTokenModel, self.environment)

        if model is None:
            return None

        return AccessToken(token=model.token, valid_until=_aware(model.valid_until))

    def save_access_token(self, token: str, valid_until: datetime) -> None:
        """`on_token_refreshed` callback for the access token cache."""
        model = self.session.get(AccessTokenModel, self.environment)

        if model is None:
            model = AccessTokenModel(environment=self.environment, token=token, valid_until=valid_until)
            self.session.add(model)
        else:
            model.token = token
            model.valid_until = valid_until

        self.session.commit()
        logger.debug(f"Persisted access token for {self.environment}")
