"""
Shared fixtures: signing key, fake processor, in-memory payment store.
"""
import base64
from datetime import datetime, timezone
from typing import List, Optional

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from smartpay.config import SANDBOX_URL
from smartpay.db.models import Base
from smartpay.mocks.payment_processor import FakeProcessor
from smartpay.services.payment_store import PaymentStatus
from smartpay.services.processor_client import ProcessorClient
from smartpay.services.reconciliation_service import OrderResultReconciler
from smartpay.services.signature_service import SignatureService
from smartpay.services.token_cache import AccessTokenCache


SIGNING_KEY = base64.b64encode(b"test-signing-key-0123456789abcdef").decode("ascii")
REFRESH_TOKEN = "test-refresh-token"


class InMemoryPayment:
    """Payment record kept in memory, counts saves."""

    def __init__(
        self,
        id: str,
        slug: Optional[str] = None,
        transaction_id: Optional[str] = None,
        status: Optional[PaymentStatus] = PaymentStatus.OPEN
    ):
        self.id = id
        self.slug = slug
        self.transaction_id = transaction_id
        self.status = status
        self.notes: List[str] = []
        self.saves = 0

    def set_status(self, status: PaymentStatus) -> None:
        self.status = status

    def set_transaction_id(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id

    def set_slug(self, slug: str) -> None:
        self.slug = slug

    def add_note(self, text: str) -> None:
        self.notes.append(text)

    def save(self) -> None:
        self.saves += 1


class InMemoryStore:
    def __init__(self, *payments: InMemoryPayment):
        self.payments = {payment.id: payment for payment in payments}

    def add(self, payment: InMemoryPayment) -> InMemoryPayment:
        self.payments[payment.id] = payment
        return payment

    def get_payment(self, payment_id: str) -> Optional[InMemoryPayment]:
        return self.payments.get(payment_id)

    def find_payment_by_slug(self, slug: str) -> Optional[InMemoryPayment]:
        return next((p for p in self.payments.values() if p.slug == slug), None)

    def find_payment_by_transaction_id(self, transaction_id: str) -> Optional[InMemoryPayment]:
        return next((p for p in self.payments.values() if p.transaction_id == transaction_id), None)


@pytest.fixture
def signature_service() -> SignatureService:
    return SignatureService(SIGNING_KEY)


@pytest.fixture
def processor(signature_service) -> FakeProcessor:
    return FakeProcessor(signature_service, refresh_token=REFRESH_TOKEN)


@pytest.fixture
def http_client(processor):
    with httpx.Client(base_url=SANDBOX_URL, transport=processor.transport()) as client:
        yield client


@pytest.fixture
def client(http_client) -> ProcessorClient:
    return ProcessorClient(http_client, REFRESH_TOKEN)


@pytest.fixture
def token_cache(client) -> AccessTokenCache:
    return AccessTokenCache(client.get_access_token)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def reconciler(client, token_cache, signature_service, store) -> OrderResultReconciler:
    return OrderResultReconciler(client, token_cache, signature_service, store, max_pages=5)


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
