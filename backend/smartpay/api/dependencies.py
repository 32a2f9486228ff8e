"""
FastAPI dependencies

Wires settings, the payment store and processor services per request.
The HTTP client and the access token cache are process-wide.
"""
import logging
from datetime import datetime
from typing import Optional

import httpx
from fastapi import Depends
from sqlalchemy.orm import Session

from ..config import settings
from ..db.init_db import SessionLocal, get_db
from ..db.store import SqlPaymentStore
from ..mocks.payment_processor import FakeProcessor
from ..services.gateway import Gateway
from ..services.notification_service import NotificationService
from ..services.processor_client import ProcessorClient, create_http_client
from ..services.reconciliation_service import OrderResultReconciler
from ..services.signature_service import SignatureService, get_signature_service
from ..services.token_cache import AccessTokenCache

logger = logging.getLogger(__name__)


_http_client: Optional[httpx.Client] = None
_token_cache: Optional[AccessTokenCache] = None
_fake_processor: Optional[FakeProcessor] = None


def get_fake_processor() -> FakeProcessor:
    """Demo mode processor, shared by the whole process."""
    global _fake_processor
    if _fake_processor is None:
        _fake_processor = FakeProcessor(get_signature_service(), refresh_token=settings.refresh_token)
        logger.warning("Demo mode: processor calls are served by the in-process fake processor")
    return _fake_processor


def get_http_client() -> httpx.Client:
    global _http_client
    if _http_client is None:
        transport = get_fake_processor().transport() if settings.demo_mode else None
        _http_client = create_http_client(transport)
    return _http_client


def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        _http_client.close()
        _http_client = None


def get_processor_client() -> ProcessorClient:
    return ProcessorClient(get_http_client(), settings.refresh_token)


def get_store(db: Session = Depends(get_db)) -> SqlPaymentStore:
    return SqlPaymentStore(db, settings.environment)


def _persist_token(token: str, valid_until: datetime) -> None:
    session = SessionLocal()
    try:
        SqlPaymentStore(session, settings.environment).save_access_token(token, valid_until)
    finally:
        session.close()


def get_token_cache(
    store: SqlPaymentStore = Depends(get_store),
    client: ProcessorClient = Depends(get_processor_client)
) -> AccessTokenCache:
    """Process-wide token cache, seeded from the persisted token once."""
    global _token_cache
    if _token_cache is None:
        _token_cache = AccessTokenCache(
            client.get_access_token,
            on_token_refreshed=_persist_token,
            token=store.load_access_token()
        )
    return _token_cache


def get_signature() -> SignatureService:
    return get_signature_service()


def get_reconciler(
    store: SqlPaymentStore = Depends(get_store),
    client: ProcessorClient = Depends(get_processor_client),
    token_cache: AccessTokenCache = Depends(get_token_cache),
    signature_service: SignatureService = Depends(get_signature)
) -> OrderResultReconciler:
    return OrderResultReconciler(
        client,
        token_cache,
        signature_service,
        store,
        slug_prefix=settings.slug_prefix,
        max_pages=settings.max_result_pages
    )


def get_notification_service(
    signature_service: SignatureService = Depends(get_signature),
    reconciler: OrderResultReconciler = Depends(get_reconciler)
) -> NotificationService:
    return NotificationService(signature_service, reconciler)


def get_gateway(
    client: ProcessorClient = Depends(get_processor_client),
    token_cache: AccessTokenCache = Depends(get_token_cache),
    signature_service: SignatureService = Depends(get_signature)
) -> Gateway:
    return Gateway(client, token_cache, signature_service, slug_prefix=settings.slug_prefix)
