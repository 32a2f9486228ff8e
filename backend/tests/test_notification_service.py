"""
Tests for push notification and browser return handling.
"""
from datetime import datetime, timedelta, timezone

import pytest

from conftest import InMemoryPayment
from smartpay.exceptions import SignatureInvalidError, UnknownOrderIdsError
from smartpay.models.notifications import Notification, ReturnParameters
from smartpay.services.notification_service import (
    NotificationOutcome,
    NotificationService,
    ReturnOutcome,
    verify_notification,
    verify_return,
)
from smartpay.services.payment_store import PaymentStatus


@pytest.fixture
def service(signature_service, reconciler) -> NotificationService:
    return NotificationService(signature_service, reconciler)


class TestVerification:
    def test_verify_notification(self, processor, signature_service):
        notification = processor.notification("auth-1")

        assert verify_notification(notification, signature_service) is True
        assert verify_notification(
            notification.model_copy(update={"poi_id": "9999"}), signature_service
        ) is False

    def test_verify_return(self, processor, signature_service):
        query = processor.return_query("order-1", "COMPLETED")
        parameters = ReturnParameters.from_query(query)

        assert verify_return(parameters, signature_service) is True
        assert verify_return(
            parameters.model_copy(update={"status": "CANCELLED"}), signature_service
        ) is False

    def test_return_query_without_signature(self):
        parameters = ReturnParameters.from_query({"order_id": "order-1", "status": "COMPLETED"})

        assert parameters.signature is None
        assert ReturnParameters.from_query({"status": "COMPLETED", "signature": "abc"}) is None


class TestNotificationModel:
    def test_from_processor_json(self):
        notification = Notification.model_validate({
            "authentication": "auth-1",
            "expiry": "2024-03-01T12:35:00.000+0000",
            "eventName": "merchant.order.status.changed",
            "poiId": 2004,
            "signature": "abc",
        })

        assert notification.poi_id == "2004"
        assert notification.is_status_changed is True
        assert notification.expires_at == datetime(2024, 3, 1, 12, 35, tzinfo=timezone.utc)

    def test_expiry(self):
        notification = Notification(authentication="a", expiry="2024-03-01T12:35:00.000+0000", event_name="x")

        assert notification.is_expired(datetime(2024, 3, 1, 12, 36, tzinfo=timezone.utc)) is True
        assert notification.is_expired(datetime(2024, 3, 1, 12, 34, tzinfo=timezone.utc)) is False

    def test_unparseable_expiry_never_expires(self):
        notification = Notification(authentication="a", expiry="soon", event_name="x")

        assert notification.expires_at is None
        assert notification.is_expired() is False


class TestHandleNotification:
    def test_status_changed_triggers_reconciliation(self, service, processor, store):
        payment = store.add(InMemoryPayment(id="p1", slug="omnikassa-2-A"))
        authentication = processor.queue_results([[processor.order_result("A")]])

        result = service.handle(processor.notification(authentication))

        assert result.outcome == NotificationOutcome.PROCESSED
        assert result.report.updated_payment_ids == ["p1"]
        assert payment.status == PaymentStatus.SUCCESS

    def test_invalid_signature_rejected_without_side_effects(self, service, processor, store):
        payment = store.add(InMemoryPayment(id="p1", slug="omnikassa-2-A"))
        authentication = processor.queue_results([[processor.order_result("A")]])
        notification = processor.notification(authentication).model_copy(update={"signature": "f" * 64})

        with pytest.raises(SignatureInvalidError):
            service.handle(notification)

        assert processor.calls == []
        assert payment.status == PaymentStatus.OPEN
        assert payment.notes == []

    def test_other_event_ignored(self, service, processor):
        authentication = processor.queue_results([[processor.order_result("A")]])

        result = service.handle(processor.notification(authentication, event_name="merchant.order.created"))

        assert result.outcome == NotificationOutcome.IGNORED
        assert result.report is None
        assert processor.calls == []

    def test_expired_notification_still_processed(self, service, processor, store, signature_service):
        payment = store.add(InMemoryPayment(id="p1", slug="omnikassa-2-A"))
        authentication = processor.queue_results([[processor.order_result("A")]])
        expired = Notification(
            authentication=authentication,
            expiry=(datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat(),
            event_name="merchant.order.status.changed",
            poi_id="2004",
        ).sign(signature_service)

        result = service.handle(expired)

        assert result.outcome == NotificationOutcome.PROCESSED
        assert payment.status == PaymentStatus.SUCCESS

    def test_unknown_order_propagates(self, service, processor):
        authentication = processor.queue_results([[processor.order_result("unknown")]])

        with pytest.raises(UnknownOrderIdsError):
            service.handle(processor.notification(authentication))


class TestHandleReturn:
    def test_absent_parameters_not_applicable(self, service):
        payment = InMemoryPayment(id="order-1")

        result = service.handle_return({"status": "COMPLETED", "signature": "abc"}, payment)

        assert result.outcome == ReturnOutcome.NOT_APPLICABLE
        assert payment.notes == []
        assert payment.saves == 0

    def test_missing_signature_recorded_and_rejected(self, service):
        payment = InMemoryPayment(id="order-1")

        with pytest.raises(SignatureInvalidError) as exc_info:
            service.handle_return({"order_id": "order-1", "status": "COMPLETED"}, payment)

        assert exc_info.value.details["signature"] == "missing"
        assert payment.status == PaymentStatus.OPEN
        assert payment.notes == [
            "OmniKassa 2.0 return URL requested: order_id=order-1, status=COMPLETED, signature=missing"
        ]
        assert payment.saves == 1

    def test_valid_return_updates_status(self, service, processor):
        payment = InMemoryPayment(id="order-1")

        result = service.handle_return(processor.return_query("order-1", "COMPLETED"), payment)

        assert result.outcome == ReturnOutcome.UPDATED
        assert result.status == PaymentStatus.SUCCESS
        assert payment.status == PaymentStatus.SUCCESS
        assert payment.notes == [
            "OmniKassa 2.0 return URL requested: order_id=order-1, status=COMPLETED, signature=valid"
        ]

    def test_invalid_return_recorded_but_not_applied(self, service, processor):
        payment = InMemoryPayment(id="order-1")
        query = processor.return_query("order-1", "CANCELLED")
        query["status"] = "COMPLETED"

        with pytest.raises(SignatureInvalidError):
            service.handle_return(query, payment)

        assert payment.status == PaymentStatus.OPEN
        assert payment.notes == [
            "OmniKassa 2.0 return URL requested: order_id=order-1, status=COMPLETED, signature=invalid"
        ]
        assert payment.saves == 1

    def test_return_for_other_order_not_applied(self, service, processor):
        payment = InMemoryPayment(id="victim-1")

        with pytest.raises(SignatureInvalidError) as exc_info:
            service.handle_return(processor.return_query("other-9", "COMPLETED"), payment)

        assert exc_info.value.details == {"order_id": "other-9", "payment_id": "victim-1"}
        assert payment.status == PaymentStatus.OPEN
        assert payment.notes == [
            "OmniKassa 2.0 return URL requested: order_id=other-9, status=COMPLETED, "
            "signature=valid, order mismatch (payment victim-1)"
        ]

    def test_unmapped_status_keeps_payment_status(self, service, processor):
        payment = InMemoryPayment(id="order-1")

        result = service.handle_return(processor.return_query("order-1", "ON_HOLD"), payment)

        assert result.outcome == ReturnOutcome.UPDATED
        assert result.status is None
        assert payment.status == PaymentStatus.OPEN
