"""
Tests for the paginated order result reconciliation.
"""
import json

import pytest

from conftest import InMemoryPayment
from smartpay.exceptions import PaginationLimitExceededError, SignatureInvalidError, UnknownOrderIdsError
from smartpay.models.results import OrderResult
from smartpay.services.payment_store import PaymentStatus
from smartpay.services.reconciliation_service import OrderResultReconciler


RESULTS_PATH = "/omnikassa-api-sandbox/order/server/api/order/results"


def payment_for(store, omnikassa_order_id: str, **kwargs) -> InMemoryPayment:
    return store.add(InMemoryPayment(
        id=f"payment-{omnikassa_order_id}",
        slug=f"omnikassa-2-{omnikassa_order_id}",
        **kwargs
    ))


def result_calls(processor):
    return [call for call in processor.calls if call[1] == RESULTS_PATH]


class TestReconcile:
    def test_single_page(self, reconciler, processor, store):
        payment = payment_for(store, "A")
        authentication = processor.queue_results([
            [processor.order_result("A", transaction_id="txn-A")],
        ])

        report = reconciler.reconcile(authentication)

        assert report.pages == 1
        assert report.updated_payment_ids == ["payment-A"]
        assert payment.status == PaymentStatus.SUCCESS
        assert payment.transaction_id == "txn-A"
        assert payment.saves == 1

    def test_unknown_order_does_not_block_known(self, reconciler, processor, store):
        payment = payment_for(store, "A")
        authentication = processor.queue_results([
            [processor.order_result("A"), processor.order_result("B")],
        ])

        with pytest.raises(UnknownOrderIdsError) as exc_info:
            reconciler.reconcile(authentication)

        assert exc_info.value.order_ids == ["B"]
        assert exc_info.value.error_code == "smartpay:results:unknown_order_ids"
        assert exc_info.value.report.updated_payment_ids == ["payment-A"]
        assert payment.status == PaymentStatus.SUCCESS
        assert payment.saves == 1

    def test_unknown_ids_collected_over_all_pages(self, reconciler, processor, store):
        payment = payment_for(store, "A")
        authentication = processor.queue_results([
            [processor.order_result("B")],
            [processor.order_result("C"), processor.order_result("B")],
            [processor.order_result("A")],
        ])

        with pytest.raises(UnknownOrderIdsError) as exc_info:
            reconciler.reconcile(authentication)

        assert exc_info.value.order_ids == ["B", "C"]
        assert exc_info.value.report.pages == 3
        assert payment.status == PaymentStatus.SUCCESS

    def test_pages_followed_until_no_more(self, reconciler, processor, store):
        payments = [payment_for(store, order_id) for order_id in ("A", "B", "C")]
        authentication = processor.queue_results([
            [processor.order_result("A")],
            [processor.order_result("B", order_status="CANCELLED", transaction_status="CANCELLED")],
            [processor.order_result("C", order_status="EXPIRED", transaction_status=None)],
        ])

        report = reconciler.reconcile(authentication)

        assert report.pages == 3
        assert report.updated_payment_ids == ["payment-A", "payment-B", "payment-C"]
        assert [p.status for p in payments] == [
            PaymentStatus.SUCCESS,
            PaymentStatus.CANCELLED,
            PaymentStatus.EXPIRED,
        ]
        assert len(result_calls(processor)) == 3

    def test_empty_page(self, reconciler, processor):
        authentication = processor.queue_results([[]])

        report = reconciler.reconcile(authentication)

        assert report.pages == 1
        assert report.updated_payment_ids == []

    def test_tampered_page_stops_before_its_rows(self, reconciler, processor, store):
        first = payment_for(store, "A")
        second = payment_for(store, "B")
        authentication = processor.queue_results([
            [processor.order_result("A")],
            [processor.order_result("B")],
            [processor.order_result("C")],
        ])
        processor.tamper_page(authentication, 2)

        with pytest.raises(SignatureInvalidError) as exc_info:
            reconciler.reconcile(authentication)

        assert exc_info.value.details == {"page": 2, "applied_payment_ids": ["payment-A"]}
        assert first.status == PaymentStatus.SUCCESS
        assert second.status == PaymentStatus.OPEN
        assert second.notes == []
        assert len(result_calls(processor)) == 2

    def test_pagination_limit(self, reconciler, processor, store):
        payment_for(store, "A")
        authentication = processor.queue_results([[processor.order_result("A")]])
        processor.always_more_results = True

        with pytest.raises(PaginationLimitExceededError) as exc_info:
            reconciler.reconcile(authentication)

        assert exc_info.value.max_pages == 5
        assert len(result_calls(processor)) == 5

    def test_token_fetched_once_for_all_pages(self, reconciler, processor, store):
        authentication = processor.queue_results([[], [], []])

        reconciler.reconcile(authentication)

        auth_calls = [call for call in processor.calls if call[1].endswith("/gateway/authentication")]
        assert len(auth_calls) == 1

    def test_legacy_transaction_id_lookup(self, reconciler, processor, store):
        legacy = store.add(InMemoryPayment(id="legacy", transaction_id="A"))
        authentication = processor.queue_results([[processor.order_result("A", transaction_id="txn-A")]])

        report = reconciler.reconcile(authentication)

        assert report.updated_payment_ids == ["legacy"]
        assert legacy.status == PaymentStatus.SUCCESS
        assert legacy.transaction_id == "A"

    def test_slug_prefix(self, client, token_cache, signature_service, store, processor):
        reconciler = OrderResultReconciler(client, token_cache, signature_service, store, slug_prefix="shop")
        payment = store.add(InMemoryPayment(id="p1", slug="shop-A"))
        authentication = processor.queue_results([[processor.order_result("A")]])

        reconciler.reconcile(authentication)

        assert reconciler.slug_for("A") == "shop-A"
        assert payment.status == PaymentStatus.SUCCESS


class TestApply:
    def make_result(self, processor, **kwargs) -> OrderResult:
        return OrderResult.model_validate(processor.order_result("A", **kwargs))

    def test_idempotent(self, reconciler, processor, store):
        payment = payment_for(store, "A")
        order_result = self.make_result(processor, transaction_id="txn-A")

        reconciler.apply(payment, order_result)
        reconciler.apply(payment, order_result)

        assert payment.status == PaymentStatus.SUCCESS
        assert payment.transaction_id == "txn-A"
        assert payment.saves == 2

    def test_transaction_id_not_overwritten(self, reconciler, processor, store):
        payment = payment_for(store, "A", transaction_id="existing")

        reconciler.apply(payment, self.make_result(processor, transaction_id="txn-A"))

        assert payment.transaction_id == "existing"

    def test_no_transaction_id_without_success(self, reconciler, processor, store):
        payment = payment_for(store, "A")

        reconciler.apply(payment, self.make_result(
            processor, order_status="CANCELLED", transaction_status="CANCELLED"
        ))

        assert payment.status == PaymentStatus.CANCELLED
        assert payment.transaction_id is None

    def test_unmapped_status_leaves_payment_status(self, reconciler, processor, store):
        payment = payment_for(store, "A", status=PaymentStatus.OPEN)

        reconciler.apply(payment, self.make_result(processor, order_status="ON_HOLD", transaction_status=None))

        assert payment.status == PaymentStatus.OPEN
        assert payment.saves == 1

    def test_in_progress_maps_to_open(self, reconciler, processor, store):
        payment = payment_for(store, "A", status=PaymentStatus.EXPIRED)

        reconciler.apply(payment, self.make_result(processor, order_status="IN_PROGRESS", transaction_status="OPEN"))

        assert payment.status == PaymentStatus.OPEN

    def test_audit_note_holds_raw_result(self, reconciler, processor, store):
        payment = payment_for(store, "A")

        reconciler.apply(payment, self.make_result(processor, transaction_id="txn-A"))

        prefix = "OmniKassa 2.0 order result: "
        assert payment.notes[0].startswith(prefix)

        recorded = json.loads(payment.notes[0][len(prefix):])
        assert recorded["omnikassaOrderId"] == "A"
        assert recorded["transactions"][0]["id"] == "txn-A"
