"""
Payments API Endpoints

Starts payments, handles the browser return and refunds.
"""
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional
import logging

from ..db.store import SqlPaymentStore
from ..models.money import Money
from ..models.order import Order, PaymentBrand, PaymentBrandForce, VatCategory
from ..services.gateway import Gateway
from ..services.notification_service import NotificationService
from .dependencies import get_gateway, get_notification_service, get_store

logger = logging.getLogger(__name__)

router = APIRouter()


class CheckoutRequest(BaseModel):
    """Checkout data needed to announce an order."""
    payment_id: str
    amount: Decimal = Field(gt=0)
    currency: str = "EUR"
    return_url: str
    description: Optional[str] = None
    language: Optional[str] = None
    payment_brand: Optional[PaymentBrand] = None
    payment_brand_force: Optional[PaymentBrandForce] = None
    issuer_id: Optional[str] = None


class RefundBody(BaseModel):
    """Refund amount in major units of the payment currency."""
    amount: Decimal = Field(gt=0)
    description: Optional[str] = None
    vat_category: Optional[VatCategory] = None


def _get_payment_or_404(store: SqlPaymentStore, payment_id: str):
    payment = store.get_payment(payment_id)

    if payment is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error_code": "payment_not_found",
                "message": f"No payment found with ID: {payment_id}"
            }
        )

    return payment


@router.post("/payments")
def start_payment_endpoint(
    checkout: CheckoutRequest,
    store: SqlPaymentStore = Depends(get_store),
    gateway: Gateway = Depends(get_gateway)
) -> Dict[str, Any]:
    """
    Create a payment and announce its order.

    Returns:
        {
            "payment_id": str,
            "redirect_url": str  # hosted payment page
        }

    Errors:
        409 payment_exists
        422 smartpay:order:invalid_field
    """
    if store.get_payment(checkout.payment_id) is not None:
        raise HTTPException(
            status_code=409,
            detail={
                "error_code": "payment_exists",
                "message": f"Payment {checkout.payment_id} already exists"
            }
        )

    amount = Money.from_decimal(checkout.currency, checkout.amount)

    meta_data = None
    if checkout.issuer_id is not None:
        meta_data = {"issuerId": checkout.issuer_id}

    order = Order(
        merchant_order_id=checkout.payment_id,
        amount=amount,
        merchant_return_url=checkout.return_url,
        description=checkout.description,
        language=checkout.language,
        payment_brand=checkout.payment_brand,
        payment_brand_force=checkout.payment_brand_force,
        payment_brand_meta_data=meta_data,
    )

    payment = store.create_payment(checkout.payment_id, amount.amount, amount.currency)

    redirect_url = gateway.start(payment, order)

    return {
        "payment_id": payment.id,
        "redirect_url": redirect_url
    }


@router.get("/payments/{payment_id}/return")
def payment_return_endpoint(
    payment_id: str,
    request: Request,
    store: SqlPaymentStore = Depends(get_store),
    service: NotificationService = Depends(get_notification_service)
) -> Dict[str, Any]:
    """
    Browser return from the hosted payment page.

    Query Parameters:
        order_id, status, signature (all set by the processor)

    Returns:
        {
            "payment_id": str,
            "outcome": "updated" | "not_applicable",
            "status": str | null
        }
    """
    payment = _get_payment_or_404(store, payment_id)

    result = service.handle_return(dict(request.query_params), payment)

    return {
        "payment_id": payment.id,
        "outcome": result.outcome.value,
        "status": payment.status.value if payment.status else None
    }


@router.post("/payments/{payment_id}/refunds")
def refund_payment_endpoint(
    payment_id: str,
    body: RefundBody,
    store: SqlPaymentStore = Depends(get_store),
    gateway: Gateway = Depends(get_gateway)
) -> Dict[str, Any]:
    """
    Refund (part of) a settled payment.

    Returns:
        {
            "payment_id": str,
            "refund_id": str,
            "refund_transaction_id": str,
            "status": str | null
        }
    """
    payment = _get_payment_or_404(store, payment_id)

    if not payment.transaction_id:
        raise HTTPException(
            status_code=409,
            detail={
                "error_code": "payment_not_settled",
                "message": f"Payment {payment_id} has no processor transaction to refund"
            }
        )

    amount = Money.from_decimal(payment.currency, body.amount)

    refund = gateway.refund(payment.transaction_id, amount, body.description, body.vat_category)

    payment.add_note(f"OmniKassa 2.0 refund {refund.id} requested: {amount.amount} {amount.currency}")
    payment.save()

    logger.info(f"Refund {refund.id} requested for payment {payment_id}")

    return {
        "payment_id": payment.id,
        "refund_id": refund.id,
        "refund_transaction_id": refund.transaction_id,
        "status": refund.status
    }
