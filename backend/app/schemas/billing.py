"""API schemas for payment and reconciliation endpoints."""
from __future__ import annotations

from decimal import Decimal
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..billing import CheckoutForm, ReconciliationResult, TransactionRecord


class CheckoutRequest(BaseModel):
    tier: str
    name_first: Optional[str] = Field(alias="nameFirst", default=None)
    name_last: Optional[str] = Field(alias="nameLast", default=None)
    email: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class CheckoutResponse(BaseModel):
    success: bool = True
    payment_url: str = Field(alias="paymentUrl")
    payment_id: str = Field(alias="paymentId")
    fields: Dict[str, str]

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_form(cls, form: CheckoutForm) -> "CheckoutResponse":
        return cls(
            payment_url=form.process_url,
            payment_id=form.merchant_payment_id,
            fields=dict(form.fields),
        )


class ManualUpdateRequest(BaseModel):
    user_id: str = Field(alias="userId", min_length=1)
    requested_tier: str = Field(alias="requestedTier", min_length=1)
    payment_id: Optional[str] = Field(alias="paymentId", default=None)

    model_config = ConfigDict(populate_by_name=True)


class ReconciliationResponse(BaseModel):
    success: bool = True
    message: str
    outcome: str
    user_id: Optional[str] = Field(alias="userId", default=None)
    tier: Optional[str] = None
    previous_tier: Optional[str] = Field(alias="previousTier", default=None)
    payment_id: Optional[str] = Field(alias="paymentId", default=None)
    writer: Optional[str] = None
    verified: bool = True
    warnings: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: ReconciliationResult, *, message: str) -> "ReconciliationResponse":
        return cls(
            message=message,
            outcome=result.outcome.value,
            user_id=result.user_id,
            tier=result.tier.value if result.tier else None,
            previous_tier=result.previous_tier.value if result.previous_tier else None,
            payment_id=result.payment_id,
            writer=result.writer,
            verified=result.verified,
            warnings=list(result.warnings),
        )


class TransactionOut(BaseModel):
    gateway_payment_id: str = Field(alias="paymentId")
    merchant_payment_id: Optional[str] = Field(alias="merchantPaymentId", default=None)
    tier: str
    amount_gross: Optional[Decimal] = Field(alias="amountGross", default=None)
    amount_fee: Optional[Decimal] = Field(alias="amountFee", default=None)
    amount_net: Optional[Decimal] = Field(alias="amountNet", default=None)
    status: str
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: TransactionRecord) -> "TransactionOut":
        return cls(
            gateway_payment_id=record.gateway_payment_id,
            merchant_payment_id=record.merchant_payment_id,
            tier=record.tier.value,
            amount_gross=record.amount_gross,
            amount_fee=record.amount_fee,
            amount_net=record.amount_net,
            status=record.status.value,
            created_at=record.created_at,
        )


class TransactionListResponse(BaseModel):
    transactions: List[TransactionOut]

    model_config = ConfigDict(populate_by_name=True)
