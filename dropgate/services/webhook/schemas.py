"""Payment provider webhook payload models (`transaction.completed`).

Only the fields the relay consumes are typed. Metadata and catalog refs keep
any other fields untouched; everything else is ignored.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


TRANSACTION_COMPLETED = "transaction.completed"


class CustomData(BaseModel):
    """Free-form metadata attached to a product, price or transaction."""

    model_config = ConfigDict(extra="allow")

    # Merchants fill this freely; non-string values are ignored by the resolver.
    download_path: Any = None


class PriceRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    custom_data: CustomData | None = None


class ProductRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    custom_data: CustomData | None = None


class LineItem(BaseModel):
    price: PriceRef | None = None
    product: ProductRef | None = None


class Totals(BaseModel):
    total: str | None = None
    grand_total: str | None = None


class Details(BaseModel):
    totals: Totals | None = None


class CheckoutCustomer(BaseModel):
    email: str | None = None


class Checkout(BaseModel):
    customer: CheckoutCustomer | None = None


class TransactionData(BaseModel):
    id: str | None = None
    transaction_id: str | None = None
    currency_code: str | None = None
    items: list[LineItem] = []
    details: Details | None = None
    checkout: Checkout | None = None
    custom_data: CustomData | None = None

    def resolved_id(self) -> str | None:
        return self.id or self.transaction_id or None

    def customer_email(self) -> str | None:
        if self.checkout and self.checkout.customer and self.checkout.customer.email:
            return self.checkout.customer.email.strip() or None
        return None

    def grand_total(self) -> str | None:
        if self.details and self.details.totals:
            return self.details.totals.grand_total or self.details.totals.total
        return None


class WebhookPayload(BaseModel):
    event_id: str | None = None
    event_type: str
    occurred_at: str | None = None
    notification_id: str | None = None
    data: TransactionData | None = None
