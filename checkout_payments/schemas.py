"""
Pydantic schemas for checkout request/response models.

Request models only fix types. Business rules (Luhn, expiry, ranges) are
checked by the orchestrator so that every failure comes back in one
semicolon-joined message instead of a schema error.
"""
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, Field, SecretStr

from checkout_payments.domain.receipts import Receipt
from checkout_payments.domain.value_objects import ShippingType


class ShippingInfo(BaseModel):
    """Shipping choice for the order."""

    base_cost: Decimal = Field(..., description="Shipping cost before any surcharge")
    shipping_type: ShippingType = Field(default=ShippingType.REGULAR)
    estimated_days: int = Field(..., description="Estimated days until shipment")


class AddressInput(BaseModel):
    first_name: str
    last_name: str
    street: str
    street_number: Union[int, str] = Field(..., description="1 to 999,999")
    province: str
    country: str
    postal_code: str


class CardInput(BaseModel):
    """Raw card fields. Number and security code are never stored or logged."""

    card_number: SecretStr
    name_on_card: str
    expiry: str = Field(..., description="MM/YY")
    security_code: SecretStr


class PaymentRequest(BaseModel):
    """Request schema for processing a checkout payment."""

    user_id: int = Field(..., description="User identifier")
    item_id: int = Field(..., description="Item identifier")
    item_cost: Decimal = Field(..., description="Item price")
    shipping: ShippingInfo
    address: AddressInput
    card: CardInput

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": 101,
                    "item_id": 555,
                    "item_cost": "49.99",
                    "shipping": {"base_cost": "9.99", "shipping_type": "EXPEDITED", "estimated_days": 2},
                    "address": {
                        "first_name": "John",
                        "last_name": "Doe",
                        "street": "King St W",
                        "street_number": 100,
                        "province": "ON",
                        "country": "Canada",
                        "postal_code": "M5X 1A9",
                    },
                    "card": {
                        "card_number": "4111111111111111",
                        "name_on_card": "John Doe",
                        "expiry": "12/30",
                        "security_code": "123",
                    },
                }
            ]
        }
    }


class ReceiptSummary(BaseModel):
    """Receipt fields returned with a successful payment."""

    receipt_id: str = Field(..., description="Receipt number (RCP-...)")
    name: str
    formatted_address: str
    item_id: int
    item_cost: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    currency: str = Field(default="CAD", description="ISO 4217 code of the amounts")
    shipping_estimate_message: str

    @classmethod
    def from_receipt(cls, receipt: Receipt, currency: str = "CAD") -> "ReceiptSummary":
        return cls(
            receipt_id=receipt.receipt_number,
            name=receipt.customer_name,
            formatted_address=receipt.customer_address,
            item_id=receipt.item_id,
            item_cost=receipt.item_cost,
            shipping_cost=receipt.shipping_cost,
            tax_amount=receipt.tax_amount,
            total_amount=receipt.total_paid,
            currency=currency,
            shipping_estimate_message=receipt.shipping_estimate_message,
        )


class PaymentResponse(BaseModel):
    """Response schema for a checkout payment."""

    success: bool
    message: str
    payment_id: Optional[str] = Field(default=None, description="Payment ID")
    status: Optional[str] = Field(default=None, description="Payment status")
    transaction_timestamp: str = Field(..., description="ISO 8601 timestamp")
    duplicate: bool = Field(default=False, description="A completed payment already existed")
    receipt: Optional[ReceiptSummary] = None
