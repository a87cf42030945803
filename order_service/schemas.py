from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Any, Optional
import json
from datetime import datetime

from order_service.models import EMAIL_PATTERN, Order, OrderStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class OrderItem(CamelModel):
    product_id: str = Field(..., min_length=1, examples=["665f1c2e9b1e8a0012ab34cd"])
    title: str = Field(..., min_length=1, examples=["Linen Summer Shirt"])
    price: float = Field(..., gt=0.0, allow_inf_nan=False, description="Unit price snapshot at checkout")
    quantity: int = Field(..., ge=1, examples=[2])
    image: Optional[str] = None
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None


class ShippingAddressIn(CamelModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: Optional[str] = None


class ShippingAddress(CamelModel):
    street: str
    city: str
    postal_code: str
    country: str


class OrderCreate(CamelModel):
    customer_name: str = Field(..., min_length=1)
    customer_email: str = Field(..., min_length=1)
    customer_phone: str = Field(..., min_length=1)
    shipping_address: ShippingAddressIn
    order_items: List[OrderItem] = Field(..., min_length=1)
    total_price: float = Field(..., gt=0.0, allow_inf_nan=False)

    @field_validator("customer_email")
    @classmethod
    def check_email(cls, v: str) -> str:
        v = v.lower()
        if not EMAIL_PATTERN.fullmatch(v):
            raise ValueError("Please fill a valid email address")
        return v


class OrderRead(CamelModel):
    id: str
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: ShippingAddress
    order_items: List[OrderItem]
    total_price: float
    status: OrderStatus
    payment_method: str
    created_at: datetime
    updated_at: datetime

    @field_validator("order_items", mode="before")
    @classmethod
    def parse_items(cls, v: Any) -> List[Any]:
        if isinstance(v, str):
            return json.loads(v)
        return v

    @classmethod
    def from_order(cls, order: Order) -> "OrderRead":
        return cls(
            id=order.id,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
            shipping_address=ShippingAddress(
                street=order.shipping_street,
                city=order.shipping_city,
                postal_code=order.shipping_postal_code,
                country=order.shipping_country,
            ),
            order_items=order.items,
            total_price=order.total_price,
            status=order.status,
            payment_method=order.payment_method,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderActionResponse(BaseModel):
    message: str
    order: OrderRead


def format_validation_errors(errors: List[dict]) -> List[str]:
    """Turn pydantic error dicts into one readable message per offending field."""
    messages = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        field = ".".join(loc) or "body"
        if err.get("type") == "missing":
            messages.append(f"{field} is required")
        else:
            msg = err.get("msg", "is invalid")
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, "):]
            messages.append(f"{field}: {msg}")
    return messages
