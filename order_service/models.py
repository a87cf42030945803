from sqlalchemy import Column, String, Float, DateTime, Enum, Text
from sqlalchemy.orm import validates
from datetime import datetime
import enum
import json
import re

from order_service.database import Base

EMAIL_PATTERN = re.compile(r".+@.+\..+")
PAYMENT_METHOD_COD = "Cash on Delivery"


class OrderStatus(enum.Enum):
    AWAITING_USER_CONFIRMATION = "Awaiting User Confirmation"
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


# Statuses from which each admin action is allowed
CONFIRMABLE_STATUSES = frozenset([OrderStatus.PENDING])
CANCELLABLE_STATUSES = frozenset([OrderStatus.PENDING, OrderStatus.CONFIRMED])


class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, index=True)
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False, index=True)
    customer_phone = Column(String, nullable=False)

    shipping_street = Column(String, nullable=False)
    shipping_city = Column(String, nullable=False)
    shipping_postal_code = Column(String, nullable=False)
    shipping_country = Column(String, nullable=False, default="Pakistan")

    items = Column(Text, nullable=False)  # JSON array of order items
    total_price = Column(Float, nullable=False)
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)
    payment_method = Column(String, nullable=False, default=PAYMENT_METHOD_COD)

    confirmation_token = Column(String, nullable=True, index=True)  # sha256 hex digest
    confirmation_token_expires = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @validates("customer_email")
    def validate_customer_email(self, key, value):
        value = (value or "").strip().lower()
        if not EMAIL_PATTERN.fullmatch(value):
            raise ValueError("Please fill a valid email address")
        return value

    @validates("customer_name", "customer_phone", "shipping_street", "shipping_city", "shipping_postal_code")
    def validate_required_text(self, key, value):
        value = (value or "").strip()
        if not value:
            raise ValueError(f"{key} is required")
        return value

    @validates("items")
    def validate_items(self, key, value):
        if not isinstance(value, str):
            value = json.dumps(value)
        if not json.loads(value):
            raise ValueError("Order must contain at least one item")
        return value

    @property
    def item_list(self):
        return json.loads(self.items)

    @property
    def short_ref(self) -> str:
        return self.id[-6:]

    def __repr__(self):
        return f"<Order {self.id} status={self.status.value if self.status else None}>"
