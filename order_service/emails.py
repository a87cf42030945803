"""Subjects and plain-text bodies for customer emails about an order."""
from typing import Tuple

from order_service.models import Order

BRAND_NAME = "WearFlare"


def _item_lines(order: Order) -> str:
    lines = []
    for item in order.item_list:
        line = f"  - {item.get('title') or item.get('productId')} (Qty: {item.get('quantity')}"
        if item.get("selectedSize"):
            line += f", Size: {item['selectedSize']}"
        if item.get("selectedColor"):
            line += f", Color: {item['selectedColor']}"
        lines.append(line + ")")
    return "\n".join(lines)


def _address(order: Order) -> str:
    return (
        f"{order.shipping_street}, {order.shipping_city}, "
        f"{order.shipping_postal_code}, {order.shipping_country}"
    )


def _total(order: Order) -> str:
    return f"PKR {order.total_price:.2f}"


def _footer() -> str:
    return f"Thank you for shopping with {BRAND_NAME}!\n\n{BRAND_NAME} Ltd."


def customer_confirmation_request(order: Order, confirm_url: str, ttl_hours: int) -> Tuple[str, str]:
    subject = f"Please Confirm Your {BRAND_NAME} Order"
    body = (
        f"Hi {order.customer_name},\n\n"
        "Thank you for placing an order! Please confirm your order details by opening the link below:\n\n"
        f"{confirm_url}\n\n"
        "Order Summary:\n"
        f"{_item_lines(order)}\n"
        f"Total Amount (COD): {_total(order)}\n"
        f"Shipping Address: {_address(order)}\n\n"
        f"This link expires in {ttl_hours} hours.\n"
        "If you didn't place this order, please ignore this email.\n\n"
        f"{_footer()}"
    )
    return subject, body


def customer_confirmed(order: Order) -> Tuple[str, str]:
    subject = f"Your {BRAND_NAME} Order #{order.short_ref} is Confirmed & Awaiting Processing!"
    body = (
        f"Hi {order.customer_name},\n\n"
        f"Great news! Your order (ID: #{order.short_ref}) has been confirmed "
        "and is now awaiting final processing by our team.\n\n"
        f"Total Amount (COD): {_total(order)}\n"
        f"Shipping To: {_address(order)}\n\n"
        "We'll email you again once our team confirms your order.\n\n"
        f"{_footer()}"
    )
    return subject, body


def order_confirmed(order: Order) -> Tuple[str, str]:
    subject = f"Your {BRAND_NAME} Order #{order.short_ref} Has Been Confirmed"
    body = (
        f"Hi {order.customer_name},\n\n"
        f"Your order #{order.short_ref} has been confirmed and is being prepared for shipping.\n\n"
        "Order Summary:\n"
        f"{_item_lines(order)}\n"
        f"Total Amount (COD): {_total(order)}\n"
        f"Shipping Address: {_address(order)}\n"
        f"Payment Method: {order.payment_method}\n\n"
        "Delivery usually takes 3-4 working days.\n\n"
        f"{_footer()}"
    )
    return subject, body


def order_cancelled(order: Order) -> Tuple[str, str]:
    subject = f"Regarding Your {BRAND_NAME} Order #{order.short_ref}"
    body = (
        f"Hi {order.customer_name},\n\n"
        f"We're sorry to let you know that your order #{order.short_ref} has been cancelled.\n\n"
        "Order Summary:\n"
        f"{_item_lines(order)}\n"
        f"Total Amount (COD): {_total(order)}\n\n"
        "No payment was collected for this order. If you have any questions, reply to this email.\n\n"
        f"{_footer()}"
    )
    return subject, body
