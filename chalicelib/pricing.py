"""
Price arithmetic shared by carts and orders.

All functions are pure: they take Decimal-compatible values and return Decimal quantized to cents.
Fees are rounded to a whole currency unit with halves going up.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List

from chalicelib.constants.constants import SERVICE_FEE_RATE, TAX_RATE

CENTS = Decimal('1.00')
UNITS = Decimal('1')


def to_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)


def round_half_up(value) -> Decimal:
    """round(0.5) == 1, round(1.44) == 1, round(0.9) == 1"""
    return Decimal(str(value)).quantize(UNITS, rounding=ROUND_HALF_UP).quantize(CENTS)


def customizations_delta(customizations: Iterable[Dict]) -> Decimal:
    delta = Decimal('0')
    for customization in customizations or []:
        for option in customization.get('selected_options') or []:
            delta += Decimal(str(option.get('price') or 0))
    return delta


def effective_price(base_price, customizations: Iterable[Dict]) -> Decimal:
    return to_money(Decimal(str(base_price)) + customizations_delta(customizations))


def line_total(base_price, customizations: Iterable[Dict], quantity: int) -> Decimal:
    return to_money(effective_price(base_price, customizations) * int(quantity))


def subtotal(line_totals: Iterable) -> Decimal:
    return to_money(sum((Decimal(str(total)) for total in line_totals), Decimal('0')))


def cart_totals(lines: List[Dict]) -> Dict:
    """
    lines - resolved cart lines, each with item_total and quantity
    """
    return {
        'subtotal': subtotal(line['item_total'] for line in lines),
        'item_count': sum(int(line['quantity']) for line in lines)
    }


def order_pricing(order_subtotal, delivery_fee) -> Dict:
    order_subtotal = to_money(order_subtotal)
    delivery_fee = to_money(delivery_fee)
    service_fee = round_half_up(order_subtotal * SERVICE_FEE_RATE)
    tax = round_half_up(order_subtotal * TAX_RATE)
    discount = to_money(0)
    return {
        'subtotal': order_subtotal,
        'delivery_fee': delivery_fee,
        'service_fee': service_fee,
        'tax': tax,
        'discount': discount,
        'total': to_money(order_subtotal + delivery_fee + service_fee + tax - discount)
    }
