from decimal import Decimal

import pytest

from chalicelib import pricing


@pytest.mark.parametrize('value, expected', [
    ('0.5', '1.00'),
    ('1.44', '1.00'),
    ('0.9', '1.00'),
    ('0.45', '0.00'),
    ('2.5', '3.00'),
])
def test_round_half_up(value, expected):
    assert pricing.round_half_up(Decimal(value)) == Decimal(expected)


def test_effective_price_adds_selected_options():
    customizations = [
        {'name': 'Size', 'selected_options': [{'name': 'Large', 'price': Decimal('2.50')}]},
        {'name': 'Extras', 'selected_options': [{'name': 'Cheese', 'price': 1}, {'name': 'Bacon', 'price': '0.75'}]}
    ]
    assert pricing.effective_price(Decimal('9'), customizations) == Decimal('13.25')
    assert pricing.line_total(Decimal('9'), customizations, 3) == Decimal('39.75')
    assert pricing.effective_price(Decimal('9'), None) == Decimal('9.00')


def test_cart_totals():
    lines = [
        {'item_total': Decimal('18.00'), 'quantity': 2},
        {'item_total': Decimal('4.10'), 'quantity': 1}
    ]
    assert pricing.cart_totals(lines) == {'subtotal': Decimal('22.10'), 'item_count': 3}
    assert pricing.cart_totals([]) == {'subtotal': Decimal('0.00'), 'item_count': 0}


def test_order_pricing():
    assert pricing.order_pricing(Decimal('18'), Decimal('2')) == {
        'subtotal': Decimal('18.00'),
        'delivery_fee': Decimal('2.00'),
        'service_fee': Decimal('1.00'),
        'tax': Decimal('1.00'),
        'discount': Decimal('0.00'),
        'total': Decimal('22.00')
    }


def test_order_pricing_larger_subtotal():
    result = pricing.order_pricing(Decimal('57.30'), 0)
    assert result['service_fee'] == Decimal('3.00')
    assert result['tax'] == Decimal('5.00')
    assert result['total'] == Decimal('65.30')
