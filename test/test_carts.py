import pytest

from chalicelib.carts import Cart
from chalicelib.constants.constants import ROLE_RESTAURANT
from chalicelib.menu_items import MenuItem
from utils.fixtures import create_test_user, create_test_restaurant, create_test_menu_item, add_to_cart
from utils.request_utils import make_request, get_body

SIZES = [{'name': 'Size', 'options': [{'name': 'Small', 'price': 0}, {'name': 'Large', 'price': 2.5}]}]


def get_cart(chalice_gateway, token):
    response = make_request(chalice_gateway, endpoint='/cart', token=token)
    assert response['statusCode'] == 200, response['body']
    return get_body(response)['data']


@pytest.mark.local_db_test
def test_empty_cart(chalice_gateway, customer):
    assert get_cart(chalice_gateway, customer[1]) == {
        'items': [],
        'totals': {'subtotal': 0, 'item_count': 0},
        'restaurant': None
    }


@pytest.mark.local_db_test
def test_cart_requires_auth(chalice_gateway, dynamodb_table):
    assert make_request(chalice_gateway, endpoint='/cart')['statusCode'] == 401


@pytest.mark.local_db_test
def test_add_item(chalice_gateway, customer, approved_restaurant, menu_item):
    response = add_to_cart(chalice_gateway, customer[1], menu_item, quantity=2, special_instructions='No basil')
    assert response['statusCode'] == 200
    body = get_body(response)
    assert body['message'] == 'Item added to cart'
    line = body['data']['items'][0]
    assert line['menu_item_id'] == menu_item
    assert line['menu_item']['name'] == 'Margherita'
    assert line['quantity'] == 2
    assert line['calculated_price'] == 9.0
    assert line['item_total'] == 18.0
    assert line['special_instructions'] == 'No basil'
    assert body['data']['totals'] == {'subtotal': 18.0, 'item_count': 2}
    assert body['data']['restaurant']['id'] == approved_restaurant

    assert get_cart(chalice_gateway, customer[1])['totals'] == {'subtotal': 18.0, 'item_count': 2}


@pytest.mark.local_db_test
def test_post_cart_is_add_alias(chalice_gateway, customer, menu_item):
    response = make_request(chalice_gateway, endpoint='/cart', method='POST', token=customer[1],
                            json_body={'menu_item': menu_item, 'quantity': 1})
    assert response['statusCode'] == 200
    assert get_body(response)['data']['totals']['item_count'] == 1


@pytest.mark.local_db_test
def test_same_line_is_merged(chalice_gateway, customer, restaurant_owner, approved_restaurant):
    item_id = create_test_menu_item(chalice_gateway, restaurant_owner[1], approved_restaurant, customizations=SIZES)
    large = [{'name': 'Size', 'selected_options': [{'name': 'Large'}]}]
    small = [{'name': 'Size', 'selected_options': [{'name': 'Small'}]}]

    add_to_cart(chalice_gateway, customer[1], item_id, quantity=1, customizations=large)
    add_to_cart(chalice_gateway, customer[1], item_id, quantity=2, customizations=large)
    body = get_body(add_to_cart(chalice_gateway, customer[1], item_id, quantity=1, customizations=small))

    lines = body['data']['items']
    assert [(line['quantity'], line['calculated_price']) for line in lines] == [(3, 11.5), (1, 9.0)]
    assert lines[0]['customizations'] == [{'name': 'Size', 'selected_options': [{'name': 'Large', 'price': 2.5}]}]
    assert body['data']['totals'] == {'subtotal': 43.5, 'item_count': 4}


@pytest.mark.local_db_test
def test_invalid_customization(chalice_gateway, customer, restaurant_owner, approved_restaurant):
    item_id = create_test_menu_item(chalice_gateway, restaurant_owner[1], approved_restaurant, customizations=SIZES)
    response = add_to_cart(chalice_gateway, customer[1], item_id,
                           customizations=[{'name': 'Size', 'selected_options': [{'name': 'Medium'}]}])
    assert response['statusCode'] == 400
    assert get_body(response)['message'] == 'Unknown option Medium for Size'


@pytest.mark.local_db_test
def test_add_item_from_other_restaurant_resets_cart(chalice_gateway, customer, admin_user, menu_item):
    _, other_owner = create_test_user(ROLE_RESTAURANT)
    other_restaurant = create_test_restaurant(chalice_gateway, other_owner, admin_user[1], name='Burger Joint')
    burger = create_test_menu_item(chalice_gateway, other_owner, other_restaurant, name='Cheeseburger', price=7)

    add_to_cart(chalice_gateway, customer[1], menu_item, quantity=2)
    body = get_body(add_to_cart(chalice_gateway, customer[1], burger))
    assert [line['menu_item_id'] for line in body['data']['items']] == [burger]
    assert body['data']['restaurant']['id'] == other_restaurant
    assert body['data']['totals'] == {'subtotal': 7.0, 'item_count': 1}


@pytest.mark.local_db_test
def test_add_unavailable_item(chalice_gateway, customer, restaurant_owner, approved_restaurant):
    item_id = create_test_menu_item(chalice_gateway, restaurant_owner[1], approved_restaurant, is_available=False)
    response = add_to_cart(chalice_gateway, customer[1], item_id)
    assert response['statusCode'] == 400
    assert get_body(response)['message'] == 'Menu item is not available'

    response = add_to_cart(chalice_gateway, customer[1], 'missing-item')
    assert response['statusCode'] == 400


@pytest.mark.local_db_test
def test_add_item_of_pending_restaurant(chalice_gateway, customer):
    _, owner = create_test_user(ROLE_RESTAURANT)
    pending = create_test_restaurant(chalice_gateway, owner)
    item_id = create_test_menu_item(chalice_gateway, owner, pending)
    response = add_to_cart(chalice_gateway, customer[1], item_id)
    assert response['statusCode'] == 400
    assert get_body(response)['message'] == 'Restaurant is not available'


@pytest.mark.local_db_test
def test_add_item_invalid_quantity(chalice_gateway, customer, menu_item):
    response = add_to_cart(chalice_gateway, customer[1], menu_item, quantity=0)
    assert response['statusCode'] == 400
    assert get_body(response)['errors'] == [{'field': 'quantity', 'message': 'Quantity must be at least 1'}]


@pytest.mark.local_db_test
def test_update_item_quantity(chalice_gateway, customer, menu_item):
    token = customer[1]
    line_id = get_body(add_to_cart(chalice_gateway, token, menu_item))['data']['items'][0]['id']

    response = make_request(chalice_gateway, endpoint=f'/cart/update/{line_id}', method='PUT', token=token,
                            json_body={'quantity': 4})
    assert response['statusCode'] == 200
    assert get_body(response)['data']['totals'] == {'subtotal': 36.0, 'item_count': 4}

    response = make_request(chalice_gateway, endpoint=f'/cart/update/{line_id}', method='PUT', token=token,
                            json_body={'quantity': 0})
    assert response['statusCode'] == 200
    assert get_body(response)['data']['items'] == []

    response = make_request(chalice_gateway, endpoint=f'/cart/update/{line_id}', method='PUT', token=token,
                            json_body={'quantity': 1})
    assert response['statusCode'] == 404
    assert get_body(response)['message'] == 'Item not found in cart'


@pytest.mark.local_db_test
def test_update_item_without_cart(chalice_gateway, customer):
    response = make_request(chalice_gateway, endpoint='/cart/update/some-line', method='PUT', token=customer[1],
                            json_body={'quantity': 1})
    assert response['statusCode'] == 404
    assert get_body(response)['message'] == 'Cart not found'


@pytest.mark.local_db_test
def test_remove_item_without_cart(chalice_gateway, customer):
    response = make_request(chalice_gateway, endpoint='/cart/remove/some-line', method='DELETE', token=customer[1])
    assert response['statusCode'] == 404
    assert get_body(response)['message'] == 'Cart not found'
    assert Cart.init_by_user_id(customer[0].id_).is_stored is False


@pytest.mark.local_db_test
def test_remove_item(chalice_gateway, customer, menu_item):
    token = customer[1]
    line_id = get_body(add_to_cart(chalice_gateway, token, menu_item))['data']['items'][0]['id']

    response = make_request(chalice_gateway, endpoint=f'/cart/remove/{line_id}', method='DELETE', token=token)
    assert response['statusCode'] == 200
    assert get_body(response)['message'] == 'Item removed from cart'
    assert get_body(response)['data']['totals'] == {'subtotal': 0, 'item_count': 0}

    response = make_request(chalice_gateway, endpoint=f'/cart/remove/{line_id}', method='DELETE', token=token)
    assert response['statusCode'] == 404


@pytest.mark.local_db_test
def test_unavailable_item_is_dropped_on_read(chalice_gateway, customer, restaurant_owner, approved_restaurant,
                                             menu_item):
    token = customer[1]
    other_item = create_test_menu_item(chalice_gateway, restaurant_owner[1], approved_restaurant, name='Lasagna',
                                       price=12)
    add_to_cart(chalice_gateway, token, menu_item)
    add_to_cart(chalice_gateway, token, other_item)

    item = MenuItem.init_get_by_id(other_item)
    item.is_available = False
    item._update_db_record()

    cart = get_cart(chalice_gateway, token)
    assert [line['menu_item_id'] for line in cart['items']] == [menu_item]
    assert cart['totals'] == {'subtotal': 9.0, 'item_count': 1}
    stored = Cart.init_by_user_id(customer[0].id_)
    assert [line['menu_item_id'] for line in stored.items] == [menu_item]


@pytest.mark.local_db_test
def test_price_follows_menu(chalice_gateway, customer, restaurant_owner, menu_item):
    add_to_cart(chalice_gateway, customer[1], menu_item, quantity=2)
    make_request(chalice_gateway, endpoint=f'/menu/{menu_item}', method='PUT', token=restaurant_owner[1],
                 json_body={'price': 10})
    assert get_cart(chalice_gateway, customer[1])['totals'] == {'subtotal': 20.0, 'item_count': 2}


@pytest.mark.local_db_test
def test_clear_cart(chalice_gateway, customer, menu_item):
    token = customer[1]
    response = make_request(chalice_gateway, endpoint='/cart/clear', method='DELETE', token=token)
    assert get_body(response) == {'success': True, 'message': 'Cart cleared successfully'}

    add_to_cart(chalice_gateway, token, menu_item)
    make_request(chalice_gateway, endpoint='/cart/clear', method='DELETE', token=token)
    assert get_cart(chalice_gateway, token)['items'] == []
    assert Cart.init_by_user_id(customer[0].id_).is_stored is False
