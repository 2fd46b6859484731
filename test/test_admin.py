import pytest

from chalicelib.constants.constants import ROLE_CUSTOMER, ROLE_RESTAURANT
from chalicelib.restaurants import Restaurant
from utils.fixtures import create_test_user, create_test_restaurant, place_order, TEST_PASSWORD
from utils.request_utils import make_request, get_body

ADMIN_ENDPOINTS = [
    ('GET', '/admin/dashboard'),
    ('GET', '/admin/users'),
    ('GET', '/admin/restaurants/pending'),
    ('GET', '/admin/orders'),
    ('GET', '/admin/system/health'),
]


@pytest.mark.local_db_test
@pytest.mark.parametrize('method, endpoint', ADMIN_ENDPOINTS)
def test_admin_endpoints_reject_non_admins(chalice_gateway, customer, restaurant_owner, method, endpoint):
    assert make_request(chalice_gateway, endpoint=endpoint, method=method)['statusCode'] == 401
    for _, token in (customer, restaurant_owner):
        response = make_request(chalice_gateway, endpoint=endpoint, method=method, token=token)
        assert response['statusCode'] == 403
        assert get_body(response)['message'] == 'Access denied. Admin privileges required.'


@pytest.mark.local_db_test
def test_dashboard(chalice_gateway, customer, admin_user, approved_restaurant, menu_item):
    place_order(chalice_gateway, customer[1], approved_restaurant, [{'menu_item': menu_item, 'quantity': 2}])
    _, pending_owner = create_test_user(ROLE_RESTAURANT)
    create_test_restaurant(chalice_gateway, pending_owner, name='Waiting Room')

    response = make_request(chalice_gateway, endpoint='/admin/dashboard', token=admin_user[1])
    assert response['statusCode'] == 200
    data = get_body(response)['data']
    assert data['overview'] == {
        'total_users': 1,
        'total_restaurants': 1,
        'total_orders': 1,
        'total_revenue': 22.0,
        'pending_restaurants': 1,
        'active_orders': 0
    }
    assert [user['id'] for user in data['recent_activity']['users']] == [customer[0].id_]
    recent_order = data['recent_activity']['orders'][0]
    assert recent_order['customer']['name'] == 'Test Customer'
    assert recent_order['restaurant']['name'] == 'Pasta Place'
    assert data['orders_by_status'] == [{'status': 'pending', 'count': 1}]


@pytest.mark.local_db_test
def test_get_users(chalice_gateway, customer, restaurant_owner, admin_user):
    create_test_user(ROLE_CUSTOMER, name='Zed Inactive', email='zed@example.com')[0].set_active(False)
    token = admin_user[1]

    body = get_body(make_request(chalice_gateway, endpoint='/admin/users', token=token))
    assert body['pagination']['total'] == 4
    assert all('password_hash' not in user for user in body['data'])

    body = get_body(make_request(chalice_gateway, endpoint='/admin/users', token=token,
                                 query={'role': 'customer', 'sort_by': 'name', 'sort_order': 'asc'}))
    assert [user['name'] for user in body['data']] == ['Test Customer', 'Zed Inactive']

    body = get_body(make_request(chalice_gateway, endpoint='/admin/users', token=token,
                                 query={'is_active': 'false'}))
    assert [user['email'] for user in body['data']] == ['zed@example.com']

    body = get_body(make_request(chalice_gateway, endpoint='/admin/users', token=token, query={'search': 'owner'}))
    assert [user['id'] for user in body['data']] == [restaurant_owner[0].id_]

    response = make_request(chalice_gateway, endpoint='/admin/users', token=token, query={'role': 'chef'})
    assert response['statusCode'] == 400


@pytest.mark.local_db_test
def test_update_user_status(chalice_gateway, customer, admin_user):
    user, _ = customer
    response = make_request(chalice_gateway, endpoint=f'/admin/users/{user.id_}/status', method='PUT',
                            token=admin_user[1], json_body={'is_active': False})
    assert response['statusCode'] == 200
    body = get_body(response)
    assert body['message'] == 'User deactivated successfully'
    assert body['data']['is_active'] is False

    response = make_request(chalice_gateway, endpoint='/auth/login', method='POST',
                            json_body={'email': user.email, 'password': TEST_PASSWORD})
    assert response['statusCode'] == 401

    response = make_request(chalice_gateway, endpoint=f'/admin/users/{user.id_}/status', method='PUT',
                            token=admin_user[1], json_body={'is_active': True})
    assert get_body(response)['message'] == 'User activated successfully'

    response = make_request(chalice_gateway, endpoint='/admin/users/missing-user/status', method='PUT',
                            token=admin_user[1], json_body={'is_active': True})
    assert response['statusCode'] == 404
    assert get_body(response)['message'] == 'User not found'

    response = make_request(chalice_gateway, endpoint=f'/admin/users/{user.id_}/status', method='PUT',
                            token=admin_user[1], json_body={'is_active': 'yes'})
    assert response['statusCode'] == 400


@pytest.mark.local_db_test
def test_pending_restaurants_approve_and_reject(chalice_gateway, restaurant_owner, admin_user):
    owner, owner_token = restaurant_owner
    first = create_test_restaurant(chalice_gateway, owner_token)
    _, second_owner = create_test_user(ROLE_RESTAURANT)
    second = create_test_restaurant(chalice_gateway, second_owner, name='Second Place')
    token = admin_user[1]

    body = get_body(make_request(chalice_gateway, endpoint='/admin/restaurants/pending', token=token))
    assert {restaurant['id'] for restaurant in body['data']} == {first, second}
    owners = {restaurant['id']: restaurant['owner'] for restaurant in body['data']}
    assert owners[first] == {'id': owner.id_, 'name': owner.name, 'email': owner.email, 'phone': owner.phone}

    response = make_request(chalice_gateway, endpoint=f'/admin/restaurants/{first}/approve', method='PUT',
                            token=token, json_body={'message': 'Welcome aboard'})
    assert response['statusCode'] == 200
    assert get_body(response)['message'] == 'Restaurant approved successfully'
    assert Restaurant.init_get_by_id(first).is_accepting_orders()

    response = make_request(chalice_gateway, endpoint=f'/admin/restaurants/{second}/reject', method='PUT',
                            token=token, json_body={})
    assert response['statusCode'] == 400
    assert get_body(response)['errors'] == [{'field': 'reason', 'message': 'Rejection reason is required'}]

    response = make_request(chalice_gateway, endpoint=f'/admin/restaurants/{second}/reject', method='PUT',
                            token=token, json_body={'reason': 'Missing license'})
    assert response['statusCode'] == 200
    data = get_body(response)['data']
    assert (data['status'], data['rejection_reason']) == ('rejected', 'Missing license')

    body = get_body(make_request(chalice_gateway, endpoint='/admin/restaurants/pending', token=token))
    assert body['data'] == []

    response = make_request(chalice_gateway, endpoint='/admin/restaurants/missing/approve', method='PUT',
                            token=token)
    assert response['statusCode'] == 404


@pytest.mark.local_db_test
def test_get_orders(chalice_gateway, customer, admin_user, approved_restaurant, menu_item):
    token = customer[1]
    small = get_body(place_order(chalice_gateway, token, approved_restaurant,
                                 [{'menu_item': menu_item, 'quantity': 2}]))['data']
    large = get_body(place_order(chalice_gateway, token, approved_restaurant,
                                 [{'menu_item': menu_item, 'quantity': 4}]))['data']
    make_request(chalice_gateway, endpoint=f'/orders/{large["id"]}/cancel', method='POST', token=token)
    admin_token = admin_user[1]

    body = get_body(make_request(chalice_gateway, endpoint='/admin/orders', token=admin_token,
                                 query={'sort_by': 'total', 'sort_order': 'desc'}))
    assert [order['id'] for order in body['data']] == [large['id'], small['id']]

    body = get_body(make_request(chalice_gateway, endpoint='/admin/orders', token=admin_token,
                                 query={'status': 'cancelled'}))
    assert [order['id'] for order in body['data']] == [large['id']]

    body = get_body(make_request(chalice_gateway, endpoint='/admin/orders', token=admin_token,
                                 query={'restaurant': approved_restaurant, 'customer': customer[0].id_}))
    assert body['pagination']['total'] == 2

    body = get_body(make_request(chalice_gateway, endpoint='/admin/orders', token=admin_token,
                                 query={'date_to': '2001-01-01'}))
    assert body['data'] == []

    response = make_request(chalice_gateway, endpoint='/admin/orders', token=admin_token,
                            query={'date_from': 'yesterday'})
    assert response['statusCode'] == 400
    assert get_body(response)['errors'] == [{'field': 'date_from', 'message': 'date_from must be a valid date'}]


@pytest.mark.local_db_test
def test_system_health(chalice_gateway, customer, admin_user, approved_restaurant, menu_item):
    place_order(chalice_gateway, customer[1], approved_restaurant, [{'menu_item': menu_item, 'quantity': 2}])
    make_request(chalice_gateway, endpoint='/auth/login', method='POST',
                 json_body={'email': customer[0].email, 'password': TEST_PASSWORD})

    response = make_request(chalice_gateway, endpoint='/admin/system/health', token=admin_user[1])
    assert response['statusCode'] == 200
    data = get_body(response)['data']
    assert data['database'] == {'connected': True, 'status': 'ACTIVE'}
    assert data['orders'] == {'total': 1, 'completed': 0, 'cancelled': 0}
    assert data['active_users'] == 1
    assert data['timestamp']
