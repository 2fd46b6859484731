from datetime import datetime, timedelta, timezone

import jwt
import pytest

from chalicelib.constants.constants import ROLE_RESTAURANT
from chalicelib.users import User
from chalicelib.utils import auth as utils_auth
from utils.fixtures import create_test_user, TEST_PASSWORD
from utils.request_utils import make_request, get_body

REGISTER_BODY = {
    'name': 'Jane Doe',
    'email': 'Jane@Example.com',
    'password': 'secret123',
    'phone': '+15557654321'
}


@pytest.mark.local_db_test
def test_register(chalice_gateway, dynamodb_table):
    response = make_request(chalice_gateway, endpoint='/auth/register', method='POST', json_body=REGISTER_BODY)
    assert response['statusCode'] == 201
    body = get_body(response)
    user = body['data']['user']
    assert body['message'] == 'User registered successfully'
    assert user['email'] == 'jane@example.com'
    assert user['role'] == 'customer'
    assert 'password_hash' not in user
    assert utils_auth.decode_access_token(body['data']['token'])['id'] == user['id']

    stored = User.init_by_id(user['id'])
    assert stored.password_hash != REGISTER_BODY['password']
    assert utils_auth.verify_password(REGISTER_BODY['password'], stored.password_hash)


@pytest.mark.local_db_test
def test_register_restaurant_role(chalice_gateway, dynamodb_table):
    response = make_request(chalice_gateway, endpoint='/auth/register', method='POST',
                            json_body={**REGISTER_BODY, 'role': ROLE_RESTAURANT})
    assert get_body(response)['data']['user']['role'] == ROLE_RESTAURANT


@pytest.mark.local_db_test
def test_register_admin_role_is_rejected(chalice_gateway, dynamodb_table):
    response = make_request(chalice_gateway, endpoint='/auth/register', method='POST',
                            json_body={**REGISTER_BODY, 'role': 'admin'})
    assert response['statusCode'] == 400


@pytest.mark.local_db_test
def test_register_duplicate_email(chalice_gateway, dynamodb_table):
    make_request(chalice_gateway, endpoint='/auth/register', method='POST', json_body=REGISTER_BODY)
    response = make_request(chalice_gateway, endpoint='/auth/register', method='POST',
                            json_body={**REGISTER_BODY, 'email': 'jane@example.com'})
    assert response['statusCode'] == 409
    assert get_body(response)['message'] == 'User already exists with this email'


@pytest.mark.local_db_test
def test_register_validation(chalice_gateway, dynamodb_table):
    response = make_request(chalice_gateway, endpoint='/auth/register', method='POST',
                            json_body={'name': 'J', 'email': 'not-an-email', 'password': '123', 'phone': 'abc'})
    assert response['statusCode'] == 400
    fields = {error['field'] for error in get_body(response)['errors']}
    assert fields == {'name', 'email', 'password', 'phone'}


@pytest.mark.local_db_test
def test_login(chalice_gateway, dynamodb_table):
    user, _ = create_test_user(email='login@example.com')
    response = make_request(chalice_gateway, endpoint='/auth/login', method='POST',
                            json_body={'email': 'LOGIN@example.com', 'password': TEST_PASSWORD})
    assert response['statusCode'] == 200
    body = get_body(response)
    assert body['message'] == 'Login successful'
    assert body['data']['user']['id'] == user.id_
    assert User.init_by_id(user.id_).last_login is not None


@pytest.mark.local_db_test
@pytest.mark.parametrize('email, password', [
    ('login@example.com', 'wrong-password'),
    ('nobody@example.com', TEST_PASSWORD),
])
def test_login_invalid_credentials(chalice_gateway, dynamodb_table, email, password):
    create_test_user(email='login@example.com')
    response = make_request(chalice_gateway, endpoint='/auth/login', method='POST',
                            json_body={'email': email, 'password': password})
    assert response['statusCode'] == 401
    assert get_body(response)['message'] == 'Invalid credentials'


@pytest.mark.local_db_test
def test_login_deactivated_account(chalice_gateway, dynamodb_table):
    user, _ = create_test_user(email='inactive@example.com')
    user.set_active(False)
    response = make_request(chalice_gateway, endpoint='/auth/login', method='POST',
                            json_body={'email': 'inactive@example.com', 'password': TEST_PASSWORD})
    assert response['statusCode'] == 401
    assert get_body(response)['message'] == 'Account has been deactivated'


@pytest.mark.local_db_test
def test_get_me(chalice_gateway, customer):
    user, token = customer
    for endpoint in ('/auth/me', '/auth/profile'):
        response = make_request(chalice_gateway, endpoint=endpoint, token=token)
        assert response['statusCode'] == 200
        assert get_body(response)['data']['user']['id'] == user.id_


@pytest.mark.local_db_test
def test_missing_token(chalice_gateway, dynamodb_table):
    response = make_request(chalice_gateway, endpoint='/auth/me')
    assert response['statusCode'] == 401


@pytest.mark.local_db_test
def test_expired_token(chalice_gateway, customer):
    user, _ = customer
    past = datetime.now(timezone.utc) - timedelta(days=10)
    token = jwt.encode({'id': user.id_, 'iat': past, 'exp': past + timedelta(days=1)},
                       utils_auth.get_jwt_secret(), algorithm='HS256')
    response = make_request(chalice_gateway, endpoint='/auth/me', token=token)
    assert response['statusCode'] == 401
    assert get_body(response)['message'] == 'Token expired. Please log in again.'


@pytest.mark.local_db_test
def test_token_signed_with_other_secret(chalice_gateway, customer):
    user, _ = customer
    token = jwt.encode({'id': user.id_}, 'another-secret', algorithm='HS256')
    response = make_request(chalice_gateway, endpoint='/auth/me', token=token)
    assert response['statusCode'] == 401
    assert get_body(response)['message'] == 'Invalid token'


@pytest.mark.local_db_test
def test_token_of_deactivated_user(chalice_gateway, customer):
    user, token = customer
    user.set_active(False)
    response = make_request(chalice_gateway, endpoint='/auth/me', token=token)
    assert response['statusCode'] == 401


@pytest.mark.local_db_test
def test_update_profile(chalice_gateway, customer):
    user, token = customer
    response = make_request(chalice_gateway, endpoint='/auth/profile', method='PUT', token=token, json_body={
        'name': 'Renamed Customer',
        'address': {'city': 'Chicago', 'unknown': 'dropped'},
        'preferences': {'cuisine': ['Thai']}
    })
    assert response['statusCode'] == 200
    updated = get_body(response)['data']['user']
    assert updated['name'] == 'Renamed Customer'
    assert updated['address'] == {'city': 'Chicago'}
    assert updated['preferences'] == {'cuisine': ['Thai']}
    assert updated['email'] == user.email

    stored = User.init_by_id(user.id_)
    assert stored.name == 'Renamed Customer'
    assert stored.phone == user.phone


@pytest.mark.local_db_test
def test_change_password(chalice_gateway, customer):
    user, token = customer
    response = make_request(chalice_gateway, endpoint='/auth/change-password', method='PUT', token=token,
                            json_body={'current_password': 'wrong', 'new_password': 'newsecret'})
    assert response['statusCode'] == 400
    assert get_body(response)['message'] == 'Current password is incorrect'

    response = make_request(chalice_gateway, endpoint='/auth/change-password', method='PUT', token=token,
                            json_body={'current_password': TEST_PASSWORD, 'new_password': 'newsecret'})
    assert response['statusCode'] == 200

    response = make_request(chalice_gateway, endpoint='/auth/login', method='POST',
                            json_body={'email': user.email, 'password': 'newsecret'})
    assert response['statusCode'] == 200


@pytest.mark.local_db_test
def test_logout(chalice_gateway, customer):
    _, token = customer
    response = make_request(chalice_gateway, endpoint='/auth/logout', method='POST', token=token)
    assert get_body(response) == {'success': True, 'message': 'Logged out successfully'}
