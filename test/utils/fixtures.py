import os
from copy import deepcopy
from pathlib import Path
from typing import Tuple
from uuid import uuid4

import pytest
from chalice.cli import factory
from chalice.local import LocalGateway
from moto import mock_aws

from chalicelib.constants.constants import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_RESTAURANT
from chalicelib.users import User
from chalicelib.utils import auth as utils_auth, db, notifications
from chalicelib.utils.logger import logger
from utils.request_utils import make_request, get_body

PROJECT_DIR = str(Path(__file__).resolve().parents[2])
TEST_PASSWORD = 'secret123'
TEST_PHONE = '+15550001111'

RESTAURANT_BODY = {
    'name': 'Pasta Place',
    'email': 'pasta@example.com',
    'phone': '+15551234567',
    'description': 'Fresh handmade pasta every day',
    'cuisine': ['Italian'],
    'address': {
        'street': '1 Main St',
        'city': 'Springfield',
        'state': 'IL',
        'zip_code': '62701',
        'coordinates': {'lat': 39.78, 'lng': -89.65}
    },
    'images': {'logo': 'https://example.com/logo.png'},
    'business_info': {'license_number': 'LIC-001', 'tax_id': 'TAX-001'},
    'delivery_info': {'delivery_fee': 2, 'minimum_order': 10}
}

MENU_ITEM_BODY = {
    'name': 'Margherita',
    'description': 'Tomato, mozzarella and fresh basil',
    'category': 'Main Course',
    'price': 9,
    'images': ['https://example.com/margherita.png']
}

DELIVERY_ADDRESS = {'street': '5 Elm St', 'city': 'Springfield', 'state': 'IL', 'zip_code': '62702'}


def local_gateway() -> LocalGateway:
    config = factory.CLIFactory(project_dir=PROJECT_DIR, environ=os.environ).create_config_obj(
        chalice_stage_name=os.environ.get('stage', 'test'))
    logger.info(f'local_gateway ::: stage={os.environ.get("stage", "test")}')
    return LocalGateway(config.chalice_app, config)


@pytest.fixture(scope='session')
def chalice_gateway() -> LocalGateway:
    yield local_gateway()


@pytest.fixture
def dynamodb_table():
    """Fresh mocked table and SES sender for every test"""
    with mock_aws():
        database = db.init_db(db.Database.from_env())
        database.create_table()
        mailer = notifications.init_mailer(notifications.Mailer.from_env())
        mailer.client.verify_email_identity(EmailAddress=mailer.email_from)
        yield database
        db.teardown_db()
        notifications.teardown_mailer()


def create_test_user(role: str = ROLE_CUSTOMER, email: str = None, name: str = 'Test User',
                     password: str = TEST_PASSWORD, **kwargs) -> Tuple[User, str]:
    user = User.create_new(
        name=name,
        email=email or f'{role}-{uuid4().hex[:8]}@example.com',
        password=password,
        phone=TEST_PHONE,
        role=role,
        **kwargs
    )
    user._create_db_record()
    return user, utils_auth.create_access_token(user.id_)


@pytest.fixture
def customer(dynamodb_table):
    return create_test_user(ROLE_CUSTOMER, name='Test Customer')


@pytest.fixture
def restaurant_owner(dynamodb_table):
    return create_test_user(ROLE_RESTAURANT, name='Test Owner')


@pytest.fixture
def admin_user(dynamodb_table):
    return create_test_user(ROLE_ADMIN, name='Test Admin')


def restaurant_body(**overrides):
    body = deepcopy(RESTAURANT_BODY)
    body.update(overrides)
    return body


def create_test_restaurant(chalice_gateway, owner_token: str, admin_token: str = None, **overrides) -> str:
    """Registers a restaurant, approved when admin_token is given"""
    response = make_request(chalice_gateway, endpoint='/restaurants', method='POST',
                            json_body=restaurant_body(**overrides), token=owner_token)
    assert response['statusCode'] == 201, response['body']
    restaurant_id = get_body(response)['data']['id']
    if admin_token:
        response = make_request(chalice_gateway, endpoint=f'/admin/restaurants/{restaurant_id}/approve',
                                method='PUT', token=admin_token)
        assert response['statusCode'] == 200, response['body']
    return restaurant_id


def create_test_menu_item(chalice_gateway, token: str, restaurant_id: str, **overrides) -> str:
    body = {**deepcopy(MENU_ITEM_BODY), 'restaurant': restaurant_id, **overrides}
    response = make_request(chalice_gateway, endpoint='/menu', method='POST', json_body=body, token=token)
    assert response['statusCode'] == 201, response['body']
    return get_body(response)['data']['id']


@pytest.fixture
def approved_restaurant(chalice_gateway, restaurant_owner, admin_user):
    return create_test_restaurant(chalice_gateway, restaurant_owner[1], admin_user[1])


@pytest.fixture
def menu_item(chalice_gateway, restaurant_owner, approved_restaurant):
    return create_test_menu_item(chalice_gateway, restaurant_owner[1], approved_restaurant)


def add_to_cart(chalice_gateway, token: str, menu_item_id: str, quantity: int = 1, **extra) -> dict:
    return make_request(chalice_gateway, endpoint='/cart/add', method='POST',
                        json_body={'menu_item': menu_item_id, 'quantity': quantity, **extra}, token=token)


def order_body(restaurant_id: str, items, **overrides) -> dict:
    body = {
        'restaurant': restaurant_id,
        'items': items,
        'delivery_address': deepcopy(DELIVERY_ADDRESS),
        'contact_info': {'phone': TEST_PHONE, 'email': 'customer@example.com'},
        'payment_info': {'method': 'Cash'}
    }
    body.update(overrides)
    return body


def place_order(chalice_gateway, token: str, restaurant_id: str, items, **overrides) -> dict:
    return make_request(chalice_gateway, endpoint='/orders', method='POST',
                        json_body=order_body(restaurant_id, items, **overrides), token=token)
