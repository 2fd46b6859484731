import functools
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from boto3.dynamodb.conditions import Key, Attr
from botocore.exceptions import BotoCoreError, ClientError
from chalice import Response

from chalicelib import pricing
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import (
    ROLE_ADMIN, ROLE_CUSTOMER, USER_ROLES, RESTAURANT_APPROVED, RESTAURANT_PENDING, RESTAURANT_REJECTED,
    ORDER_ACTIVE_STATUSES, ORDER_DELIVERED, ORDER_CANCELLED, ADMIN_PAGE_LIMIT, ADMIN_MAX_PAGE_LIMIT
)
from chalicelib.orders import Order, get_all_order_records
from chalicelib.restaurants import Restaurant, get_all_restaurant_records
from chalicelib.users import User
from chalicelib.utils import auth as utils_auth, \
    app as utils_app, \
    data as utils_data, \
    db as utils_db, \
    exceptions, \
    notifications as utils_notifications, \
    email_templates
from chalicelib.utils.logger import logger
from chalicelib.utils.validation import Validator

RECENT_USERS_LIMIT = 5
RECENT_ORDERS_LIMIT = 10
USER_SORT_FIELDS = ('date_created', 'name', 'email', 'last_login')
ORDER_SORT_FIELDS = ('date_created', 'total', 'status')


def admin_only(func):
    """
    Authenticates the request and lets admins through only
    """

    @functools.wraps(func)
    def wrapper(request, *args, **kwargs):
        utils_auth.check_role(request, (ROLE_ADMIN,))
        return func(request, *args, **kwargs)

    return utils_auth.authenticate(wrapper)


def get_all_user_records(filter_expression=None) -> List[Dict]:
    return utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.users_pk),
        filter_expression=filter_expression
    )


def parse_iso_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@utils_app.log_start_finish
@admin_only
def endpoint_get_dashboard(request) -> Response:
    users = [User(**record) for record in get_all_user_records()]
    restaurants = [Restaurant(**record) for record in get_all_restaurant_records()]
    orders = [Order(**record) for record in get_all_order_records()]
    restaurant_names = {restaurant.id_: restaurant.name for restaurant in restaurants}
    customer_names = {user.id_: user.name for user in users}
    customers = [user for user in users if user.role == ROLE_CUSTOMER]

    recent_customers = sorted(customers, key=lambda user: user.date_created, reverse=True)[:RECENT_USERS_LIMIT]
    recent_orders = sorted(orders, key=lambda order: order.date_created, reverse=True)[:RECENT_ORDERS_LIMIT]
    orders_by_status = Counter(order.status_ for order in orders)

    data = {
        'overview': {
            'total_users': len(customers),
            'total_restaurants': len([r for r in restaurants if r.status_ == RESTAURANT_APPROVED]),
            'total_orders': len(orders),
            'total_revenue': pricing.subtotal(order.pricing.get('total', 0) for order in orders),
            'pending_restaurants': len([r for r in restaurants if r.status_ == RESTAURANT_PENDING]),
            'active_orders': len([order for order in orders if order.status_ in ORDER_ACTIVE_STATUSES])
        },
        'recent_activity': {
            'users': [
                {'id': user.id_, 'name': user.name, 'email': user.email, 'date_created': user.date_created}
                for user in recent_customers
            ],
            'orders': [
                {
                    'id': order.id_,
                    'order_number': order.order_number,
                    'customer': {'id': order.customer_id, 'name': customer_names.get(order.customer_id)},
                    'restaurant': {'id': order.restaurant_id, 'name': restaurant_names.get(order.restaurant_id)},
                    'total': order.pricing.get('total'),
                    'status': order.status_,
                    'date_created': order.date_created
                }
                for order in recent_orders
            ]
        },
        'orders_by_status': [{'status': status, 'count': count} for status, count in orders_by_status.most_common()]
    }
    return utils_app.success_response(data=data)


@utils_app.log_start_finish
@admin_only
def endpoint_get_users(request) -> Response:
    query_params = request.query_params or {}
    page, limit = utils_data.get_pagination_params(query_params, ADMIN_PAGE_LIMIT, ADMIN_MAX_PAGE_LIMIT)
    validator = Validator(query_params)
    role = validator.one_of('role', USER_ROLES, required=False, message='Invalid role')
    is_active = validator.one_of('is_active', ('true', 'false'), required=False,
                                 message='is_active must be a boolean')
    sort_by = validator.one_of('sort_by', USER_SORT_FIELDS, required=False) or 'date_created'
    sort_order = validator.one_of('sort_order', ('asc', 'desc'), required=False) or 'desc'
    validator.raise_if_errors()

    users = [User(**record) for record in get_all_user_records()]
    if role:
        users = [user for user in users if user.role == role]
    if is_active is not None:
        users = [user for user in users if user.is_active == (is_active == 'true')]
    search = (query_params.get('search') or '').strip().lower()
    if search:
        users = [user for user in users
                 if any(search in (value or '').lower() for value in (user.name, user.email, user.phone))]

    users.sort(key=lambda user: str(getattr(user, sort_by) or '').lower(), reverse=sort_order == 'desc')
    page_items, pagination = utils_data.paginate(users, page, limit)
    return utils_app.success_response(data=[user.to_ui() for user in page_items], pagination=pagination)


@utils_app.log_start_finish
@admin_only
def endpoint_update_user_status(request, user_id) -> Response:
    validator = Validator(utils_data.parse_raw_body(request))
    is_active = validator.boolean('is_active', message='is_active must be a boolean')
    validator.raise_if_errors()

    try:
        user = User.init_by_id(user_id)
    except exceptions.RecordNotFound:
        raise exceptions.RecordNotFound('User not found')
    user.set_active(is_active)
    logger.info(f"endpoint_update_user_status ::: user_id={user_id} {is_active=}")
    return utils_app.success_response(
        data=user.to_ui(),
        message=f"User {'activated' if is_active else 'deactivated'} successfully"
    )


@utils_app.log_start_finish
@admin_only
def endpoint_get_pending_restaurants(request) -> Response:
    page, limit = utils_data.get_pagination_params(request.query_params, ADMIN_PAGE_LIMIT, ADMIN_MAX_PAGE_LIMIT)
    restaurants = [
        Restaurant(**record) for record in get_all_restaurant_records(Attr('status_').eq(RESTAURANT_PENDING))
    ]
    restaurants.sort(key=lambda restaurant: restaurant.date_created, reverse=True)
    page_items, pagination = utils_data.paginate(restaurants, page, limit)

    data = []
    for restaurant in page_items:
        item = restaurant.to_ui()
        owner = _get_user_or_none(restaurant.owner_id)
        item['owner'] = {'id': owner.id_, 'name': owner.name, 'email': owner.email, 'phone': owner.phone} \
            if owner else None
        data.append(item)
    return utils_app.success_response(data=data, pagination=pagination)


@utils_app.log_start_finish
@admin_only
def endpoint_approve_restaurant(request, restaurant_id) -> Response:
    request_body = utils_data.parse_raw_body(request)
    restaurant = Restaurant.init_get_by_id(restaurant_id)
    restaurant.set_status(RESTAURANT_APPROVED)
    _notify_owner(
        restaurant,
        f'Your restaurant "{restaurant.name}" has been approved',
        email_templates.get_restaurant_approved_message(restaurant.to_ui(), request_body.get('message'))
    )
    return utils_app.success_response(data=restaurant.to_ui(), message='Restaurant approved successfully')


@utils_app.log_start_finish
@admin_only
def endpoint_reject_restaurant(request, restaurant_id) -> Response:
    validator = Validator(utils_data.parse_raw_body(request))
    reason = validator.string('reason', message='Rejection reason is required')
    validator.raise_if_errors()

    restaurant = Restaurant.init_get_by_id(restaurant_id)
    restaurant.set_status(RESTAURANT_REJECTED, reason=reason)
    _notify_owner(
        restaurant,
        f'Your restaurant "{restaurant.name}" registration was rejected',
        email_templates.get_restaurant_rejected_message(restaurant.to_ui(), reason)
    )
    return utils_app.success_response(data=restaurant.to_ui(), message='Restaurant rejected successfully')


@utils_app.log_start_finish
@admin_only
def endpoint_get_orders(request) -> Response:
    query_params = request.query_params or {}
    page, limit = utils_data.get_pagination_params(query_params, ADMIN_PAGE_LIMIT, ADMIN_MAX_PAGE_LIMIT)
    validator = Validator(query_params)
    date_from = _validate_iso_date(validator, 'date_from')
    date_to = _validate_iso_date(validator, 'date_to')
    sort_by = validator.one_of('sort_by', ORDER_SORT_FIELDS, required=False) or 'date_created'
    sort_order = validator.one_of('sort_order', ('asc', 'desc'), required=False) or 'desc'
    validator.raise_if_errors()

    filter_expression = None
    for param, attribute in (('status', 'status_'), ('restaurant', 'restaurant_id'), ('customer', 'customer_id')):
        if query_params.get(param):
            condition = Attr(attribute).eq(query_params[param])
            filter_expression = condition if filter_expression is None else filter_expression & condition
    orders = [Order(**record) for record in get_all_order_records(filter_expression)]
    if date_from is not None:
        orders = [order for order in orders if parse_iso_datetime(order.date_created) >= date_from]
    if date_to is not None:
        orders = [order for order in orders if parse_iso_datetime(order.date_created) <= date_to]

    orders.sort(key=lambda order: _order_sort_key(order, sort_by), reverse=sort_order == 'desc')
    page_items, pagination = utils_data.paginate(orders, page, limit)
    return utils_app.success_response(data=[order.to_ui() for order in page_items], pagination=pagination)


@utils_app.log_start_finish
@admin_only
def endpoint_get_system_health(request) -> Response:
    database = utils_db.get_database()
    try:
        table_status = database.get_status()
        database_health = {'connected': True, 'status': table_status}
    except (ClientError, BotoCoreError) as error:
        logger.warning(f'endpoint_get_system_health ::: database is not reachable, {error=}')
        database_health = {'connected': False, 'status': None}

    since = (datetime.now(timezone.utc) - timedelta(hours=24)).isoformat(timespec='seconds')
    recent_orders = [Order(**record) for record in get_all_order_records(Attr('date_created').gte(since))]
    active_users = get_all_user_records(Attr('last_login').gte(since))
    data = {
        'database': database_health,
        'orders': {
            'total': len(recent_orders),
            'completed': len([order for order in recent_orders if order.status_ == ORDER_DELIVERED]),
            'cancelled': len([order for order in recent_orders if order.status_ == ORDER_CANCELLED])
        },
        'active_users': len(active_users),
        'timestamp': utils_data.now_iso()
    }
    return utils_app.success_response(data=data)


def _get_user_or_none(user_id: str) -> Optional[User]:
    try:
        return User.init_by_id(user_id)
    except exceptions.RecordNotFound:
        return None


def _notify_owner(restaurant: Restaurant, subject: str, message: str) -> bool:
    owner = _get_user_or_none(restaurant.owner_id)
    email = owner.email if owner else restaurant.email
    return utils_notifications.notify([email], subject, message)


def _validate_iso_date(validator: Validator, field: str) -> Optional[datetime]:
    value = validator.string(field, required=False)
    if value is None:
        return None
    try:
        return parse_iso_datetime(value)
    except ValueError:
        validator.add_error(field, f'{field} must be a valid date')
        return None


def _order_sort_key(order: Order, sort_by: str):
    if sort_by == 'total':
        return Decimal(str(order.pricing.get('total', 0)))
    if sort_by == 'status':
        return order.status_
    return order.date_created
