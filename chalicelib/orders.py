import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple, List, Dict, Optional
from uuid import uuid4

from boto3.dynamodb.conditions import Key, Attr
from chalice import Response

from chalicelib import pricing
from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import (
    ORDER_PENDING, ORDER_CANCELLED, ORDER_REFUNDED, ORDER_DELIVERED, ORDER_PROGRESSION, ORDER_STATUSES,
    ORDER_TERMINAL_STATUSES, ORDER_STATUS_UPDATE_CHOICES, ORDER_TYPES, ORDER_TYPE_DELIVERY, PAYMENT_METHODS,
    PAYMENT_PENDING, PAYMENT_REFUNDED, DELIVERY_ETA_MINUTES, PICKUP_ETA_MINUTES, ORDER_NUMBER_PREFIX,
    ORDER_COUNTER_NAME, ORDERS_PAGE_LIMIT, RESTAURANT_ORDERS_PAGE_LIMIT, MAX_PAGE_LIMIT, RESTAURANT_MANAGER_ROLES,
    ROLE_ADMIN
)
from chalicelib.constants.status_codes import http201
from chalicelib.menu_items import MenuItem
from chalicelib.restaurants import Restaurant
from chalicelib.utils import auth as utils_auth, \
    data as utils_data, \
    db as utils_db, \
    app as utils_app, \
    notifications as utils_notifications, \
    exceptions, \
    email_templates
from chalicelib.utils.logger import logger
from chalicelib.utils.validation import Validator

RATING_PRECISION = Decimal('0.1')


class Order(EntityBase):
    pk = keys_structure.orders_pk
    sk = keys_structure.orders_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'order_number': lambda x: isinstance(x, str) and x.startswith(ORDER_NUMBER_PREFIX),
        'customer_id': lambda x: isinstance(x, str),
        'restaurant_id': lambda x: isinstance(x, str),
        'items': lambda x: isinstance(x, list) and len(x) > 0,
        'pricing': lambda x: isinstance(x, dict) and isinstance(x.get('total'), Decimal),
        'order_type': lambda x: x in ORDER_TYPES,
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'status_': lambda x: x in ORDER_STATUSES,
        'payment_info': lambda x: isinstance(x, dict) and x.get('method') in PAYMENT_METHODS,
        'timeline': lambda x: isinstance(x, list),
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'delivery_address': lambda x: isinstance(x, dict),
        'contact_info': lambda x: isinstance(x, dict),
        'estimated_delivery_time': lambda x: isinstance(x, str),
        'actual_delivery_time': lambda x: isinstance(x, str),
        'special_instructions': lambda x: isinstance(x, str),
        'cancellation_reason': lambda x: isinstance(x, str),
        'refund_amount': lambda x: isinstance(x, Decimal),
        'rating': lambda x: isinstance(x, dict)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.order_number: str = kwargs.get('order_number')
        self.customer_id: str = kwargs.get('customer_id')
        self.restaurant_id: str = kwargs.get('restaurant_id')
        self.items: List[Dict] = kwargs.get('items') or []
        self.pricing: Dict = kwargs.get('pricing') or {}
        self.delivery_address: Dict = kwargs.get('delivery_address') or {}
        self.contact_info: Dict = kwargs.get('contact_info') or {}
        self.payment_info: Dict = kwargs.get('payment_info') or {}
        self.status_: str = kwargs.get('status_') or ORDER_PENDING
        self.order_type: str = kwargs.get('order_type') or ORDER_TYPE_DELIVERY
        self.estimated_delivery_time: Optional[str] = kwargs.get('estimated_delivery_time')
        self.actual_delivery_time: Optional[str] = kwargs.get('actual_delivery_time')
        self.special_instructions: Optional[str] = kwargs.get('special_instructions')
        self.cancellation_reason: Optional[str] = kwargs.get('cancellation_reason')
        self.refund_amount: Optional[Decimal] = kwargs.get('refund_amount')
        self.rating: Optional[Dict] = kwargs.get('rating')
        self.timeline: List[Dict] = kwargs.get('timeline') or []
        self.date_created: str = kwargs.get('date_created') or utils_data.now_iso()
        self.date_updated: str = kwargs.get('date_updated') or utils_data.now_iso()
        self.restaurant: Optional[Restaurant] = None
        self.request_body: Dict = {}
        self.record_type = 'order'

    @classmethod
    @utils_auth.authenticate_class
    def init_request_create(cls, request):
        """
        Validates the order request and prices it against the live menu.
        Nothing is written here.
        """
        logger.info("init_request_create ::: started")
        request_body = utils_data.parse_raw_body(request)
        validator = Validator(request_body)
        restaurant_id = validator.string('restaurant', message='Valid restaurant ID is required')
        items = validator.list_of('items', 1, message='At least one item is required')
        validator.string('delivery_address.street', message='Street address is required')
        validator.string('delivery_address.city', message='City is required')
        validator.string('delivery_address.state', message='State is required')
        validator.string('delivery_address.zip_code', message='Zip code is required')
        phone = validator.phone('contact_info.phone')
        email = validator.email('contact_info.email')
        payment_method = validator.one_of('payment_info.method', PAYMENT_METHODS, message='Invalid payment method')
        order_type = validator.one_of('order_type', ORDER_TYPES, required=False,
                                      message='Invalid order type') or ORDER_TYPE_DELIVERY
        special_instructions = validator.string('special_instructions', 0, 500, required=False)
        for index, item in enumerate(items or []):
            item_validator = Validator(item if isinstance(item, dict) else {})
            item_validator.string('menu_item', message='Valid menu item ID is required')
            item_validator.number('quantity', 1, integer=True, message='Quantity must be at least 1')
            item_validator.list_of('customizations', required=False, message='Customizations must be an array')
            for error in item_validator.errors:
                validator.add_error(f"items[{index}].{error['field']}", error['message'])
        validator.raise_if_errors()

        try:
            restaurant = Restaurant.init_get_by_id(restaurant_id)
        except exceptions.RecordNotFound:
            raise exceptions.ValidationException('Restaurant is not available')
        if not restaurant.is_accepting_orders():
            raise exceptions.ValidationException('Restaurant is not available')

        order_items = [build_order_item(item, restaurant.id_) for item in items]
        delivery_fee = restaurant.delivery_fee() if order_type == ORDER_TYPE_DELIVERY else 0
        order_pricing = pricing.order_pricing(pricing.subtotal(item['item_total'] for item in order_items),
                                              delivery_fee)
        if order_type == ORDER_TYPE_DELIVERY and order_pricing['subtotal'] < restaurant.minimum_order():
            raise exceptions.ValidationException(f'Minimum order amount is ${restaurant.minimum_order()}')

        now = datetime.now(timezone.utc)
        eta_minutes = DELIVERY_ETA_MINUTES if order_type == ORDER_TYPE_DELIVERY else PICKUP_ETA_MINUTES
        c = cls(
            id_=str(uuid4()),
            customer_id=request.auth_result['user_id'],
            restaurant_id=restaurant.id_,
            items=order_items,
            pricing=order_pricing,
            delivery_address=request_body['delivery_address'],
            contact_info={'phone': phone, 'email': email},
            payment_info={'method': payment_method, 'status': PAYMENT_PENDING},
            order_type=order_type,
            estimated_delivery_time=(now + timedelta(minutes=eta_minutes)).isoformat(timespec='seconds'),
            special_instructions=special_instructions,
            date_created=now.isoformat(timespec='seconds')
        )
        c.restaurant = restaurant
        return c

    @classmethod
    def init_get_by_id(cls, order_id):
        c = cls(order_id)
        try:
            order_ref = utils_db.get_db_item(
                keys_structure.order_refs_pk, keys_structure.order_refs_sk.format(order_id=order_id)
            )
            c.restaurant_id = order_ref['restaurant_id']
            c.__init__(**c._get_db_item())
        except exceptions.RecordNotFound:
            raise exceptions.RecordNotFound('Order not found')
        return c

    @classmethod
    @utils_auth.authenticate_class
    def init_request_order(cls, request, order_id):
        logger.info("init_request_order ::: started")
        c = cls.init_get_by_id(order_id)
        c.request_data = request.auth_result
        c.request_body = utils_data.parse_raw_body(request)
        try:
            c.restaurant = Restaurant.init_get_by_id(c.restaurant_id)
        except exceptions.RecordNotFound:
            logger.warning(f"init_request_order ::: restaurant={c.restaurant_id} of order {c.id_} not found")
        return c

    @utils_app.log_start_finish
    def endpoint_create_order(self) -> Response:
        self.order_number = generate_order_number()
        self.timeline = [timeline_entry(ORDER_PENDING, 'Order placed', self.date_created)]
        self._create_db_record()
        message = email_templates.get_new_order_notification_message(self._to_dict())
        utils_notifications.notify(
            [self.restaurant.email, self.contact_info.get('email')],
            f'New order {self.order_number}',
            message
        )
        data = self.to_ui()
        data['restaurant'] = self.restaurant.to_summary()
        return utils_app.success_response(data=data, message='Order placed successfully', status_code=http201)

    @utils_app.log_start_finish
    def endpoint_get_order(self) -> Response:
        if not self._can_view(self.request_data):
            raise exceptions.AccessDenied('Not authorized to view this order')
        data = self.to_ui()
        data['restaurant'] = self.restaurant.to_summary() if self.restaurant else None
        return utils_app.success_response(data=data)

    @utils_app.log_start_finish
    def endpoint_update_status(self) -> Response:
        utils_auth.check_auth_result_role(self.request_data, RESTAURANT_MANAGER_ROLES)
        if not self._is_managed_by(self.request_data):
            raise exceptions.AccessDenied('Not authorized to update this order')
        validator = Validator(self.request_body)
        status = validator.one_of('status', ORDER_STATUS_UPDATE_CHOICES, message='Invalid status')
        note = validator.string('note', required=False)
        validator.raise_if_errors()

        validate_status_transition(self.status_, status)
        self._set_status(status, note or f'Order {status}')
        return utils_app.success_response(data=self.to_ui(), message='Order status updated successfully')

    @utils_app.log_start_finish
    def endpoint_cancel_order(self) -> Response:
        if not self._can_view(self.request_data):
            raise exceptions.AccessDenied('Not authorized to cancel this order')
        validator = Validator(self.request_body)
        reason = validator.string('reason', required=False)
        validator.raise_if_errors()
        if self.status_ in ORDER_TERMINAL_STATUSES:
            raise exceptions.ValidationException('Order cannot be cancelled')

        self.cancellation_reason = reason or 'Cancelled by user'
        self._set_status(ORDER_CANCELLED, reason or 'Order cancelled', cancellation_reason=self.cancellation_reason)
        return utils_app.success_response(data=self.to_ui(), message='Order cancelled successfully')

    @utils_app.log_start_finish
    def endpoint_refund_order(self) -> Response:
        utils_auth.check_auth_result_role(self.request_data, (ROLE_ADMIN,))
        if self.status_ in ORDER_TERMINAL_STATUSES:
            raise exceptions.ValidationException('Order cannot be refunded')
        validator = Validator(self.request_body)
        reason = validator.string('reason', required=False)
        validator.raise_if_errors()

        self.refund_amount = self.pricing['total']
        self.payment_info = {**self.payment_info, 'status': PAYMENT_REFUNDED}
        self._set_status(ORDER_REFUNDED, reason or 'Order refunded',
                         refund_amount=self.refund_amount, payment_info=self.payment_info)
        return utils_app.success_response(data=self.to_ui(), message='Order refunded successfully')

    @utils_app.log_start_finish
    def endpoint_rate_order(self) -> Response:
        validator = Validator(self.request_body)
        food = validator.number('food', 1, 5, integer=True, message='Food rating must be between 1 and 5')
        delivery = validator.number('delivery', 1, 5, required=False, integer=True,
                                    message='Delivery rating must be between 1 and 5')
        overall = validator.number('overall', 1, 5, integer=True, message='Overall rating must be between 1 and 5')
        comment = validator.string('comment', 0, 500, required=False)
        validator.raise_if_errors()

        if self.request_data['user_id'] != self.customer_id:
            raise exceptions.AccessDenied('Not authorized to rate this order')
        if self.status_ != ORDER_DELIVERED:
            raise exceptions.ValidationException('Can only rate delivered orders')
        if self.rating and self.rating.get('rated_at'):
            raise exceptions.ConflictException('Order already rated')

        self.rating = {
            'food': food,
            'delivery': delivery or food,
            'overall': overall,
            'comment': comment or '',
            'rated_at': utils_data.now_iso()
        }
        self._update_db_fields(rating=self.rating, condition=Attr('rating').not_exists(),
                               conflict_message='Order already rated')
        if self.restaurant is not None:
            self.restaurant.update_rating(*calculate_restaurant_rating(self.restaurant_id))
        return utils_app.success_response(data=self.to_ui(), message='Order rated successfully')

    def _set_status(self, status: str, note: str, **extra_fields):
        """
        The timeline entry is appended to the stored list, entries written by concurrent requests are kept
        """
        now = utils_data.now_iso()
        self.status_ = status
        if status == ORDER_DELIVERED:
            self.actual_delivery_time = now
            extra_fields['actual_delivery_time'] = now
        record = self._update_db_fields(
            list_appends={'timeline': [timeline_entry(status, note, now)]},
            status_=status,
            **extra_fields
        )
        self.timeline = record.get('timeline', self.timeline)
        logger.info(f"_set_status ::: order {self.id_} moved to {status=}")

    def _is_managed_by(self, auth_result: Dict) -> bool:
        if utils_auth.is_admin(auth_result):
            return True
        return self.restaurant is not None and self.restaurant.owner_id == auth_result.get('user_id')

    def _can_view(self, auth_result: Dict) -> bool:
        return auth_result.get('user_id') == self.customer_id or self._is_managed_by(auth_result)

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(restaurant_id=self.restaurant_id), self.sk.format(order_id=self.id_)

    def _create_db_record(self, condition_expression=None) -> None:
        """
        Order insert, cart removal and restaurant stats are committed together
        """
        self._init_db_record()
        self._validate_mandatory_fields()
        self._validate_optional_fields()
        total = self.pricing['total']
        utils_db.transact_write_items(
            [
                utils_db.transact_put(self.db_record, condition_expression='attribute_not_exists(partkey)'),
                utils_db.transact_put(
                    {
                        'partkey': keys_structure.order_refs_pk,
                        'sortkey': keys_structure.order_refs_sk.format(order_id=self.id_),
                        'record_type': 'order_ref',
                        'restaurant_id': self.restaurant_id,
                        'customer_id': self.customer_id
                    },
                    condition_expression='attribute_not_exists(partkey)'
                ),
                utils_db.transact_delete({
                    'partkey': keys_structure.carts_pk,
                    'sortkey': keys_structure.carts_sk.format(user_id=self.customer_id)
                }),
                utils_db.transact_update(
                    key={
                        'partkey': keys_structure.restaurants_pk,
                        'sortkey': keys_structure.restaurants_sk.format(restaurant_id=self.restaurant_id)
                    },
                    update_expression='ADD total_orders :one, total_revenue :total',
                    expr_attr_values={':one': 1, ':total': total}
                )
            ],
            conflict_message='Order could not be placed, please try again'
        )
        logger.info(f"_create_db_record ::: order {self.id_} number={self.order_number} {total=} created")

    def _to_dict(self):
        return {
            'id_': self.id_,
            'order_number': self.order_number,
            'customer_id': self.customer_id,
            'restaurant_id': self.restaurant_id,
            'items': self.items,
            'pricing': self.pricing,
            'delivery_address': self.delivery_address,
            'contact_info': self.contact_info,
            'payment_info': self.payment_info,
            'status_': self.status_,
            'order_type': self.order_type,
            'estimated_delivery_time': self.estimated_delivery_time,
            'actual_delivery_time': self.actual_delivery_time,
            'special_instructions': self.special_instructions,
            'cancellation_reason': self.cancellation_reason,
            'refund_amount': self.refund_amount,
            'rating': self.rating,
            'timeline': self.timeline,
            'date_created': self.date_created,
            'date_updated': self.date_updated,
            'gsi_customer_pk': keys_structure.gsi_customer_orders_pk.format(customer_id=self.customer_id)
        }

    def to_ui(self):
        return self._to_ui()


def build_order_item(item: Dict, restaurant_id: str) -> Dict:
    """
    Snapshot of one ordered item: the base price is stored,
    item_total already includes the customization deltas
    """
    menu_item_id = item['menu_item']
    try:
        menu_item = MenuItem.init_get_by_id(menu_item_id)
    except exceptions.RecordNotFound:
        raise exceptions.ValidationException(f'Item {menu_item_id} is not available')
    if not menu_item.is_available or menu_item.restaurant_id != restaurant_id:
        raise exceptions.ValidationException(f'Item {menu_item_id} is not available')
    quantity = int(item['quantity'])
    customizations = menu_item.resolve_customizations(item.get('customizations'))
    return {
        'menu_item_id': menu_item.id_,
        'name': menu_item.name,
        'price': menu_item.price,
        'quantity': quantity,
        'customizations': customizations,
        'item_total': pricing.line_total(menu_item.price, customizations, quantity),
        'special_instructions': item.get('special_instructions') or ''
    }


def generate_order_number() -> str:
    count = utils_db.increment_counter(
        keys_structure.counters_pk, keys_structure.counters_sk.format(counter_name=ORDER_COUNTER_NAME)
    )
    return f'{ORDER_NUMBER_PREFIX}{int(time.time() * 1000)}{count:04d}'


def timeline_entry(status: str, note: str, timestamp: Optional[str] = None) -> Dict:
    return {'status': status, 'timestamp': timestamp or utils_data.now_iso(), 'note': note}


def validate_status_transition(current: str, new: str):
    """
    Statuses only move forward along the progression, skipping steps is allowed.
    Any non-terminal order can be cancelled.
    """
    if current in ORDER_TERMINAL_STATUSES:
        raise exceptions.ValidationException(f'Order is already {current} and cannot be updated')
    if new == ORDER_CANCELLED:
        return
    if new not in ORDER_PROGRESSION or ORDER_PROGRESSION.index(new) <= ORDER_PROGRESSION.index(current):
        raise exceptions.ValidationException(f'Cannot change order status from {current} to {new}')


def calculate_restaurant_rating(restaurant_id: str) -> Tuple[Decimal, int]:
    records = get_restaurant_order_records(restaurant_id, Attr('rating.rated_at').exists(), consistent_read=True)
    if not records:
        return Decimal('0'), 0
    total = sum(Decimal(str(record['rating']['overall'])) for record in records)
    average = (total / len(records)).quantize(RATING_PRECISION, rounding=ROUND_HALF_UP)
    logger.info(f"calculate_restaurant_rating ::: {restaurant_id=} {average=} count={len(records)}")
    return average, len(records)


def get_restaurant_order_records(restaurant_id: str, filter_expression=None, consistent_read=False) -> List[Dict]:
    return utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.orders_pk.format(restaurant_id=restaurant_id)),
        filter_expression=filter_expression,
        consistent_read=consistent_read
    )


def get_customer_order_records(customer_id: str, filter_expression=None) -> List[Dict]:
    return utils_db.query_items_paged(
        Key('gsi_customer_pk').eq(keys_structure.gsi_customer_orders_pk.format(customer_id=customer_id)),
        filter_expression=filter_expression,
        index_name=keys_structure.gsi_customer_orders
    )


def get_all_order_records(filter_expression=None) -> List[Dict]:
    """
    Orders of every restaurant, including restaurants deleted since,
    found through the order reference records
    """
    refs = utils_db.query_items_paged(Key('partkey').eq(keys_structure.order_refs_pk))
    records = []
    for restaurant_id in sorted({ref['restaurant_id'] for ref in refs}):
        records.extend(get_restaurant_order_records(restaurant_id, filter_expression))
    return records


def sort_newest_first(orders: List[Order]) -> List[Order]:
    return sorted(orders, key=lambda order: (order.date_created, order.order_number or ''), reverse=True)


@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_get_my_orders(request) -> Response:
    query_params = request.query_params or {}
    page, limit = utils_data.get_pagination_params(query_params, ORDERS_PAGE_LIMIT, MAX_PAGE_LIMIT)
    filter_expression = Attr('status_').eq(query_params['status']) if query_params.get('status') else None

    records = get_customer_order_records(request.auth_result['user_id'], filter_expression)
    orders = sort_newest_first([Order(**record) for record in records])
    page_items, pagination = utils_data.paginate(orders, page, limit)
    return utils_app.success_response(data=[order.to_ui() for order in page_items], pagination=pagination)


@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_get_restaurant_orders(request, restaurant_id) -> Response:
    utils_auth.check_role(request, RESTAURANT_MANAGER_ROLES)
    query_params = request.query_params or {}
    page, limit = utils_data.get_pagination_params(query_params, RESTAURANT_ORDERS_PAGE_LIMIT, MAX_PAGE_LIMIT)
    day = None
    if query_params.get('date'):
        try:
            day = datetime.fromisoformat(query_params['date']).date()
        except ValueError:
            raise exceptions.ValidationException(
                'Validation failed', errors=[{'field': 'date', 'message': 'Date must be in ISO format'}]
            )

    restaurant = Restaurant.init_get_by_id(restaurant_id)
    if not restaurant.is_managed_by(request.auth_result):
        raise exceptions.AccessDenied('Not authorized to view these orders')

    filter_expression = Attr('status_').eq(query_params['status']) if query_params.get('status') else None
    orders = [Order(**record) for record in get_restaurant_order_records(restaurant_id, filter_expression)]
    if day is not None:
        orders = [order for order in orders if datetime.fromisoformat(order.date_created).date() == day]

    page_items, pagination = utils_data.paginate(sort_newest_first(orders), page, limit)
    return utils_app.success_response(data=[order.to_ui() for order in page_items], pagination=pagination)
