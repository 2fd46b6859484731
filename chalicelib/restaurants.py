import re
from decimal import Decimal
from typing import Tuple, List, Dict, Optional
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from chalice import Response

from chalicelib import pricing
from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import (
    CUISINES, PAYMENT_METHODS, RESTAURANT_PENDING, RESTAURANT_APPROVED, RESTAURANT_REJECTED, RESTAURANT_STATUSES,
    RESTAURANT_ADMIN_STATUSES, RESTAURANT_MANAGER_ROLES, ROLE_ADMIN, DEFAULT_DELIVERY_RADIUS_KM,
    DEFAULT_SEARCH_RADIUS_KM, DEFAULT_ESTIMATED_DELIVERY_TIME, RESTAURANTS_PAGE_LIMIT, MAX_PAGE_LIMIT
)
from chalicelib.constants.status_codes import http201
from chalicelib.utils import auth as utils_auth, data as utils_data, exceptions, db as utils_db, app as utils_app
from chalicelib.utils.logger import logger
from chalicelib.utils.validation import Validator

FEATURES = ('Delivery', 'Pickup', 'Dine-in', 'Vegetarian', 'Vegan', 'Halal', 'Kosher', 'Gluten-free')
SORT_FIELDS = ('rating', 'name', 'delivery_time')
NESTED_FIELDS = ('address', 'images', 'business_info', 'delivery_info', 'operating_hours')


class Restaurant(EntityBase):
    pk = keys_structure.restaurants_pk
    sk = keys_structure.restaurants_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'owner_id': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'name': lambda x: isinstance(x, str),
        'email': lambda x: isinstance(x, str),
        'phone': lambda x: isinstance(x, str),
        'description': lambda x: isinstance(x, str),
        'cuisine': lambda x: isinstance(x, list) and len(x) > 0,
        'address': lambda x: isinstance(x, dict),
        'images': lambda x: isinstance(x, dict),
        'business_info': lambda x: isinstance(x, dict),
        'delivery_info': lambda x: isinstance(x, dict),
        'is_open': lambda x: isinstance(x, bool),
        'is_active': lambda x: isinstance(x, bool),
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'operating_hours': lambda x: isinstance(x, dict),
        'features': lambda x: isinstance(x, list),
        'payment_methods': lambda x: isinstance(x, list)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.owner_id: str = kwargs.get('owner_id')
        self.name: str = kwargs.get('name')
        self.email: str = kwargs.get('email')
        self.phone: str = kwargs.get('phone')
        self.description: str = kwargs.get('description')
        self.cuisine: List[str] = kwargs.get('cuisine') or []
        self.address: Dict = kwargs.get('address') or {}
        self.images: Dict = kwargs.get('images') or {}
        self.business_info: Dict = kwargs.get('business_info') or {}
        self.operating_hours: Dict = kwargs.get('operating_hours') or {}
        self.delivery_info: Dict = kwargs.get('delivery_info') or {}
        self.rating: Dict = kwargs.get('rating') or {'average': Decimal('0'), 'count': 0}
        self.status_: str = kwargs.get('status_') or RESTAURANT_PENDING
        self.rejection_reason: Optional[str] = kwargs.get('rejection_reason')
        self.is_active: bool = kwargs.get('is_active', True)
        self.is_open: bool = kwargs.get('is_open', True)
        self.features: List[str] = kwargs.get('features') or ['Delivery']
        self.payment_methods: List[str] = kwargs.get('payment_methods') or ['Cash', 'Card']
        self.total_orders: int = int(kwargs.get('total_orders') or 0)
        self.total_revenue: Decimal = pricing.to_money(kwargs.get('total_revenue') or 0)
        self.date_created: str = kwargs.get('date_created') or utils_data.now_iso()
        self.date_updated: str = kwargs.get('date_updated') or utils_data.now_iso()
        self.request_body: Dict = {}
        self.record_type = 'restaurant'

    @classmethod
    @utils_auth.authenticate_class
    def init_request_create(cls, request):
        logger.info("init_request_create ::: started")
        owner_id = request.auth_result['user_id']
        fields = validate_restaurant_fields(utils_data.parse_raw_body(request))
        if get_restaurants_by_owner(owner_id):
            raise exceptions.ConflictException('You already have a registered restaurant')
        return cls(id_=str(uuid4()), owner_id=owner_id, **fields)

    @classmethod
    def init_get_by_id(cls, restaurant_id):
        logger.info("init_get_by_id ::: started")
        c = cls(restaurant_id)
        try:
            c.__init__(**c._get_db_item())
        except exceptions.RecordNotFound:
            raise exceptions.RecordNotFound('Restaurant not found')
        return c

    @classmethod
    @utils_auth.authenticate_class
    def init_request_manage(cls, request, restaurant_id):
        """
        Restaurant owner or admin
        """
        logger.info("init_request_manage ::: started")
        utils_auth.check_role(request, RESTAURANT_MANAGER_ROLES)
        c = cls.init_get_by_id(restaurant_id)
        if not c.is_managed_by(request.auth_result):
            raise exceptions.AccessDenied('Not authorized to update this restaurant')
        c.request_body = utils_data.parse_raw_body(request)
        c.request_data = request.auth_result
        return c

    @classmethod
    @utils_auth.authenticate_class
    def init_request_admin(cls, request, restaurant_id):
        logger.info("init_request_admin ::: started")
        utils_auth.check_role(request, (ROLE_ADMIN,))
        c = cls.init_get_by_id(restaurant_id)
        c.request_body = utils_data.parse_raw_body(request)
        c.request_data = request.auth_result
        return c

    @staticmethod
    @utils_app.log_start_finish
    def endpoint_get_all(request) -> Response:
        query_params = request.query_params or {}
        page, limit = utils_data.get_pagination_params(query_params, RESTAURANTS_PAGE_LIMIT, MAX_PAGE_LIMIT)
        validator = Validator(query_params)
        min_rating = validator.number('rating', 0, 5, required=False, message='Rating must be between 0 and 5')
        lat = validator.number('lat', -90, 90, required=False, message='Latitude must be a number')
        lng = validator.number('lng', -180, 180, required=False, message='Longitude must be a number')
        radius = validator.number('radius', 0, required=False, message='Radius must be a positive number')
        sort_by = validator.one_of('sort_by', SORT_FIELDS, required=False) or 'rating'
        sort_order = validator.one_of('sort_order', ('asc', 'desc'), required=False) or 'desc'
        validator.raise_if_errors()

        restaurants = get_listed_restaurants()
        cuisine = query_params.get('cuisine')
        if cuisine:
            restaurants = [r for r in restaurants if cuisine.lower() in [c.lower() for c in r.cuisine]]
        if min_rating is not None:
            restaurants = [r for r in restaurants if Decimal(str(r.rating.get('average', 0))) >= min_rating]
        search = (query_params.get('search') or '').strip().lower()
        if search:
            restaurants = [r for r in restaurants if r.matches_search(search)]
        if lat is not None and lng is not None:
            radius_km = float(radius if radius is not None else DEFAULT_SEARCH_RADIUS_KM)
            restaurants = [r for r in restaurants if r.distance_to(lat, lng) is not None
                           and r.distance_to(lat, lng) <= radius_km]

        restaurants.sort(key=lambda r: r.sort_key(sort_by), reverse=sort_order == 'desc')
        page_items, pagination = utils_data.paginate(restaurants, page, limit)
        logger.info(f"endpoint_get_all ::: returning restaurants={[r.id_ for r in page_items]}")
        return utils_app.success_response(data=[r.to_public_ui() for r in page_items], pagination=pagination)

    @utils_app.log_start_finish
    def endpoint_get_by_id(self) -> Response:
        return utils_app.success_response(data=self.to_public_ui())

    @utils_app.log_start_finish
    def endpoint_create(self) -> Response:
        self._create_db_record()
        return utils_app.success_response(
            data=self._to_ui(),
            message='Restaurant registered successfully. Pending admin approval.',
            status_code=http201
        )

    @utils_app.log_start_finish
    def endpoint_update(self) -> Response:
        current = self._to_dict()
        merged = {key: current.get(key) for key in self._update_fields_whitelist()}
        for key, value in self.request_body.items():
            if key in NESTED_FIELDS and isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value
        fields = validate_restaurant_fields(merged)
        if utils_auth.is_admin(self.request_data) and isinstance(self.request_body.get('is_active'), bool):
            fields['is_active'] = self.request_body['is_active']
        for key, value in fields.items():
            setattr(self, key, value)
        self._update_db_record()
        return utils_app.success_response(data=self._to_ui(), message='Restaurant updated successfully')

    @utils_app.log_start_finish
    def endpoint_delete(self) -> Response:
        menu_item_records = utils_db.query_items_paged(
            Key('partkey').eq(keys_structure.menu_items_pk.format(restaurant_id=self.id_))
        )
        for record in menu_item_records:
            utils_db.delete_db_record({'partkey': record['partkey'], 'sortkey': record['sortkey']})
            utils_db.delete_db_record({
                'partkey': keys_structure.menu_item_refs_pk,
                'sortkey': keys_structure.menu_item_refs_sk.format(menu_item_id=record['id_'])
            })
        self._delete_db_record()
        logger.info(f"endpoint_delete ::: restaurant {self.id_} and {len(menu_item_records)} menu items deleted")
        return utils_app.success_response(message='Restaurant deleted successfully')

    @utils_app.log_start_finish
    def endpoint_update_status(self) -> Response:
        validator = Validator(self.request_body)
        status = validator.one_of('status', RESTAURANT_ADMIN_STATUSES)
        validator.raise_if_errors()
        self.set_status(status, reason=self.request_body.get('reason'))
        return utils_app.success_response(data=self._to_ui(), message=f'Restaurant status updated to {status}')

    def set_status(self, status: str, reason: Optional[str] = None):
        if status not in RESTAURANT_STATUSES:
            raise exceptions.ValidationException(f'Unknown restaurant status {status}')
        self.status_ = status
        fields = {'status_': status}
        if status == RESTAURANT_REJECTED and reason:
            self.rejection_reason = reason
            fields['rejection_reason'] = reason
        self._update_db_fields(**fields)

    def update_rating(self, average: Decimal, count: int):
        self.rating = {'average': average, 'count': count}
        self._update_db_fields(rating=self.rating)

    def is_managed_by(self, auth_result: Dict) -> bool:
        return auth_result.get('role') == ROLE_ADMIN or auth_result.get('user_id') == self.owner_id

    def is_accepting_orders(self) -> bool:
        return bool(self.is_active) and self.status_ == RESTAURANT_APPROVED

    def delivery_fee(self) -> Decimal:
        return pricing.to_money(self.delivery_info.get('delivery_fee', 0))

    def minimum_order(self) -> Decimal:
        return pricing.to_money(self.delivery_info.get('minimum_order', 0))

    def matches_search(self, search: str) -> bool:
        haystack = [self.name or '', self.description or '', *self.cuisine]
        return any(search in value.lower() for value in haystack)

    def distance_to(self, lat, lng) -> Optional[float]:
        coordinates = self.address.get('coordinates') or {}
        if coordinates.get('lat') is None or coordinates.get('lng') is None:
            return None
        return utils_data.distance_km(lat, lng, coordinates['lat'], coordinates['lng'])

    def sort_key(self, sort_by: str):
        if sort_by == 'name':
            return (self.name or '').lower()
        if sort_by == 'delivery_time':
            minutes = re.match(r'\d+', str(self.delivery_info.get('estimated_delivery_time') or ''))
            return int(minutes.group()) if minutes else 0
        return Decimal(str(self.rating.get('average', 0)))

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(restaurant_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'owner_id': self.owner_id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'description': self.description,
            'cuisine': self.cuisine,
            'address': self.address,
            'images': self.images,
            'business_info': self.business_info,
            'operating_hours': self.operating_hours,
            'delivery_info': self.delivery_info,
            'rating': self.rating,
            'status_': self.status_,
            'rejection_reason': self.rejection_reason,
            'is_active': self.is_active,
            'is_open': self.is_open,
            'features': self.features,
            'payment_methods': self.payment_methods,
            'total_orders': self.total_orders,
            'total_revenue': self.total_revenue,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }

    def to_ui(self):
        return self._to_ui()

    def to_public_ui(self):
        item = self._to_ui()
        item.pop('business_info', None)
        return item

    def to_summary(self):
        return {
            'id': self.id_,
            'name': self.name,
            'phone': self.phone,
            'address': self.address,
            'logo': self.images.get('logo')
        }


def get_all_restaurant_records(filter_expression=None) -> List[Dict]:
    return utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.restaurants_pk),
        filter_expression=filter_expression
    )


def get_listed_restaurants() -> List[Restaurant]:
    records = get_all_restaurant_records(
        Attr('status_').eq(RESTAURANT_APPROVED) & Attr('is_active').eq(True)
    )
    return [Restaurant(**record) for record in records]


def get_restaurants_by_owner(owner_id: str) -> List[Restaurant]:
    return [Restaurant(**record) for record in get_all_restaurant_records(Attr('owner_id').eq(owner_id))]


def validate_restaurant_fields(body: Dict) -> Dict:
    """
    Validates a full restaurant body and returns normalized fields ready to be stored.
    Raise ValidationException with all field errors
    """
    validator = Validator(body)
    name = validator.string('name', 2, 100, message='Name must be between 2 and 100 characters')
    email = validator.email('email')
    phone = validator.phone('phone')
    description = validator.string('description', 10, 500,
                                   message='Description must be between 10 and 500 characters')
    cuisine = validator.list_of('cuisine', 1, message='At least one cuisine type is required')
    for item in cuisine or []:
        if item not in CUISINES:
            validator.add_error('cuisine', f'Unknown cuisine {item}')

    address = {
        'street': validator.string('address.street', message='Street address is required'),
        'city': validator.string('address.city', message='City is required'),
        'state': validator.string('address.state', message='State is required'),
        'zip_code': validator.string('address.zip_code', message='Zip code is required'),
        'coordinates': {
            'lat': validator.number('address.coordinates.lat', -90, 90, message='Valid latitude is required'),
            'lng': validator.number('address.coordinates.lng', -180, 180, message='Valid longitude is required')
        }
    }
    images = _drop_none({
        'logo': validator.url('images.logo', message='Valid logo URL is required'),
        'banner': validator.url('images.banner', required=False),
        'gallery': validator.list_of('images.gallery', required=False)
    })
    business_info = _drop_none({
        'license_number': validator.string('business_info.license_number', message='License number is required'),
        'tax_id': validator.string('business_info.tax_id', message='Tax ID is required'),
        'established_year': validator.number('business_info.established_year', 1800, 2100, required=False,
                                             integer=True),
        'website': validator.url('business_info.website', required=False)
    })

    delivery_fee = validator.number('delivery_info.delivery_fee', 0, required=False)
    minimum_order = validator.number('delivery_info.minimum_order', 0, required=False)
    delivery_radius = validator.number('delivery_info.delivery_radius', 0, required=False)
    free_delivery_threshold = validator.number('delivery_info.free_delivery_threshold', 0, required=False)
    delivery_info = _drop_none({
        'delivery_fee': pricing.to_money(delivery_fee or 0),
        'minimum_order': pricing.to_money(minimum_order or 0),
        'delivery_radius': delivery_radius if delivery_radius is not None else DEFAULT_DELIVERY_RADIUS_KM,
        'estimated_delivery_time': validator.string('delivery_info.estimated_delivery_time', required=False)
        or DEFAULT_ESTIMATED_DELIVERY_TIME,
        'free_delivery_threshold': pricing.to_money(free_delivery_threshold)
        if free_delivery_threshold is not None else None
    })

    features = validator.list_of('features', required=False)
    for item in features or []:
        if item not in FEATURES:
            validator.add_error('features', f'Unknown feature {item}')
    payment_methods = validator.list_of('payment_methods', required=False)
    for item in payment_methods or []:
        if item not in PAYMENT_METHODS:
            validator.add_error('payment_methods', f'Unknown payment method {item}')
    operating_hours = validator.mapping('operating_hours', required=False)
    is_open = validator.boolean('is_open', required=False)
    validator.raise_if_errors()

    return _drop_none({
        'name': name,
        'email': email,
        'phone': phone,
        'description': description,
        'cuisine': cuisine,
        'address': address,
        'images': images,
        'business_info': business_info,
        'delivery_info': delivery_info,
        'operating_hours': operating_hours,
        'features': features,
        'payment_methods': payment_methods,
        'is_open': is_open
    })


def _drop_none(item: Dict) -> Dict:
    return {key: value for key, value in item.items() if value is not None}
