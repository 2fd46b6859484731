from decimal import Decimal
from typing import List, Dict, Tuple, Optional
from uuid import uuid4

from boto3.dynamodb.conditions import Key
from chalice import Response

from chalicelib import pricing
from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import MENU_CATEGORIES, SPICE_LEVELS, RESTAURANT_MANAGER_ROLES
from chalicelib.constants.status_codes import http201
from chalicelib.restaurants import Restaurant, get_all_restaurant_records
from chalicelib.utils import auth as utils_auth, data as utils_data, exceptions, db as utils_db, app as utils_app
from chalicelib.utils.logger import logger
from chalicelib.utils.validation import Validator


class MenuItem(EntityBase):
    pk = keys_structure.menu_items_pk
    sk = keys_structure.menu_items_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'restaurant_id': lambda x: isinstance(x, str),
        'created_by': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'name': lambda x: isinstance(x, str),
        'description': lambda x: isinstance(x, str),
        'category': lambda x: x in MENU_CATEGORIES,
        'price': lambda x: isinstance(x, Decimal) and x >= 0,
        'images': lambda x: isinstance(x, list) and len(x) > 0,
        'is_available': lambda x: isinstance(x, bool),
        'customizations': lambda x: isinstance(x, list),
        'date_updated': lambda x: isinstance(x, str),
        'updated_by': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'original_price': lambda x: isinstance(x, Decimal) and x >= 0,
        'ingredients': lambda x: isinstance(x, list),
        'allergens': lambda x: isinstance(x, list),
        'dietary_tags': lambda x: isinstance(x, list),
        'spice_level': lambda x: x in SPICE_LEVELS,
        'preparation_time': lambda x: isinstance(x, int) and x >= 0,
        'is_popular': lambda x: isinstance(x, bool),
        'is_featured': lambda x: isinstance(x, bool)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.restaurant_id: str = kwargs.get('restaurant_id')
        self.name: str = kwargs.get('name')
        self.description: str = kwargs.get('description')
        self.category: str = kwargs.get('category')
        self.price: Decimal = pricing.to_money(kwargs.get('price')) if \
            type(kwargs.get('price')) in [int, float, Decimal] else None
        self.original_price: Decimal = pricing.to_money(kwargs.get('original_price')) if \
            type(kwargs.get('original_price')) in [int, float, Decimal] else None
        self.images: List[str] = kwargs.get('images') or []
        self.ingredients: List[str] = kwargs.get('ingredients') or []
        self.allergens: List[str] = kwargs.get('allergens') or []
        self.dietary_tags: List[str] = kwargs.get('dietary_tags') or []
        self.spice_level: Optional[str] = kwargs.get('spice_level')
        self.preparation_time: Optional[int] = int(kwargs['preparation_time']) if \
            kwargs.get('preparation_time') is not None else None
        self.is_available: bool = kwargs.get('is_available', True)
        self.is_popular: bool = kwargs.get('is_popular', False)
        self.is_featured: bool = kwargs.get('is_featured', False)
        self.customizations: List[Dict] = kwargs.get('customizations') or []
        self.created_by: str = kwargs.get('created_by')
        self.updated_by: str = kwargs.get('updated_by') or self.created_by
        self.date_created: str = kwargs.get('date_created') or utils_data.now_iso()
        self.date_updated: str = kwargs.get('date_updated') or utils_data.now_iso()
        self.request_body: Dict = {}
        self.record_type = 'menu_item'

    @classmethod
    @utils_auth.authenticate_class
    def init_request_create(cls, request):
        logger.info("init_request_create ::: started")
        utils_auth.check_role(request, RESTAURANT_MANAGER_ROLES)
        request_body = utils_data.parse_raw_body(request)
        validator = Validator(request_body)
        restaurant_id = validator.string('restaurant', message='Valid restaurant ID is required')
        validator.raise_if_errors()
        restaurant = Restaurant.init_get_by_id(restaurant_id)
        if not restaurant.is_managed_by(request.auth_result):
            raise exceptions.AccessDenied('Not authorized to add menu items to this restaurant')
        fields = validate_menu_item_fields(request_body)
        user_id = request.auth_result['user_id']
        return cls(id_=str(uuid4()), restaurant_id=restaurant.id_, created_by=user_id, updated_by=user_id, **fields)

    @classmethod
    def init_get_by_id(cls, menu_item_id):
        """
        Item's restaurant is read from the menu item reference record
        """
        logger.info("init_get_by_id ::: started")
        try:
            item_ref = utils_db.get_db_item(
                keys_structure.menu_item_refs_pk, keys_structure.menu_item_refs_sk.format(menu_item_id=menu_item_id)
            )
        except exceptions.RecordNotFound:
            raise exceptions.RecordNotFound('Menu item not found')
        return cls.init_by_restaurant(item_ref['restaurant_id'], menu_item_id)

    @classmethod
    def init_by_restaurant(cls, restaurant_id, menu_item_id):
        c = cls(menu_item_id, restaurant_id=restaurant_id)
        try:
            c.__init__(**c._get_db_item())
        except exceptions.RecordNotFound:
            raise exceptions.RecordNotFound('Menu item not found')
        return c

    @classmethod
    @utils_auth.authenticate_class
    def init_request_manage(cls, request, menu_item_id):
        """
        Owner of item's restaurant or admin
        """
        logger.info("init_request_manage ::: started")
        utils_auth.check_role(request, RESTAURANT_MANAGER_ROLES)
        c = cls.init_get_by_id(menu_item_id)
        restaurant = Restaurant.init_get_by_id(c.restaurant_id)
        if not restaurant.is_managed_by(request.auth_result):
            raise exceptions.AccessDenied('Not authorized to manage this menu item')
        c.request_body = utils_data.parse_raw_body(request)
        c.updated_by = request.auth_result['user_id']
        return c

    @staticmethod
    @utils_app.log_start_finish
    def endpoint_get_menu_items(request, restaurant_id) -> Response:
        query_params = request.query_params or {}
        validator = Validator(query_params)
        category = validator.string('category', required=False)
        available = query_params.get('available')
        if available is not None and available.lower() not in ('true', 'false'):
            validator.add_error('available', 'Available must be a boolean')
        validator.raise_if_errors()

        menu_items = get_restaurant_menu_items(restaurant_id)
        if utils_data.parse_bool(available, default=True):
            menu_items = [item for item in menu_items if item.is_available]
        if category:
            menu_items = [item for item in menu_items if item.category == category]
        search = (query_params.get('search') or '').strip().lower()
        if search:
            menu_items = [item for item in menu_items if item.matches_search(search)]

        menu_items.sort(key=lambda item: (item.category or '', (item.name or '').lower()))
        grouped: Dict[str, List[Dict]] = {}
        for item in menu_items:
            grouped.setdefault(item.category, []).append(item.to_ui())
        logger.info(f"endpoint_get_menu_items ::: returning menu items={[item.id_ for item in menu_items]}")
        return utils_app.success_response(data=grouped, total=len(menu_items))

    @staticmethod
    @utils_app.log_start_finish
    def endpoint_get_categories() -> Response:
        categories = set()
        for restaurant in get_all_restaurant_records():
            records = utils_db.query_items_paged(
                Key('partkey').eq(keys_structure.menu_items_pk.format(restaurant_id=restaurant['id_'])),
                projection_expression='category'
            )
            categories.update(record['category'] for record in records if record.get('category'))
        categories = sorted(categories)
        return utils_app.success_response(data=categories)

    @utils_app.log_start_finish
    def endpoint_get_by_id(self) -> Response:
        item = self.to_ui()
        try:
            item['restaurant'] = Restaurant.init_get_by_id(self.restaurant_id).to_summary()
        except exceptions.RecordNotFound:
            item['restaurant'] = None
        return utils_app.success_response(data=item)

    @utils_app.log_start_finish
    def endpoint_create_menu_item(self) -> Response:
        self._create_db_record()
        return utils_app.success_response(data=self.to_ui(), message='Menu item added successfully',
                                          status_code=http201)

    @utils_app.log_start_finish
    def endpoint_update_menu_item(self) -> Response:
        current = self._to_dict()
        merged = {key: current.get(key) for key in self._update_fields_whitelist()}
        merged.update(self.request_body)
        fields = validate_menu_item_fields(merged)
        for key, value in fields.items():
            setattr(self, key, value)
        self._update_db_record()
        return utils_app.success_response(data=self.to_ui(), message='Menu item updated successfully')

    @utils_app.log_start_finish
    def endpoint_delete_menu_item(self) -> Response:
        self._delete_db_record()
        return utils_app.success_response(message='Menu item deleted successfully')

    def resolve_customizations(self, selected: Optional[List[Dict]]) -> List[Dict]:
        """
        Matches client's selection against item's option groups.
        Returns selection in the menu's order with prices taken from the menu,
        so two equal selections always compare equal.
        """
        selected = selected or []
        if not isinstance(selected, list):
            raise exceptions.ValidationException('Customizations must be a list')
        requested: Dict[str, List[str]] = {}
        for customization in selected:
            if not isinstance(customization, dict) or not isinstance(customization.get('name'), str):
                raise exceptions.ValidationException('Customization name is required')
            options = customization.get('selected_options') or []
            if not isinstance(options, list):
                raise exceptions.ValidationException('selected_options must be a list')
            requested[customization['name']] = [
                option.get('name') if isinstance(option, dict) else option for option in options
            ]

        groups = {group['name']: group for group in self.customizations}
        unknown = [name for name in requested if name not in groups]
        if unknown:
            raise exceptions.ValidationException(f'Unknown customization {unknown[0]} for {self.name}')

        resolved = []
        for group in self.customizations:
            option_names = requested.get(group['name']) or []
            if not option_names:
                if group.get('required'):
                    raise exceptions.ValidationException(f'Customization {group["name"]} is required')
                continue
            if len(option_names) > 1 and not group.get('multi_select'):
                raise exceptions.ValidationException(f'Only one option can be selected for {group["name"]}')
            menu_options = {option['name']: option for option in group.get('options', [])}
            missing = [name for name in option_names if name not in menu_options]
            if missing:
                raise exceptions.ValidationException(f'Unknown option {missing[0]} for {group["name"]}')
            resolved.append({
                'name': group['name'],
                'selected_options': [
                    {'name': option['name'], 'price': pricing.to_money(option.get('price', 0))}
                    for option in group.get('options', []) if option['name'] in option_names
                ]
            })
        return resolved

    def matches_search(self, search: str) -> bool:
        haystack = [self.name or '', self.description or '', *self.ingredients, *self.dietary_tags]
        return any(search in str(value).lower() for value in haystack)

    def to_summary(self):
        return {
            'id': self.id_,
            'name': self.name,
            'price': self.price,
            'images': self.images,
            'is_available': self.is_available
        }

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(restaurant_id=self.restaurant_id), self.sk.format(menu_item_id=self.id_)

    def _ref_key(self) -> Dict:
        return {
            'partkey': keys_structure.menu_item_refs_pk,
            'sortkey': keys_structure.menu_item_refs_sk.format(menu_item_id=self.id_)
        }

    def _create_db_record(self, condition_expression=None) -> None:
        self._init_db_record()
        self._validate_mandatory_fields()
        self._validate_optional_fields()
        utils_db.transact_write_items(
            [
                utils_db.transact_put(self.db_record, condition_expression='attribute_not_exists(partkey)'),
                utils_db.transact_put(
                    {**self._ref_key(), 'record_type': 'menu_item_ref', 'restaurant_id': self.restaurant_id},
                    condition_expression='attribute_not_exists(partkey)'
                )
            ]
        )
        logger.info(f"_create_db_record ::: menu item {self.id_} of restaurant {self.restaurant_id} created")

    def _delete_db_record(self):
        pk, sk = self._get_pk_sk()
        utils_db.transact_write_items([
            utils_db.transact_delete({'partkey': pk, 'sortkey': sk}),
            utils_db.transact_delete(self._ref_key())
        ])
        logger.info(f"_delete_db_record ::: menu item {self.id_} of restaurant {self.restaurant_id} deleted")

    def _to_dict(self):
        return {
            'id_': self.id_,
            'restaurant_id': self.restaurant_id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'price': self.price,
            'original_price': self.original_price,
            'images': self.images,
            'ingredients': self.ingredients,
            'allergens': self.allergens,
            'dietary_tags': self.dietary_tags,
            'spice_level': self.spice_level,
            'preparation_time': self.preparation_time,
            'is_available': self.is_available,
            'is_popular': self.is_popular,
            'is_featured': self.is_featured,
            'customizations': self.customizations,
            'date_created': self.date_created,
            'date_updated': self.date_updated,
            'created_by': self.created_by,
            'updated_by': self.updated_by
        }

    def to_ui(self):
        return self._to_ui()


def get_restaurant_menu_items(restaurant_id: str) -> List[MenuItem]:
    records = utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.menu_items_pk.format(restaurant_id=restaurant_id))
    )
    return [MenuItem(**record) for record in records]


def validate_menu_item_fields(body: Dict) -> Dict:
    validator = Validator(body)
    fields = {
        'name': validator.string('name', 2, 100, message='Name must be between 2 and 100 characters'),
        'description': validator.string('description', 10, 300,
                                        message='Description must be between 10 and 300 characters'),
        'category': validator.one_of('category', MENU_CATEGORIES, message='Category is required'),
        'price': validator.number('price', 0, message='Price must be a positive number'),
        'original_price': validator.number('original_price', 0, required=False),
        'images': validator.list_of('images', 1, message='At least one image is required'),
        'ingredients': validator.list_of('ingredients', required=False),
        'allergens': validator.list_of('allergens', required=False),
        'dietary_tags': validator.list_of('dietary_tags', required=False),
        'spice_level': validator.one_of('spice_level', SPICE_LEVELS, required=False),
        'preparation_time': validator.number('preparation_time', 0, required=False, integer=True),
        'is_available': validator.boolean('is_available', required=False),
        'is_popular': validator.boolean('is_popular', required=False),
        'is_featured': validator.boolean('is_featured', required=False),
        'customizations': _validate_customizations(validator, body.get('customizations'))
    }
    validator.raise_if_errors()
    if fields['price'] is not None:
        fields['price'] = pricing.to_money(fields['price'])
    if fields['original_price'] is not None:
        fields['original_price'] = pricing.to_money(fields['original_price'])
    return {key: value for key, value in fields.items() if value is not None}


def _validate_customizations(validator: Validator, customizations) -> Optional[List[Dict]]:
    if customizations is None:
        return None
    if not isinstance(customizations, list):
        validator.add_error('customizations', 'Customizations must be a list')
        return None
    result = []
    seen = set()
    for index, group in enumerate(customizations):
        field = f'customizations[{index}]'
        if not isinstance(group, dict) or not isinstance(group.get('name'), str) or not group['name'].strip():
            validator.add_error(field, 'Customization name is required')
            continue
        if group['name'] in seen:
            validator.add_error(field, f'Duplicate customization {group["name"]}')
            continue
        seen.add(group['name'])
        options = []
        for option in group.get('options') or []:
            price = utils_data.to_decimal(option.get('price', 0)) if isinstance(option, dict) else None
            if not isinstance(option, dict) or not isinstance(option.get('name'), str) or price is None or price < 0:
                validator.add_error(field, 'Each option needs a name and a non-negative price')
                continue
            options.append({'name': option['name'], 'price': pricing.to_money(price)})
        if not options:
            validator.add_error(field, 'Customization needs at least one option')
            continue
        result.append({
            'name': group['name'],
            'options': options,
            'required': bool(group.get('required', False)),
            'multi_select': bool(group.get('multi_select', False))
        })
    return result
