from copy import deepcopy
from typing import Tuple, List, Dict, Optional
from uuid import uuid4

from chalice import Response

from chalicelib import pricing
from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.menu_items import MenuItem
from chalicelib.restaurants import Restaurant
from chalicelib.utils import auth as utils_auth, app as utils_app, data as utils_data, exceptions
from chalicelib.utils.logger import logger
from chalicelib.utils.validation import Validator


class Cart(EntityBase):
    """
    One cart per user, scoped to a single restaurant.
    Lines keep the menu item id and the selected customizations only,
    prices are always resolved from the live menu.
    """
    pk = keys_structure.carts_pk
    sk = keys_structure.carts_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'restaurant_id': lambda x: isinstance(x, str),
        'items': lambda x: isinstance(x, list),
        'totals': lambda x: isinstance(x, dict),
        'last_updated': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.restaurant_id: Optional[str] = kwargs.get('restaurant_id')
        self.items: List[Dict] = kwargs.get('items') or []
        self.totals: Dict = kwargs.get('totals') or {'subtotal': pricing.to_money(0), 'item_count': 0}
        self.last_updated: str = kwargs.get('last_updated') or utils_data.now_iso()
        self.date_created: str = kwargs.get('date_created') or utils_data.now_iso()
        self.date_updated: str = kwargs.get('date_updated') or utils_data.now_iso()
        self.is_stored: bool = False
        self.request_body: Dict = {}
        self.record_type = 'cart'

    @classmethod
    def init_by_user_id(cls, user_id):
        c = cls(user_id)
        try:
            c.__init__(**c._get_db_item())
            c.is_stored = True
        except exceptions.RecordNotFound:
            logger.info(f"init_by_user_id ::: no cart for user_id={user_id}")
        return c

    @classmethod
    @utils_auth.authenticate_class
    def init_endpoint(cls, request):
        logger.info("init_endpoint ::: started")
        c = cls.init_by_user_id(request.auth_result['user_id'])
        c.request_body = utils_data.parse_raw_body(request)
        return c

    @utils_app.log_start_finish
    def endpoint_get_cart(self) -> Response:
        if not self.is_stored:
            return utils_app.success_response(data=self.empty_ui())
        lines, dropped = self._resolve_lines()
        if dropped:
            logger.info(f"endpoint_get_cart ::: dropping unavailable lines={dropped}")
            self._save(lines)
        return utils_app.success_response(data=self.to_ui(lines))

    @utils_app.log_start_finish
    def endpoint_add_item(self) -> Response:
        validator = Validator(self.request_body)
        menu_item_id = validator.string('menu_item', message='Valid menu item ID is required')
        quantity = validator.number('quantity', 1, integer=True, message='Quantity must be at least 1')
        validator.list_of('customizations', required=False, message='Customizations must be an array')
        special_instructions = validator.string('special_instructions', 0, 200, required=False)
        validator.raise_if_errors()

        try:
            menu_item = MenuItem.init_get_by_id(menu_item_id)
        except exceptions.RecordNotFound:
            raise exceptions.ValidationException('Menu item is not available')
        if not menu_item.is_available:
            raise exceptions.ValidationException('Menu item is not available')
        try:
            restaurant = Restaurant.init_get_by_id(menu_item.restaurant_id)
        except exceptions.RecordNotFound:
            raise exceptions.ValidationException('Restaurant is not available')
        if not restaurant.is_accepting_orders():
            raise exceptions.ValidationException('Restaurant is not available')
        customizations = menu_item.resolve_customizations(self.request_body.get('customizations'))

        if self.restaurant_id != restaurant.id_:
            if self.items:
                logger.info(f"endpoint_add_item ::: switching cart from restaurant={self.restaurant_id} "
                            f"to restaurant={restaurant.id_}, {len(self.items)} lines discarded")
            self.restaurant_id = restaurant.id_
            self.items = []

        line = self._find_line(menu_item.id_, customizations)
        if line is not None:
            line['quantity'] = int(line['quantity']) + quantity
            if special_instructions:
                line['special_instructions'] = special_instructions
        else:
            self.items.append({
                'id': str(uuid4()),
                'menu_item_id': menu_item.id_,
                'quantity': quantity,
                'customizations': customizations,
                'special_instructions': special_instructions or '',
                'added_at': utils_data.now_iso()
            })

        lines, _ = self._resolve_lines()
        self._save(lines)
        return utils_app.success_response(data=self.to_ui(lines), message='Item added to cart')

    @utils_app.log_start_finish
    def endpoint_update_item(self, item_id) -> Response:
        validator = Validator(self.request_body)
        quantity = validator.number('quantity', 0, integer=True, message='Quantity must be 0 or greater')
        validator.raise_if_errors()

        line = self._get_line(item_id)
        if quantity == 0:
            self.items.remove(line)
        else:
            line['quantity'] = quantity
        lines, _ = self._resolve_lines()
        self._save(lines)
        return utils_app.success_response(data=self.to_ui(lines), message='Cart updated')

    @utils_app.log_start_finish
    def endpoint_remove_item(self, item_id) -> Response:
        self.items.remove(self._get_line(item_id))
        lines, _ = self._resolve_lines()
        self._save(lines)
        return utils_app.success_response(data=self.to_ui(lines), message='Item removed from cart')

    @utils_app.log_start_finish
    def endpoint_clear_cart(self) -> Response:
        if self.is_stored:
            self._delete_db_record()
        return utils_app.success_response(message='Cart cleared successfully')

    def _find_line(self, menu_item_id: str, customizations: List[Dict]) -> Optional[Dict]:
        for line in self.items:
            if line['menu_item_id'] == menu_item_id and (line.get('customizations') or []) == customizations:
                return line
        return None

    def _get_line(self, item_id: str) -> Dict:
        if not self.is_stored:
            raise exceptions.RecordNotFound('Cart not found')
        for line in self.items:
            if line['id'] == item_id:
                return line
        raise exceptions.RecordNotFound('Item not found in cart')

    def _resolve_lines(self) -> Tuple[List[Dict], List[str]]:
        """
        Joins every line with its live menu item.
        Lines whose item is gone or unavailable are dropped from self.items.
        :return:
        (resolved lines, ids of dropped lines)
        """
        resolved, kept, dropped = [], [], []
        menu_items: Dict[str, Optional[MenuItem]] = {}
        for line in self.items:
            menu_item_id = line['menu_item_id']
            if menu_item_id not in menu_items:
                try:
                    menu_items[menu_item_id] = MenuItem.init_by_restaurant(self.restaurant_id, menu_item_id)
                except exceptions.RecordNotFound:
                    menu_items[menu_item_id] = None
            menu_item = menu_items[menu_item_id]
            if menu_item is None or not menu_item.is_available:
                dropped.append(line['id'])
                continue
            kept.append(line)
            quantity = int(line['quantity'])
            resolved.append({
                **deepcopy(line),
                'quantity': quantity,
                'menu_item': menu_item.to_summary(),
                'calculated_price': pricing.effective_price(menu_item.price, line.get('customizations')),
                'item_total': pricing.line_total(menu_item.price, line.get('customizations'), quantity)
            })
        self.items = kept
        return resolved, dropped

    def _save(self, lines: List[Dict]):
        self.totals = pricing.cart_totals(lines)
        self.last_updated = utils_data.now_iso()
        self.date_updated = self.last_updated
        self._create_db_record()
        self.is_stored = True

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(user_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'restaurant_id': self.restaurant_id,
            'items': self.items,
            'totals': self.totals,
            'last_updated': self.last_updated,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }

    @staticmethod
    def empty_ui() -> Dict:
        return {
            'items': [],
            'totals': {'subtotal': pricing.to_money(0), 'item_count': 0},
            'restaurant': None
        }

    def to_ui(self, lines: List[Dict]) -> Dict:
        restaurant = None
        if self.restaurant_id:
            try:
                restaurant = Restaurant.init_get_by_id(self.restaurant_id).to_summary()
            except exceptions.RecordNotFound:
                logger.warning(f"to_ui ::: restaurant={self.restaurant_id} of cart {self.id_} not found")
        return {
            'items': lines,
            'totals': pricing.cart_totals(lines),
            'restaurant': restaurant,
            'last_updated': self.last_updated
        }
