from chalice import Chalice

from chalicelib import admin, carts, contact, menu_items, orders, restaurants, users
from chalicelib.utils import app as utils_app
from chalicelib.utils.db import Database, init_db
from chalicelib.utils.logger import bind_request_id
from chalicelib.utils.notifications import Mailer, init_mailer

app = Chalice(app_name='food-delivery-marketplace')

init_db(Database.from_env())
init_mailer(Mailer.from_env())


@app.middleware('http')
def request_id_middleware(event, get_response):
    bind_request_id(event)
    return get_response(event)


@app.route('/health-check', methods=['GET'], cors=True)
def health_check():
    return {'health': 'check'}


# AUTH
@app.route('/auth/register', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def register():
    return users.User.init_request_register(app.current_request).endpoint_register()


@app.route('/auth/login', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def login():
    return users.User.endpoint_login(app.current_request)


@app.route('/auth/me', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_me():
    return users.User.init_request_user(app.current_request).endpoint_get_user()


@app.route('/auth/profile', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_profile():
    return users.User.init_request_user(app.current_request).endpoint_get_user()


@app.route('/auth/profile', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_profile():
    return users.User.init_request_user(app.current_request).endpoint_update_profile()


@app.route('/auth/change-password', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def change_password():
    return users.User.init_request_user(app.current_request).endpoint_change_password()


@app.route('/auth/logout', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def logout():
    return users.User.init_request_user(app.current_request).endpoint_logout()


# RESTAURANTS
@app.route('/restaurants', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_restaurants():
    return restaurants.Restaurant.endpoint_get_all(app.current_request)


@app.route('/restaurants/{restaurant_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_restaurant_by_id(restaurant_id):
    return restaurants.Restaurant.init_get_by_id(restaurant_id).endpoint_get_by_id()


@app.route('/restaurants', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_restaurant():
    return restaurants.Restaurant.init_request_create(app.current_request).endpoint_create()


@app.route('/restaurants/{restaurant_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_restaurant(restaurant_id):
    """
    restaurant owner or admin operation
    """
    return restaurants.Restaurant.init_request_manage(app.current_request, restaurant_id).endpoint_update()


@app.route('/restaurants/{restaurant_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def delete_restaurant(restaurant_id):
    """
    admin operation, menu items of the restaurant are deleted too
    """
    return restaurants.Restaurant.init_request_admin(app.current_request, restaurant_id).endpoint_delete()


@app.route('/restaurants/{restaurant_id}/status', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_restaurant_status(restaurant_id):
    """
    admin operation
    """
    return restaurants.Restaurant.init_request_admin(app.current_request, restaurant_id).endpoint_update_status()


# MENU
@app.route('/menu/restaurant/{restaurant_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_restaurant_menu(restaurant_id):
    return menu_items.MenuItem.endpoint_get_menu_items(app.current_request, restaurant_id)


@app.route('/menu/categories/list', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_menu_categories():
    return menu_items.MenuItem.endpoint_get_categories()


@app.route('/menu/{menu_item_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_menu_item(menu_item_id):
    return menu_items.MenuItem.init_get_by_id(menu_item_id).endpoint_get_by_id()


@app.route('/menu', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_menu_item():
    """
    restaurant owner or admin operation
    """
    return menu_items.MenuItem.init_request_create(app.current_request).endpoint_create_menu_item()


@app.route('/menu/{menu_item_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_menu_item(menu_item_id):
    """
    restaurant owner or admin operation
    """
    return menu_items.MenuItem.init_request_manage(app.current_request, menu_item_id).endpoint_update_menu_item()


@app.route('/menu/{menu_item_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def delete_menu_item(menu_item_id):
    """
    restaurant owner or admin operation
    """
    return menu_items.MenuItem.init_request_manage(app.current_request, menu_item_id).endpoint_delete_menu_item()


# CART
@app.route('/cart', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_cart():
    return carts.Cart.init_endpoint(app.current_request).endpoint_get_cart()


@app.route('/cart', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def add_item_to_cart():
    return carts.Cart.init_endpoint(app.current_request).endpoint_add_item()


@app.route('/cart/add', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def add_item_to_cart_explicit():
    return carts.Cart.init_endpoint(app.current_request).endpoint_add_item()


@app.route('/cart/update/{item_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_cart_item(item_id):
    return carts.Cart.init_endpoint(app.current_request).endpoint_update_item(item_id)


@app.route('/cart/remove/{item_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def remove_item_from_cart(item_id):
    return carts.Cart.init_endpoint(app.current_request).endpoint_remove_item(item_id)


@app.route('/cart/clear', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def clear_cart():
    return carts.Cart.init_endpoint(app.current_request).endpoint_clear_cart()


# ORDERS
@app.route('/orders', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_order():
    return orders.Order.init_request_create(app.current_request).endpoint_create_order()


@app.route('/orders', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_orders():
    """
    customer's own orders
    """
    return orders.endpoint_get_my_orders(app.current_request)


@app.route('/orders/restaurant/{restaurant_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_restaurant_orders(restaurant_id):
    """
    restaurant owner or admin operation
    """
    return orders.endpoint_get_restaurant_orders(app.current_request, restaurant_id)


@app.route('/orders/{order_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_order_by_id(order_id):
    """
    customer of the order, restaurant owner or admin
    """
    return orders.Order.init_request_order(app.current_request, order_id).endpoint_get_order()


@app.route('/orders/{order_id}/status', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_order_status(order_id):
    """
    restaurant owner or admin operation
    """
    return orders.Order.init_request_order(app.current_request, order_id).endpoint_update_status()


@app.route('/orders/{order_id}/cancel', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def cancel_order(order_id):
    return orders.Order.init_request_order(app.current_request, order_id).endpoint_cancel_order()


@app.route('/orders/{order_id}/refund', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def refund_order(order_id):
    """
    admin operation
    """
    return orders.Order.init_request_order(app.current_request, order_id).endpoint_refund_order()


@app.route('/orders/{order_id}/rate', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def rate_order(order_id):
    """
    customer of a delivered order, once
    """
    return orders.Order.init_request_order(app.current_request, order_id).endpoint_rate_order()


# ADMIN
@app.route('/admin/dashboard', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_admin_dashboard():
    return admin.endpoint_get_dashboard(app.current_request)


@app.route('/admin/users', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_admin_users():
    return admin.endpoint_get_users(app.current_request)


@app.route('/admin/users/{user_id}/status', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_user_status(user_id):
    return admin.endpoint_update_user_status(app.current_request, user_id)


@app.route('/admin/restaurants/pending', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_pending_restaurants():
    return admin.endpoint_get_pending_restaurants(app.current_request)


@app.route('/admin/restaurants/{restaurant_id}/approve', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def approve_restaurant(restaurant_id):
    return admin.endpoint_approve_restaurant(app.current_request, restaurant_id)


@app.route('/admin/restaurants/{restaurant_id}/reject', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def reject_restaurant(restaurant_id):
    return admin.endpoint_reject_restaurant(app.current_request, restaurant_id)


@app.route('/admin/orders', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_admin_orders():
    return admin.endpoint_get_orders(app.current_request)


@app.route('/admin/system/health', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_system_health():
    return admin.endpoint_get_system_health(app.current_request)


# CONTACT
@app.route('/contact', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def send_contact_message():
    return contact.endpoint_send_contact_message(app.current_request)
