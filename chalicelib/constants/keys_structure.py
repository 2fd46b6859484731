users_pk = 'users'
users_sk = '{user_id}'

user_emails_pk = 'user_emails'
user_emails_sk = '{email}'

restaurants_pk = 'restaurants'
restaurants_sk = '{restaurant_id}'

menu_items_pk = 'menu_items_{restaurant_id}'
menu_items_sk = '{menu_item_id}'

menu_item_refs_pk = 'menu_item_refs'
menu_item_refs_sk = '{menu_item_id}'

carts_pk = 'carts'
carts_sk = '{user_id}'

orders_pk = 'orders_{restaurant_id}'
orders_sk = '{order_id}'

order_refs_pk = 'order_refs'
order_refs_sk = '{order_id}'

gsi_customer_orders = 'customer-orders-index'
gsi_customer_orders_pk = 'customer_orders_{customer_id}'

counters_pk = 'counters'
counters_sk = '{counter_name}'
