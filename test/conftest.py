import os

# moto must never see real credentials
os.environ['AWS_ACCESS_KEY_ID'] = 'testing'
os.environ['AWS_SECRET_ACCESS_KEY'] = 'testing'
os.environ['AWS_SECURITY_TOKEN'] = 'testing'
os.environ['AWS_SESSION_TOKEN'] = 'testing'
os.environ['AWS_DEFAULT_REGION'] = 'eu-central-1'

for key, value in {
    'stage': 'test',
    'GEN_TABLE_NAME': 'food-delivery-test',
    'AWS_REGION': 'eu-central-1',
    'JWT_SECRET': 'test-secret',
    'BCRYPT_ROUNDS': '4',
    'EMAIL_FROM': 'noreply@food-delivery.local',
    'ADMIN_EMAIL': 'admin@food-delivery.local',
    'SES_REGION': 'us-east-1'
}.items():
    os.environ.setdefault(key, value)

from utils.fixtures import (  # noqa: E402,F401
    chalice_gateway, dynamodb_table, customer, restaurant_owner, admin_user, approved_restaurant, menu_item
)
