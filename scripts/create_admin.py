"""
Bootstraps the first admin account.

Usage (from the repository root):
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=secret python -m scripts.create_admin
"""
import os
import sys

from chalicelib.constants.constants import ROLE_ADMIN
from chalicelib.users import User
from chalicelib.utils.db import Database, init_db
from chalicelib.utils.logger import logger

DEFAULT_ADMIN_PHONE = '+1234567890'


def create_admin(email: str, password: str, name: str = 'Admin', phone: str = DEFAULT_ADMIN_PHONE):
    """
    Returns (user, created). An existing account with the same email is left untouched.
    """
    existing = User.find_by_email(email)
    if existing is not None:
        logger.info(f"create_admin ::: user with email={existing.email} already exists, role={existing.role}")
        return existing, False
    admin = User.create_new(name=name, email=email, password=password, phone=phone, role=ROLE_ADMIN,
                            is_verified=True, is_active=True)
    admin._create_db_record()
    logger.info(f"create_admin ::: admin {admin.id_} created")
    return admin, True


def main() -> int:
    email, password = os.environ.get('ADMIN_EMAIL'), os.environ.get('ADMIN_PASSWORD')
    if not email or not password:
        print('ADMIN_EMAIL and ADMIN_PASSWORD must be set')
        return 1
    init_db(Database.from_env())
    admin, created = create_admin(email, password)
    print(f"Admin user {'created' if created else 'already exists'}: {admin.email}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
