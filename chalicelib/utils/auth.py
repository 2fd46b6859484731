import functools
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable

import bcrypt
import jwt
from chalice.app import Request

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import (
    DEFAULT_JWT_EXPIRE_DAYS, DEFAULT_BCRYPT_ROUNDS, JWT_ALGORITHM, ROLE_ADMIN, RESTAURANT_MANAGER_ROLES
)
from chalicelib.constants.substitute_keys import from_db
from chalicelib.utils import exceptions as utils_exceptions, db as utils_db
from chalicelib.utils.data import substitute_keys
from chalicelib.utils.logger import log_request, logger

ROLE_DENIED_MESSAGES = {
    (ROLE_ADMIN,): 'Access denied. Admin privileges required.',
    RESTAURANT_MANAGER_ROLES: 'Access denied. Restaurant privileges required.'
}


def get_jwt_secret() -> str:
    secret = os.environ.get('JWT_SECRET')
    if not secret:
        raise RuntimeError('JWT_SECRET is not configured')
    return secret


def hash_password(password: str) -> str:
    rounds = int(os.environ.get('BCRYPT_ROUNDS', DEFAULT_BCRYPT_ROUNDS))
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds)).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not plain_password or not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def create_access_token(user_id: str) -> str:
    expire_days = int(os.environ.get('JWT_EXPIRE_DAYS', DEFAULT_JWT_EXPIRE_DAYS))
    now = datetime.now(timezone.utc)
    payload = {'id': user_id, 'iat': now, 'exp': now + timedelta(days=expire_days)}
    return jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict:
    try:
        return jwt.decode(token, get_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise utils_exceptions.NotAuthorizedException('Token expired. Please log in again.')
    except jwt.InvalidTokenError as error:
        logger.warning(f'decode_access_token ::: {error=}')
        raise utils_exceptions.NotAuthorizedException('Invalid token')


def get_bearer_token(request: Request) -> str:
    header = request.headers.get('authorization') or ''
    scheme, _, token = header.partition(' ')
    if scheme != 'Bearer' or not token.strip():
        raise utils_exceptions.NotAuthorizedException('Authorization header missing or invalid')
    return token.strip()


def get_active_user(user_id: str) -> Dict:
    try:
        user_item = utils_db.get_db_item(
            partkey=keys_structure.users_pk,
            sortkey=keys_structure.users_sk.format(user_id=user_id)
        )
    except utils_exceptions.RecordNotFound:
        raise utils_exceptions.NotAuthorizedException('User not found for this token')
    if not user_item.get('is_active', True):
        raise utils_exceptions.NotAuthorizedException('Account has been deactivated')
    substitute_keys(dict_to_process=user_item, base_keys=from_db)
    return user_item


def resolve_auth_result(request: Request) -> Dict:
    log_request(request)
    payload = decode_access_token(get_bearer_token(request))
    user_id = payload.get('id')
    if not isinstance(user_id, str):
        raise utils_exceptions.NotAuthorizedException('Invalid token')
    user = get_active_user(user_id)
    auth_result = {'user_id': user['id'], 'role': user.get('role'), 'user': user}
    setattr(request, 'auth_result', auth_result)
    logger.info(f"resolve_auth_result ::: user_id={user['id']}, role={user.get('role')}")
    return auth_result


def authenticate(func):
    """
    Wrapper for functions which require user's authentication
    """

    @functools.wraps(func)
    def result_auth(*args, **kwargs):
        request = args[0]
        resolve_auth_result(request)
        result = func(*args, **kwargs)
        logger.info(f'authenticate ::: SUCCESS, func.__name__ {func.__name__}')
        return result

    return result_auth


def authenticate_class(func):
    """
    Wrapper for class methods which require user's authentication
    """

    @functools.wraps(func)
    def result_auth(*args, **kwargs):
        request = args[1]
        resolve_auth_result(request)
        return func(*args, **kwargs)

    return result_auth


def check_role(request: Request, allowed_roles: Iterable[str]):
    """
    Raise AccessDenied if authenticated user's role is not in allowed_roles
    """
    check_auth_result_role(request.auth_result, allowed_roles)


def check_auth_result_role(auth_result: Dict, allowed_roles: Iterable[str]):
    allowed_roles = tuple(allowed_roles)
    role = auth_result.get('role')
    if role not in allowed_roles:
        message = ROLE_DENIED_MESSAGES.get(allowed_roles, 'Access denied. Insufficient privileges.')
        logger.warning(f'check_auth_result_role ::: {role=} is not in {allowed_roles=}')
        raise utils_exceptions.AccessDenied(message)


def is_admin(auth_result: Dict) -> bool:
    return auth_result.get('role') == ROLE_ADMIN
