from typing import Tuple, Dict, Optional
from uuid import uuid4

from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ROLE_CUSTOMER, USER_ROLES, SELF_REGISTRATION_ROLES
from chalicelib.constants.status_codes import http201
from chalicelib.utils import auth as utils_auth, app as utils_app, data as utils_data, db as utils_db, exceptions
from chalicelib.utils.logger import logger
from chalicelib.utils.validation import Validator

ADDRESS_FIELDS = ('street', 'city', 'state', 'zip_code', 'coordinates')
PREFERENCES_FIELDS = ('cuisine', 'dietary_restrictions', 'notifications')


class User(EntityBase):
    pk = keys_structure.users_pk
    sk = keys_structure.users_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'email': lambda x: isinstance(x, str),
        'password_hash': lambda x: isinstance(x, str),
        'role': lambda x: x in USER_ROLES,
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'name': lambda x: isinstance(x, str),
        'phone': lambda x: isinstance(x, str),
        'is_active': lambda x: isinstance(x, bool),
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'address': lambda x: isinstance(x, dict),
        'preferences': lambda x: isinstance(x, dict),
        'avatar': lambda x: isinstance(x, str),
        'is_verified': lambda x: isinstance(x, bool),
        'last_login': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.name: str = kwargs.get('name')
        self.email: str = kwargs.get('email')
        self.password_hash: str = kwargs.get('password_hash')
        self.phone: str = kwargs.get('phone')
        self.role: str = kwargs.get('role') or ROLE_CUSTOMER
        self.address: Dict = kwargs.get('address') or {}
        self.preferences: Dict = kwargs.get('preferences') or {}
        self.avatar: Optional[str] = kwargs.get('avatar')
        self.is_verified: bool = kwargs.get('is_verified', False)
        self.is_active: bool = kwargs.get('is_active', True)
        self.last_login: Optional[str] = kwargs.get('last_login')
        self.date_created: str = kwargs.get('date_created') or utils_data.now_iso()
        self.date_updated: str = kwargs.get('date_updated') or utils_data.now_iso()
        self.request_body: Dict = {}
        self.record_type = 'user'

    @classmethod
    def create_new(cls, name: str, email: str, password: str, phone: str, role: str = ROLE_CUSTOMER, **kwargs):
        """
        Builds a not yet persisted user, the password is hashed here and only here
        """
        return cls(
            id_=str(uuid4()),
            name=name,
            email=email.strip().lower(),
            password_hash=utils_auth.hash_password(password),
            phone=phone,
            role=role,
            **kwargs
        )

    @classmethod
    def init_by_id(cls, user_id):
        logger.info("init_by_id ::: started")
        c = cls(user_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def find_by_email(cls, email: str):
        try:
            lock_record = utils_db.get_db_item(
                keys_structure.user_emails_pk, keys_structure.user_emails_sk.format(email=email.strip().lower())
            )
        except exceptions.RecordNotFound:
            return None
        return cls.init_by_id(lock_record['user_id'])

    @classmethod
    def init_request_register(cls, request):
        logger.info("init_request_register ::: started")
        request_body = utils_data.parse_raw_body(request)
        validator = Validator(request_body)
        name = validator.string('name', 2, 50, message='Name must be between 2 and 50 characters')
        email = validator.email('email')
        password = validator.string('password', 6, message='Password must be at least 6 characters')
        phone = validator.phone('phone')
        role = validator.one_of('role', SELF_REGISTRATION_ROLES, required=False) or ROLE_CUSTOMER
        address = validator.mapping('address', required=False)
        validator.raise_if_errors()
        return cls.create_new(name=name, email=email, password=password, phone=phone, role=role,
                              address=_pick(address or {}, ADDRESS_FIELDS))

    @classmethod
    @utils_auth.authenticate_class
    def init_request_user(cls, request):
        logger.info("init_request_user ::: started")
        user = cls.init_by_id(request.auth_result['user_id'])
        user.request_body = utils_data.parse_raw_body(request)
        return user

    @classmethod
    def _get_login_user(cls, request):
        request_body = utils_data.parse_raw_body(request)
        validator = Validator(request_body)
        email = validator.email('email')
        password = validator.required('password', 'Password is required')
        validator.raise_if_errors()

        user = cls.find_by_email(email)
        if user is None:
            raise exceptions.NotAuthorizedException('Invalid credentials')
        if not user.is_active:
            raise exceptions.NotAuthorizedException('Account has been deactivated')
        if not utils_auth.verify_password(str(password), user.password_hash):
            raise exceptions.NotAuthorizedException('Invalid credentials')
        return user

    @classmethod
    @utils_app.log_start_finish
    def endpoint_login(cls, request) -> Response:
        user = cls._get_login_user(request)
        user.last_login = utils_data.now_iso()
        user._update_db_fields(last_login=user.last_login)
        logger.info(f"endpoint_login ::: user_id={user.id_} logged in")
        return utils_app.success_response(
            data={'user': user._to_ui(), 'token': utils_auth.create_access_token(user.id_)},
            message='Login successful'
        )

    @utils_app.log_start_finish
    def endpoint_register(self) -> Response:
        self._create_db_record()
        return utils_app.success_response(
            data={'user': self._to_ui(), 'token': utils_auth.create_access_token(self.id_)},
            message='User registered successfully',
            status_code=http201
        )

    @utils_app.log_start_finish
    def endpoint_get_user(self) -> Response:
        return utils_app.success_response(data={'user': self._to_ui()})

    @utils_app.log_start_finish
    def endpoint_update_profile(self) -> Response:
        validator = Validator(self.request_body)
        name = validator.string('name', 2, 50, required=False, message='Name must be between 2 and 50 characters')
        phone = validator.phone('phone', required=False)
        address = validator.mapping('address', required=False)
        preferences = validator.mapping('preferences', required=False)
        avatar = validator.url('avatar', required=False, message='Avatar must be a valid URL')
        validator.raise_if_errors()

        self.name = name or self.name
        self.phone = phone or self.phone
        self.avatar = avatar or self.avatar
        if address:
            self.address = {**self.address, **_pick(address, ADDRESS_FIELDS)}
        if preferences:
            self.preferences = {**self.preferences, **_pick(preferences, PREFERENCES_FIELDS)}
        self._update_db_record()
        return utils_app.success_response(data={'user': self._to_ui()}, message='Profile updated successfully')

    @utils_app.log_start_finish
    def endpoint_change_password(self) -> Response:
        validator = Validator(self.request_body)
        current_password = validator.required('current_password', 'Current password is required')
        new_password = validator.string('new_password', 6, message='New password must be at least 6 characters')
        validator.raise_if_errors()

        if not utils_auth.verify_password(str(current_password), self.password_hash):
            raise exceptions.ValidationException('Current password is incorrect')
        self.password_hash = utils_auth.hash_password(new_password)
        self._update_db_fields(password_hash=self.password_hash)
        logger.info(f"endpoint_change_password ::: password changed for user_id={self.id_}")
        return utils_app.success_response(message='Password changed successfully')

    @utils_app.log_start_finish
    def endpoint_logout(self) -> Response:
        # tokens are stateless, the client drops its copy
        return utils_app.success_response(message='Logged out successfully')

    def set_active(self, is_active: bool):
        self.is_active = is_active
        self._update_db_fields(is_active=is_active)

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(user_id=self.id_)

    def _create_db_record(self, condition_expression=None) -> None:
        """
        User record and its email lock are written in one transaction,
        so two registrations with the same email can't both succeed
        """
        self._init_db_record()
        self._validate_mandatory_fields()
        self._validate_optional_fields()
        email_lock = {
            'partkey': keys_structure.user_emails_pk,
            'sortkey': keys_structure.user_emails_sk.format(email=self.email),
            'record_type': 'user_email',
            'user_id': self.id_
        }
        utils_db.transact_write_items(
            [
                utils_db.transact_put(email_lock, condition_expression='attribute_not_exists(partkey)'),
                utils_db.transact_put(self.db_record, condition_expression='attribute_not_exists(partkey)')
            ],
            conflict_message='User already exists with this email'
        )
        logger.info(f"_create_db_record ::: user {self.id_} with role={self.role} successfully created")

    def _to_dict(self):
        return {
            'id_': self.id_,
            'name': self.name,
            'email': self.email,
            'password_hash': self.password_hash,
            'phone': self.phone,
            'role': self.role,
            'address': self.address,
            'preferences': self.preferences,
            'avatar': self.avatar,
            'is_verified': self.is_verified,
            'is_active': self.is_active,
            'last_login': self.last_login,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }

    def to_ui(self):
        return self._to_ui()


def _pick(item: Dict, fields) -> Dict:
    return {key: value for key, value in item.items() if key in fields}
