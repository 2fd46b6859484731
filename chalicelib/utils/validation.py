import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

from chalicelib.utils import exceptions
from chalicelib.utils.data import get_by_path, to_decimal
from chalicelib.utils.logger import logger

EMAIL_REGEX = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
PHONE_REGEX = re.compile(r'^\+?[0-9][0-9\s\-().]{6,19}$')
URL_REGEX = re.compile(r'^https?://\S+$')


class Validator:
    """
    Collects field-level errors for a request body.
    Every check returns the (normalized) value, or None when the field is missing or invalid.
    raise_if_errors() raises ValidationException carrying all collected errors at once.
    """

    def __init__(self, data: Optional[Dict]):
        self.data = data or {}
        self.errors: List[Dict] = []

    def add_error(self, field: str, message: str):
        self.errors.append({'field': field, 'message': message})

    def _value(self, field: str, required: bool, message: Optional[str] = None) -> Any:
        value = get_by_path(self.data, field)
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == '':
            if required:
                self.add_error(field, message or f'{field} is required')
            return None
        return value

    def required(self, field: str, message: Optional[str] = None) -> Any:
        return self._value(field, True, message)

    def string(self, field: str, min_len: int = 0, max_len: Optional[int] = None, required: bool = True,
               message: Optional[str] = None) -> Optional[str]:
        value = self._value(field, required, message)
        if value is None:
            return None
        if not isinstance(value, str):
            self.add_error(field, message or f'{field} must be a string')
            return None
        if len(value) < min_len or (max_len is not None and len(value) > max_len):
            bounds = f'between {min_len} and {max_len}' if max_len is not None else f'at least {min_len}'
            self.add_error(field, message or f'{field} must be {bounds} characters')
            return None
        return value

    def email(self, field: str = 'email', required: bool = True) -> Optional[str]:
        value = self._value(field, required, 'Please enter a valid email')
        if value is None:
            return None
        if not isinstance(value, str) or not EMAIL_REGEX.match(value):
            self.add_error(field, 'Please enter a valid email')
            return None
        return value.lower()

    def phone(self, field: str = 'phone', required: bool = True) -> Optional[str]:
        value = self._value(field, required, 'Please enter a valid phone number')
        if value is None:
            return None
        if not isinstance(value, str) or not PHONE_REGEX.match(value):
            self.add_error(field, 'Please enter a valid phone number')
            return None
        return value

    def url(self, field: str, required: bool = True, message: Optional[str] = None) -> Optional[str]:
        value = self._value(field, required, message)
        if value is None:
            return None
        if not isinstance(value, str) or not URL_REGEX.match(value):
            self.add_error(field, message or f'{field} must be a valid URL')
            return None
        return value

    def one_of(self, field: str, choices, required: bool = True, message: Optional[str] = None) -> Any:
        value = self._value(field, required, message)
        if value is None:
            return None
        if value not in choices:
            self.add_error(field, message or f'{field} must be one of: {", ".join(str(c) for c in choices)}')
            return None
        return value

    def number(self, field: str, min_value=None, max_value=None, required: bool = True, integer: bool = False,
               message: Optional[str] = None) -> Optional[Decimal]:
        raw_value = self._value(field, required, message)
        if raw_value is None:
            return None
        value = to_decimal(raw_value)
        if value is None or not value.is_finite():
            self.add_error(field, message or f'{field} must be a number')
            return None
        if integer and value != value.to_integral_value():
            self.add_error(field, message or f'{field} must be an integer')
            return None
        if (min_value is not None and value < min_value) or (max_value is not None and value > max_value):
            self.add_error(field, message or f'{field} must be between {min_value} and {max_value}')
            return None
        return int(value) if integer else value

    def boolean(self, field: str, required: bool = True, message: Optional[str] = None) -> Optional[bool]:
        value = get_by_path(self.data, field)
        if value is None:
            if required:
                self.add_error(field, message or f'{field} is required')
            return None
        if not isinstance(value, bool):
            self.add_error(field, message or f'{field} must be a boolean')
            return None
        return value

    def list_of(self, field: str, min_items: int = 0, required: bool = True,
                message: Optional[str] = None) -> Optional[list]:
        value = get_by_path(self.data, field)
        if value is None:
            if required:
                self.add_error(field, message or f'{field} is required')
            return None
        if not isinstance(value, list) or len(value) < min_items:
            self.add_error(field, message or f'{field} must be a list with at least {min_items} item(s)')
            return None
        return value

    def mapping(self, field: str, required: bool = True, message: Optional[str] = None) -> Optional[dict]:
        value = get_by_path(self.data, field)
        if value is None:
            if required:
                self.add_error(field, message or f'{field} is required')
            return None
        if not isinstance(value, dict):
            self.add_error(field, message or f'{field} must be an object')
            return None
        return value

    def raise_if_errors(self, message: str = 'Validation failed'):
        if self.errors:
            logger.warning(f"raise_if_errors ::: {message}, errors={self.errors}")
            raise exceptions.ValidationException(message, errors=self.errors)
