import json
import math
from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Tuple

from chalicelib.utils import exceptions

EARTH_RADIUS_KM = 6371


def replace_dict_key(item, orig_key, new_key):
    if orig_key in item:
        if new_key not in item:
            item[new_key] = item[orig_key]
        del item[orig_key]


def substitute_keys(dict_to_process: dict, base_keys: dict, opt_dict=None):
    if opt_dict is None:
        opt_dict = {}
    all_keys = {**base_keys, **opt_dict}
    for key, val in all_keys.items():
        if val:
            replace_dict_key(dict_to_process, key, val)
        elif key in dict_to_process.keys():
            dict_to_process.pop(key, None)


def parse_raw_body(chalice_request):
    request_raw_body = chalice_request.raw_body
    if not request_raw_body:
        return {}
    try:
        item = json.loads(request_raw_body)
    except ValueError:
        raise exceptions.ValidationException('Request body is not a valid JSON')
    if not isinstance(item, dict):
        raise exceptions.ValidationException('Request body must be a JSON object')
    return fix_values_from_ui(item=item)


def fix_values_from_ui(item):
    """
    Remove keys with empty or None values and transform float to Decimal
    """
    if item.get('_values_from_ui_strategy') == 'delete_empty':
        list_to_cleanup = ['', None]
    else:
        list_to_cleanup = [None]
    item = cleanup_dict(item, list_to_cleanup)
    item.pop('_values_from_ui_strategy', None)
    result = json.dumps(item)
    return json.loads(result, parse_float=Decimal)


def cleanup_dict(item: dict, list_of_values: list):
    """ Remove None fields in dict with. Supports one nesting.  """

    def sub_clean(sub_item):
        return {
            key: value
            for key, value in sub_item.items()
            if value not in list_of_values
        }

    clean = {}
    for k, v in item.items():
        if isinstance(v, dict):
            nested = sub_clean(v)
            if len(nested.keys()) > 0:
                clean[k] = nested
        elif v not in list_of_values:
            clean[k] = v
    return clean


def get_by_path(item: dict, path: str, default=None):
    """Reads a nested value by a dotted path, e.g. 'delivery_address.city'"""
    value = item
    for part in path.split('.'):
        if not isinstance(value, Mapping) or part not in value:
            return default
        value = value[part]
    return value


def to_decimal(value, default=None):
    if value is None or isinstance(value, bool):
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='seconds')


def parse_bool(value, default=None):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes')


def get_pagination_params(query_params, default_limit: int, max_limit: int) -> Tuple[int, int]:
    query_params = query_params or {}
    errors = []
    try:
        page = int(query_params.get('page', 1))
        if page < 1:
            raise ValueError
    except (TypeError, ValueError):
        page = 1
        errors.append({'field': 'page', 'message': 'Page must be a positive integer'})
    try:
        limit = int(query_params.get('limit', default_limit))
        if not 1 <= limit <= max_limit:
            raise ValueError
    except (TypeError, ValueError):
        limit = default_limit
        errors.append({'field': 'limit', 'message': f'Limit must be between 1 and {max_limit}'})
    if errors:
        raise exceptions.ValidationException('Validation failed', errors=errors)
    return page, limit


def paginate(items: List, page: int, limit: int) -> Tuple[List, Dict]:
    total = len(items)
    start = (page - 1) * limit
    return items[start:start + limit], {
        'current': page,
        'pages': math.ceil(total / limit),
        'total': total,
        'limit': limit
    }


def distance_km(lat1, lng1, lat2, lng2) -> float:
    """Great-circle distance between two points in kilometers (haversine)"""
    lat1_rad = math.radians(float(lat1))
    lat2_rad = math.radians(float(lat2))
    delta_lat = math.radians(float(lat2) - float(lat1))
    delta_lng = math.radians(float(lng2) - float(lng1))

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lng / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c
