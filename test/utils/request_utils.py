import json
from typing import Dict, Optional, Union
from urllib.parse import urlencode

from chalice.local import LocalGateway


def make_request(chalice_gateway: LocalGateway, endpoint: str = '/', method: str = 'GET',
                 query: Optional[Union[str, Dict]] = None, json_body=None, token: Optional[str] = None) -> Dict:
    """Request for any endpoint, the token goes to the Bearer authorization header"""
    if isinstance(query, dict):
        query = urlencode(query)
    headers = {'Content-Type': 'application/json', 'Host': 'test-domain.com'}
    if token:
        headers['Authorization'] = f'Bearer {token}'
    return chalice_gateway.handle_request(
        method=method,
        path=f"{endpoint}?{query}" if query else f"{endpoint}",
        headers=headers,
        body=json.dumps(json_body) if json_body is not None else b''
    )


def get_body(response: Dict) -> Dict:
    return json.loads(response['body'])
