import functools
import os
import time
from random import uniform
from typing import Dict, List, Optional

import boto3
from boto3.dynamodb.types import TypeSerializer
from botocore.config import Config
from botocore.exceptions import ClientError

from chalicelib.constants import keys_structure
from chalicelib.utils import exceptions
from chalicelib.utils.logger import logger, log_exception

# For safe db operations
RETRY_EXCEPTIONS = ('ProvisionedThroughputExceededException', 'ThrottlingException')
MAX_RETRIES = 15

serializer = TypeSerializer()

_DATABASE = None


def exp_db_backoff(func):
    """
        should be used for any atomic
        get/put item in the code
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug(f'{func.__name__}:: args={args}, kwargs={kwargs}')
        timeout_seed = uniform(0.1, 0.99)

        for retries in range(MAX_RETRIES):
            try:
                result = func(*args, **kwargs)
                logger.info(f'{func.__name__}:: SUCCESS')
                return result

            except ClientError as e:
                if e.response['Error']['Code'] not in RETRY_EXCEPTIONS:
                    raise
                log_exception(e, msg=f'Got throttled while trying to {func.__name__}, retry={retries}')
                time.sleep(min(timeout_seed * 2 ** retries, 20))

        raise exceptions.NumberOfRetriesExceeded(
            f"MaxNumber={MAX_RETRIES} of DB retries has exceeded"
        )

    return wrapper


class Database:
    """
    Single DynamoDB table holding every record type.
    AWS handles are created on first use, so constructing the object is side-effect free.
    """

    def __init__(self, table_name: str, region_name: Optional[str] = None, endpoint_url: Optional[str] = None):
        self.table_name = table_name
        self.region_name = region_name or os.environ.get('AWS_REGION', 'eu-central-1')
        self.endpoint_url = endpoint_url
        self._table = None
        self._client = None

    @classmethod
    def from_env(cls):
        return cls(
            table_name=os.environ.get('GEN_TABLE_NAME'),
            region_name=os.environ.get('AWS_REGION'),
            endpoint_url=os.environ.get('ENDPOINT_URL')
        )

    def _boto_kwargs(self) -> Dict:
        kwargs = {'config': Config(retries={'max_attempts': 30}, region_name=self.region_name)}
        if self.endpoint_url:
            kwargs['endpoint_url'] = self.endpoint_url
        return kwargs

    @property
    def table(self):
        if self._table is None:
            table = boto3.resource('dynamodb', **self._boto_kwargs()).Table(self.table_name)
            table.put_item = exp_db_backoff(table.put_item)
            table.get_item = exp_db_backoff(table.get_item)
            table.update_item = exp_db_backoff(table.update_item)
            table.delete_item = exp_db_backoff(table.delete_item)
            self._table = table
        return self._table

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client('dynamodb', **self._boto_kwargs())
        return self._client

    def create_table(self):
        """
        Creates the table with the partkey/sortkey layout and the customer orders index,
        used by tests and local setups
        """
        self.client.create_table(
            TableName=self.table_name,
            KeySchema=[
                {'AttributeName': 'partkey', 'KeyType': 'HASH'},
                {'AttributeName': 'sortkey', 'KeyType': 'RANGE'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'partkey', 'AttributeType': 'S'},
                {'AttributeName': 'sortkey', 'AttributeType': 'S'},
                {'AttributeName': 'gsi_customer_pk', 'AttributeType': 'S'},
                {'AttributeName': 'date_created', 'AttributeType': 'S'}
            ],
            GlobalSecondaryIndexes=[
                {
                    'IndexName': keys_structure.gsi_customer_orders,
                    'KeySchema': [
                        {'AttributeName': 'gsi_customer_pk', 'KeyType': 'HASH'},
                        {'AttributeName': 'date_created', 'KeyType': 'RANGE'}
                    ],
                    'Projection': {'ProjectionType': 'ALL'}
                }
            ],
            BillingMode='PAY_PER_REQUEST'
        )
        self.client.get_waiter('table_exists').wait(TableName=self.table_name)
        logger.info(f'create_table ::: table {self.table_name} is ready')

    def get_status(self) -> str:
        return self.client.describe_table(TableName=self.table_name)['Table']['TableStatus']


def init_db(database: Database) -> Database:
    global _DATABASE
    _DATABASE = database
    logger.debug(f'init_db ::: table={database.table_name}, region={database.region_name}')
    return database


def teardown_db():
    global _DATABASE
    _DATABASE = None


def get_database() -> Database:
    if _DATABASE is None:
        raise RuntimeError('Database is not initialized, call init_db() first')
    return _DATABASE


def get_gen_table():
    return get_database().table


def put_db_record(item: dict, condition_expression=None, table=get_gen_table):
    kwargs = {'Item': item}
    if condition_expression is not None:
        kwargs['ConditionExpression'] = condition_expression
    table().put_item(**kwargs)


def delete_db_record(key: dict, table=get_gen_table):
    table().delete_item(Key=key)


def update_db_record(key: dict, update_body: dict, allowed_attrs_to_update: list,
                     allowed_attrs_to_delete: list, table=get_gen_table):
    set_expr, remove_expr = generate_update_expression(
        update_body=update_body,
        allowed_attrs_to_update=allowed_attrs_to_update,
        allowed_attrs_to_delete=allowed_attrs_to_delete
    )
    update_item_dict = {"Key": key, "ReturnValues": "UPDATED_NEW"}

    set_response = None
    if set_expr:
        set_item_dict = {
            **update_item_dict,
            "UpdateExpression": set_expr['expression'],
            "ExpressionAttributeNames": set_expr['names'],
            "ExpressionAttributeValues": set_expr['values']
        }
        set_response = table().update_item(**set_item_dict)

    remove_response = None
    if remove_expr:
        remove_item_dict = {
            **update_item_dict,
            "UpdateExpression": remove_expr['expression'],
            "ExpressionAttributeNames": remove_expr['names']
        }
        remove_response = table().update_item(**remove_item_dict)

    return set_response, remove_response


def update_db_fields(key: dict, fields: dict, list_appends: Optional[dict] = None, condition=None,
                     conflict_message: str = 'Record was changed by another request', table=get_gen_table):
    """
    Sets fields and appends to list attributes in one update_item call.
    Appended lists are created when missing, entries already stored are never overwritten.
    condition - boto3 condition object, a failed check is reported as ConflictException(conflict_message)
    """
    set_parts, names, values = [], {}, {}
    for field, value in fields.items():
        set_parts.append(f'#{field}=:{field}')
        names[f'#{field}'] = field
        values[f':{field}'] = value
    for field, entries in (list_appends or {}).items():
        set_parts.append(f'#{field}=list_append(if_not_exists(#{field}, :empty_list), :{field})')
        names[f'#{field}'] = field
        values[f':{field}'] = list(entries)
        values[':empty_list'] = []

    kwargs = {
        'Key': key,
        'UpdateExpression': f"SET {', '.join(set_parts)}",
        'ExpressionAttributeNames': names,
        'ExpressionAttributeValues': values,
        'ReturnValues': 'ALL_NEW'
    }
    if condition is not None:
        kwargs['ConditionExpression'] = condition
    try:
        return table().update_item(**kwargs).get('Attributes', {})
    except ClientError as error:
        if error.response['Error']['Code'] != 'ConditionalCheckFailedException':
            raise
        logger.warning(f"update_db_fields ::: condition failed for {key=}")
        raise exceptions.ConflictException(conflict_message)


def generate_update_expression(update_body: dict, allowed_attrs_to_update: list, allowed_attrs_to_delete: list):
    """
    Generate expressions to update and delete attributes.
    if a key of update_body is empty - the attribute is deleted, else - attribute is updated.
    Attribute names always go through placeholders, so reserved words (name, status) are safe.
    :return:
    (set, remove) - each is None or a dict with expression, names and values (set only)
    """
    set_parts, set_names, set_values = [], {}, {}
    remove_parts, remove_names = [], {}
    for field in allowed_attrs_to_update:
        field_value = update_body.get(field, None)
        if field_value is None:
            continue
        # if field is in update_body but is equal to empty string, list etc. - delete field
        if field_value in ['', [], {}] and field in allowed_attrs_to_delete:
            remove_parts.append(f'#{field}')
            remove_names[f'#{field}'] = field
        else:
            # if field is in update_body and has a real value - update field
            set_parts.append(f'#{field}=:{field}')
            set_names[f'#{field}'] = field
            set_values[f':{field}'] = field_value

    set_expr = None
    if set_parts:
        set_expr = {'expression': f"SET {', '.join(set_parts)}", 'names': set_names, 'values': set_values}

    remove_expr = None
    if remove_parts:
        remove_expr = {'expression': f"REMOVE {', '.join(remove_parts)}", 'names': remove_names}

    return set_expr, remove_expr


def increment_counter(partkey: str, sortkey: str, attribute: str = 'value', table=get_gen_table) -> int:
    """Atomically increments a numeric attribute and returns the new value"""
    response = table().update_item(
        Key={'partkey': partkey, 'sortkey': sortkey},
        UpdateExpression='ADD #counter :one',
        ExpressionAttributeNames={'#counter': attribute},
        ExpressionAttributeValues={':one': 1},
        ReturnValues='UPDATED_NEW'
    )
    return int(response['Attributes'][attribute])


def get_db_item(partkey, sortkey, table=get_gen_table):
    result = table().get_item(
        Key={
            'partkey': partkey,
            'sortkey': sortkey
        }
    )

    if result.__contains__('Item'):
        return result['Item']
    else:
        logger.warning(f"get_db_item ::: record partkey={partkey} sortkey={sortkey} not found")
        raise exceptions.RecordNotFound(f'record partkey={partkey} sortkey={sortkey} not found')


def query_items_paginated(
        key_condition_expression,
        filter_expression=None,
        projection_expression=None,
        table=get_gen_table,
        index_name=None,
        expr_attr_names=None,
        limit=None,
        start_key=None,
        consistent_read=False
):
    kwargs = {'KeyConditionExpression': key_condition_expression}
    if consistent_read:
        kwargs.update({'ConsistentRead': True})

    if filter_expression:
        kwargs.update({'FilterExpression': filter_expression})

    if projection_expression:
        kwargs.update({'ProjectionExpression': projection_expression})

    if expr_attr_names:
        kwargs.update({'ExpressionAttributeNames': expr_attr_names})

    if limit:
        kwargs.update({'Limit': int(limit)})

    if index_name:
        kwargs.update({'IndexName': index_name})

    if start_key:
        kwargs.update({'ExclusiveStartKey': start_key})

    resp = table().query(**kwargs)
    return resp['Items'], resp.get('LastEvaluatedKey')


def query_items_paged(key_condition_expression, filter_expression=None, projection_expression=None,
                      table=get_gen_table, index_name=None, expr_attr_names=None, consistent_read=False):
    """ This method shall be used whenever you think the query will
        return more than 1mb of data at once.
        consistent_read is not supported by global secondary indexes"""
    all_items = []
    items, last_evaluated_key = query_items_paginated(
        key_condition_expression,
        filter_expression=filter_expression,
        projection_expression=projection_expression,
        table=table,
        index_name=index_name,
        expr_attr_names=expr_attr_names,
        consistent_read=consistent_read
    )
    all_items.extend(items)

    while last_evaluated_key is not None:
        items, last_evaluated_key = query_items_paginated(
            key_condition_expression,
            filter_expression=filter_expression,
            projection_expression=projection_expression,
            table=table,
            index_name=index_name,
            expr_attr_names=expr_attr_names,
            start_key=last_evaluated_key,
            consistent_read=consistent_read
        )
        all_items.extend(items)

    return all_items


def serialize_item(item: Dict) -> Dict:
    return {key: serializer.serialize(value) for key, value in item.items()}


def transact_put(item: Dict, condition_expression: Optional[str] = None) -> Dict:
    operation = {'TableName': get_database().table_name, 'Item': serialize_item(item)}
    if condition_expression:
        operation['ConditionExpression'] = condition_expression
    return {'Put': operation}


def transact_delete(key: Dict) -> Dict:
    return {'Delete': {'TableName': get_database().table_name, 'Key': serialize_item(key)}}


def transact_update(key: Dict, update_expression: str, expr_attr_values: Dict,
                    expr_attr_names: Optional[Dict] = None) -> Dict:
    operation = {
        'TableName': get_database().table_name,
        'Key': serialize_item(key),
        'UpdateExpression': update_expression,
        'ExpressionAttributeValues': serialize_item(expr_attr_values)
    }
    if expr_attr_names:
        operation['ExpressionAttributeNames'] = expr_attr_names
    return {'Update': operation}


def transact_write_items(transact_items: List[Dict], conflict_message: str = 'Record already exists'):
    """
    Writes all operations atomically.
    A failed condition check is reported as ConflictException(conflict_message)
    """
    try:
        get_database().client.transact_write_items(TransactItems=transact_items)
    except ClientError as error:
        if error.response['Error']['Code'] != 'TransactionCanceledException':
            raise
        reasons = [reason.get('Code') for reason in error.response.get('CancellationReasons', [])]
        logger.warning(f'transact_write_items ::: transaction cancelled, {reasons=}')
        if 'ConditionalCheckFailed' in reasons or not reasons:
            raise exceptions.ConflictException(conflict_message)
        raise
    logger.info(f'transact_write_items ::: {len(transact_items)} operations committed')
