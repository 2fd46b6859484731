from_db = {
    'id_': 'id',
    'status_': 'status',
    'partkey': None,
    'sortkey': None,
    'record_type': None,
    'password_hash': None,
    'gsi_customer_pk': None
}
