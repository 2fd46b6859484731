def get_new_order_notification_message(order_record):
    items = ', '.join(f"{item['quantity']} x {item['name']}" for item in order_record.get('items', []))
    return f"""
        Order details: \n
        Order number: {order_record.get('order_number')}\n
        Items: {items}\n
        Total: {order_record.get('pricing', {}).get('total')}\n
        Order type: {order_record.get('order_type')}\n
        Estimated time: {order_record.get('estimated_delivery_time')}
    """


def get_restaurant_approved_message(restaurant_record, message=None):
    return f"""
        Your restaurant "{restaurant_record.get('name')}" has been approved.\n
        {message or 'You can now start receiving orders.'}
    """


def get_restaurant_rejected_message(restaurant_record, reason):
    return f"""
        Your restaurant "{restaurant_record.get('name')}" registration was rejected.\n
        Reason: {reason}
    """


def get_contact_admin_message(contact):
    return f"""
        New contact form submission\n
        Name: {contact.get('name')}\n
        Email: {contact.get('email')}\n
        Phone: {contact.get('phone') or '-'}\n
        Subject: {contact.get('subject')}\n
        Message:\n
        {contact.get('message')}
    """


def get_contact_confirmation_message(contact):
    return f"""
        Hi {contact.get('name')},\n
        Thank you for contacting us. We received your message "{contact.get('subject')}"
        and will get back to you soon.
    """
