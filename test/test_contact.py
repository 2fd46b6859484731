import pytest

from chalicelib.utils import notifications
from utils.request_utils import make_request, get_body

CONTACT_BODY = {
    'name': 'Jane Doe',
    'email': 'jane@example.com',
    'subject': 'Late delivery',
    'message': 'My order arrived an hour late yesterday.'
}


@pytest.mark.local_db_test
def test_send_contact_message(chalice_gateway, dynamodb_table, monkeypatch):
    sent = []
    original_send = notifications.Mailer.send_email

    def recording_send(self, emails_to, subject, message, reply_to=None):
        sent.append((emails_to, subject, reply_to))
        return original_send(self, emails_to, subject, message, reply_to=reply_to)

    monkeypatch.setattr(notifications.Mailer, 'send_email', recording_send)
    response = make_request(chalice_gateway, endpoint='/contact', method='POST', json_body=CONTACT_BODY)
    assert response['statusCode'] == 200
    assert get_body(response) == {'success': True,
                                  'message': "Message sent successfully. We'll get back to you soon!"}
    assert sent == [
        (['admin@food-delivery.local'], 'Contact form: Late delivery', 'jane@example.com'),
        (['jane@example.com'], 'We received your message', None)
    ]


@pytest.mark.local_db_test
def test_send_contact_message_validation(chalice_gateway, dynamodb_table):
    response = make_request(chalice_gateway, endpoint='/contact', method='POST',
                            json_body={'name': 'J', 'email': 'jane', 'phone': 'call me', 'subject': 'Hi',
                                       'message': 'short'})
    assert response['statusCode'] == 400
    fields = {error['field'] for error in get_body(response)['errors']}
    assert fields == {'name', 'email', 'phone', 'subject', 'message'}


@pytest.mark.local_db_test
def test_send_contact_message_failure(chalice_gateway, dynamodb_table, monkeypatch):
    def failing_send(self, emails_to, subject, message, reply_to=None):
        raise RuntimeError('SES is down')

    monkeypatch.setattr(notifications.Mailer, 'send_email', failing_send)
    response = make_request(chalice_gateway, endpoint='/contact', method='POST', json_body=CONTACT_BODY)
    assert response['statusCode'] == 500
    assert get_body(response)['message'] == 'Failed to send message. Please try again later.'
