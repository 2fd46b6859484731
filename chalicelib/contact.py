from chalice import Response

from chalicelib.utils import app as utils_app, data as utils_data, notifications as utils_notifications, \
    exceptions, email_templates
from chalicelib.utils.logger import logger, log_exception
from chalicelib.utils.validation import Validator


@utils_app.log_start_finish
def endpoint_send_contact_message(request) -> Response:
    validator = Validator(utils_data.parse_raw_body(request))
    contact = {
        'name': validator.string('name', 2, 100, message='Name must be between 2 and 100 characters'),
        'email': validator.email('email'),
        'phone': validator.phone('phone', required=False),
        'subject': validator.string('subject', 5, 200, message='Subject must be between 5 and 200 characters'),
        'message': validator.string('message', 10, 1000, message='Message must be between 10 and 1000 characters')
    }
    validator.raise_if_errors()

    mailer = utils_notifications.get_mailer()
    try:
        mailer.send_email(
            [mailer.admin_email],
            f"Contact form: {contact['subject']}",
            email_templates.get_contact_admin_message(contact),
            reply_to=contact['email']
        )
        mailer.send_email(
            [contact['email']],
            'We received your message',
            email_templates.get_contact_confirmation_message(contact)
        )
    except Exception as error:
        log_exception(error, status_code=500, msg='endpoint_send_contact_message ::: failed to send emails')
        raise exceptions.NotificationException('Failed to send message. Please try again later.')

    logger.info(f"endpoint_send_contact_message ::: message from {contact['email']} delivered")
    return utils_app.success_response(message="Message sent successfully. We'll get back to you soon!")
