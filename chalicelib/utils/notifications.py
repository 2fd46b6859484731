import os
from typing import List, Optional

import boto3
from botocore.config import Config

from chalicelib.constants.constants import DEFAULT_EMAIL_FROM
from chalicelib.utils.logger import logger, log_exception

_MAILER = None


class Mailer:
    """
    SES sender. The client is created on first send.
    SES is used from us-east-1 unless SES_REGION says otherwise.
    """

    def __init__(self, email_from: str, admin_email: Optional[str] = None, region_name: str = 'us-east-1'):
        self.email_from = email_from
        self.admin_email = admin_email or email_from
        self.region_name = region_name
        self._client = None

    @classmethod
    def from_env(cls):
        email_from = os.environ.get('EMAIL_FROM', DEFAULT_EMAIL_FROM)
        return cls(
            email_from=email_from,
            admin_email=os.environ.get('ADMIN_EMAIL', email_from),
            region_name=os.environ.get('SES_REGION', 'us-east-1')
        )

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client('ses', config=Config(retries={'max_attempts': 30},
                                                             region_name=self.region_name))
        return self._client

    def send_email(self, emails_to: List[str], subject: str, message: str, reply_to: Optional[str] = None):
        logger.info(f'Sending message to emails {emails_to=}, {subject=}')
        charset = "UTF-8"
        kwargs = {
            'Destination': {"ToAddresses": [email for email in emails_to if email]},
            'Message': {
                "Body": {"Text": {"Charset": charset, "Data": message}},
                "Subject": {"Charset": charset, "Data": subject},
            },
            'Source': self.email_from
        }
        if reply_to:
            kwargs['ReplyToAddresses'] = [reply_to]
        response = self.client.send_email(**kwargs)
        logger.info(f'Message has been sent, message_id={response.get("MessageId")}')
        return response.get('MessageId')


def init_mailer(mailer: Mailer) -> Mailer:
    global _MAILER
    _MAILER = mailer
    return mailer


def teardown_mailer():
    global _MAILER
    _MAILER = None


def get_mailer() -> Mailer:
    if _MAILER is None:
        raise RuntimeError('Mailer is not initialized, call init_mailer() first')
    return _MAILER


def send_email_ses(emails_to: List[str], subject: str, message: str, reply_to: Optional[str] = None):
    return get_mailer().send_email(emails_to, subject, message, reply_to=reply_to)


def notify(emails_to: List[str], subject: str, message: str) -> bool:
    """
    Best-effort notification: a failed send is logged and never propagated
    """
    try:
        send_email_ses(emails_to, subject, message)
        return True
    except Exception as error:
        log_exception(error, status_code=500, msg=f'notify ::: failed to send "{subject}" to {emails_to}')
        return False
