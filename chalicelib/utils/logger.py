import json
import os
from datetime import datetime, date
from decimal import Decimal
from logging import setLoggerClass, Logger, NOTSET, getLogger, StreamHandler, Formatter
from uuid import uuid4

from chalice.app import Request

HIDDEN_HEADERS = ('authorization', 'cookie')


class CustomLogger(Logger):
    """
    Every record is prefixed with the id of the request being served: "[<request_id>] : <message>"
    """

    def __init__(self, name, level=NOTSET):
        self.current_request_id = None
        super(CustomLogger, self).__init__(name, level)

    def _log(self, level, msg, args, **kwargs):
        super(CustomLogger, self)._log(level, f'[{self.current_request_id}] : {msg}', args, **kwargs)


def conf_logger(level):
    setLoggerClass(CustomLogger)
    logger_ = getLogger(__name__)
    console_handler = StreamHandler()
    console_handler.setLevel(level)
    formatter = Formatter('%(asctime)s - %(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    if logger_.hasHandlers():
        logger_.handlers.clear()
    logger_.addHandler(console_handler)
    logger_.setLevel(level)
    return logger_


logger = conf_logger(os.environ.get('LOG_LEVEL', 'DEBUG').upper())


def bind_request_id(request: Request):
    lambda_context = getattr(request, 'lambda_context', None)
    request_id = getattr(lambda_context, 'aws_request_id', None) or str(uuid4())
    logger.current_request_id = request_id.split('-')[-1]
    return logger.current_request_id


def log_request(request: Request):
    headers = {key: value for key, value in dict(request.headers).items() if key.lower() not in HIDDEN_HEADERS}
    request_dict = {
        'method': request.method,
        'path': request.context.get('resourcePath'),
        'query_params': dict(request.query_params or {}),
        'uri_params': request.uri_params,
        'headers': headers
    }
    logger.info(f"Request: {json.dumps(request_dict, cls=CustomJSONEncoder)}")


class CustomJSONEncoder(json.JSONEncoder):
    def default(self, value):
        if isinstance(value, datetime):
            return str(value)
        if isinstance(value, date):
            return str(value)
        if isinstance(value, Decimal):
            return float(value)
        # Any other serializer if needed
        return super(CustomJSONEncoder, self).default(value)


def log_exception(error: Exception, status_code: int = 400, msg: str = "", *args, **kwargs):
    allowed_log_levels = {
        'info': logger.info,
        'warning': logger.warning,
        'debug': logger.debug,
        'error': logger.error,
        'exception': logger.exception,
    }
    level = getattr(error, 'LEVEL', 'exception')
    log_level = 'exception' if level not in allowed_log_levels.keys() else level
    allowed_log_levels[log_level](msg=json.dumps({
        'error': str(error),
        'exception': error.__class__.__name__,
        'message': str(msg),
        'level': log_level,
        'status_code': status_code,
        'args': args,
        'kwargs': kwargs
    }, cls=CustomJSONEncoder))
