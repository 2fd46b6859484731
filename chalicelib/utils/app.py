import functools
from typing import Callable, Dict, List, Optional

from chalice import Response

from chalicelib.constants.status_codes import http200, http400, http401, http403, http404, http409, http500
from chalicelib.utils.exceptions import (
    ValidationException, NotAuthorizedException, AccessDenied, RecordNotFound, ConflictException,
    NotificationException
)
from chalicelib.utils.logger import logger, log_exception

SERVER_ERROR_MESSAGE = 'Server error'


def success_response(data=None, message: Optional[str] = None, status_code: int = http200, **extra) -> Response:
    body = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = data
    body.update(extra)
    return Response(body=body, status_code=status_code, headers={'Content-Type': 'application/json'})


def error_response(error: Exception, msg: str = "", status_code: int = http400,
                   client_message: Optional[str] = None, errors: Optional[List[Dict]] = None) -> Response:
    log_exception(error=error, msg=msg, status_code=status_code)
    body = {
        'success': False,
        'message': client_message or str(error),
        'error_id': getattr(logger, 'current_request_id')
    }
    if errors:
        body['errors'] = errors
    return Response(body=body, status_code=status_code, headers={'Content-Type': 'application/json'})


def request_exception_handler(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        try:
            logger.info(f'Calling function {func.__name__}')
            return func(*args, **kwargs)
        except ValidationException as validation_error:
            return error_response(
                error=validation_error,
                msg=f'function = {func.__name__} , error = {validation_error}',
                status_code=http400,
                errors=validation_error.errors)
        except NotAuthorizedException as not_authorized:
            return error_response(
                error=not_authorized,
                msg=f'function = {func.__name__} , error = {not_authorized}',
                status_code=http401)
        except AccessDenied as access_denied:
            return error_response(
                error=access_denied,
                msg=f'function = {func.__name__} , error = {access_denied}',
                status_code=http403)
        except RecordNotFound as not_found:
            return error_response(
                error=not_found,
                msg=f'function = {func.__name__} , error = {not_found}',
                status_code=http404)
        except ConflictException as conflict:
            return error_response(
                error=conflict,
                msg=f'function = {func.__name__} , error = {conflict}',
                status_code=http409)
        except NotificationException as notification_error:
            return error_response(
                error=notification_error,
                msg=f'function = {func.__name__} , error = {notification_error}',
                status_code=http500)
        except Exception as exception:
            return error_response(
                error=exception,
                msg=f'function = {func.__name__}, error = {exception}',
                status_code=http500,
                client_message=SERVER_ERROR_MESSAGE)
    return result


def log_start_finish(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        logger.info(f'{func.__name__} ::: started')
        response = func(*args, **kwargs)
        logger.info(f'{func.__name__} ::: finished')
        return response
    return result
