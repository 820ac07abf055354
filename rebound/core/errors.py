"""
Service-level errors.

Each error carries the HTTP status and the machine readable code that the
exception handlers in ``main.py`` put into the response envelope.
"""
from typing import Optional


class ServiceError(Exception):
    status_code = 500
    code = "SERVER_ERROR"
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# 400
class ValidationFailed(ServiceError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid request data"


class ContentInvalid(ValidationFailed):
    code = "CONTENT_INVALID"
    default_message = "Message content must be between 1 and 2000 characters"


class SelfConnection(ValidationFailed):
    code = "INVALID_REQUEST"
    default_message = "Cannot send connection request to yourself"


class SelfConversation(ValidationFailed):
    code = "INVALID_REQUEST"
    default_message = "Cannot create conversation with yourself"


class InvalidRequest(ValidationFailed):
    code = "INVALID_REQUEST"


class InvalidStatus(ServiceError):
    status_code = 400
    code = "INVALID_STATUS"
    default_message = "This request has already been processed"


# 403
class Forbidden(ServiceError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Not authorized"


# 404
class NotFound(ServiceError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code


class UserNotFound(NotFound):
    code = "USER_NOT_FOUND"
    default_message = "User not found"


# 409
class AlreadyConnected(ServiceError):
    status_code = 409
    code = "ALREADY_CONNECTED"
    default_message = "Already connected with this user"


class RequestPending(ServiceError):
    status_code = 409
    code = "REQUEST_PENDING"
    default_message = "Connection request already pending"
