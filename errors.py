"""
Error taxonomy shared by services and routes.

Services raise these; the handler registered in create_app() turns them
into {"error": message} responses with the matching status code.
"""


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'error': self.message}


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden"


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request."


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found."


class InternalError(ApiError):
    # Message is always generic; details go to the server log only
    status_code = 500
