# Exception Handlers
#
# The application loglevel determines the level of detail shown to the user for server errors.
# If set to debug, too much sensitive info might be shown !
#
# The exceptions will be caught in http_method_decorator and formatted, for example:
# {
#      "title": "Forbidden Selection: Including excluded fields is not permitted.",
#      "detail": "Forbidden Selection: Including excluded fields is not permitted.",
#      "code": "403"
# }
#
from http import HTTPStatus
from werkzeug.exceptions import NotFound
from sqlalchemy.exc import DontWrapMixin
import sarest
from .config import is_debug

HIDDEN_LOG = "(debug logging disabled)"


class SARESTError(Exception, DontWrapMixin):
    """
    Base class for the errors raised while shaping queries and generating descriptors
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = ""

    def __str__(self):
        return self.message


class ClientError(SARESTError):
    """
    Invalid client input: the message is always sent back to the client
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "Validation Error: "

    def __init__(self, message="", status_code=None, api_code=None):
        Exception.__init__(self)
        self.status_code = status_code or self.status_code
        self.api_code = api_code
        sarest.log.warning("%s%s", self.message, message)
        self.message += message


class ServerError(SARESTError):
    """
    Server side error (schema or configuration): details are only shown in debug mode
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = "Generic Error: "

    def __init__(self, message="", status_code=None, api_code=None):
        Exception.__init__(self)
        self.status_code = status_code or self.status_code
        self.api_code = api_code
        sarest.log.error("%s%s", self.message, message)
        if is_debug():
            self.message += str(message)
        else:
            self.message += HIDDEN_LOG


class MalformedInputError(ClientError):
    """
    This exception is raised when a structured request parameter can't be parsed
    """

    message = "Malformed Input: "


class ForbiddenSelectionError(ClientError):
    """
    This exception is raised when a client tries to select or populate a deselected field
    """

    status_code = HTTPStatus.FORBIDDEN.value
    message = "Forbidden Selection: "


class UnsupportedConfigurationError(ClientError):
    """
    This exception is raised when a retired configuration mechanism is used (eg. "restrict")
    """

    message = "Unsupported Configuration: "


class GenericError(ServerError):
    """
    This exception is raised when an error has been detected
    """


class UnsupportedTypeError(ServerError):
    """
    This exception is raised for field types that have no descriptor mapping (binary, mixed)
    """

    message = "Unsupported Type: "


class UnrecognizedTypeError(ServerError):
    """
    This exception is raised for field types that are unknown altogether
    """

    message = "Unrecognized Type: "


class NotFoundError(ClientError, NotFound):
    """
    This exception is raised when an item was not found
    """

    status_code = HTTPStatus.NOT_FOUND.value
    message = "Not Found: "

    def __init__(self, message="", status_code=None, api_code=None):
        ClientError.__init__(self, message, status_code, api_code)
        self.description = self.message
