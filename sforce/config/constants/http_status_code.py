from enum import Enum


class HttpStatusCode(Enum):
    """HTTP status codes the Salesforce client reacts to"""

    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    UNAUTHORIZED = 401
    # REQUEST_LIMIT_EXCEEDED is reported as 403, not 429
    FORBIDDEN = 403
    NOT_FOUND = 404
    TOO_MANY_REQUESTS = 429

    INTERNAL_SERVER_ERROR = 500
