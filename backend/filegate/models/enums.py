from enum import Enum


class AccessType(str, Enum):
    PRIVATE = "PRIVATE"
    PUBLIC = "PUBLIC"


class HttpMethod(str, Enum):
    GET = "GET"
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"
    HEAD = "HEAD"
