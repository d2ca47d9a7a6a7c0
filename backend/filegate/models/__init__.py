from filegate.models.enums import AccessType, HttpMethod

__all__ = [
    "AccessType",
    "HttpMethod",
]
