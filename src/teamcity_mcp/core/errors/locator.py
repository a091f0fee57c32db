"""Locator and response-shape error classes."""

from typing import Any, Optional


class LocatorValidationError(ValueError):
    """Structured filter criteria could not be turned into a locator.

    Raw locator strings never raise; only typed criteria (status values,
    dates, date ranges) are validated.

    Attributes:
        field: Criteria field that failed validation.
        value: Offending value.
    """

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class PageParseError(ValueError):
    """A collection response was not shaped like a collection.

    Attributes:
        collection_key: Key the parser looked for.
        payload_type: Type name of the payload received.
    """

    def __init__(self, message: str, collection_key: str, payload_type: str):
        super().__init__(message)
        self.collection_key = collection_key
        self.payload_type = payload_type
