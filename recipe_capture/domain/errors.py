"""
Error taxonomy for the capture pipeline.

Failures travel inside ``Result`` values, so the taxonomy is an enum of
kinds rather than an exception hierarchy. The only exception defined here
signals misuse of a ``Result``.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classifies why a pipeline operation failed."""

    INPUT_VALIDATION = "input_validation"
    SERVICE_UNAVAILABLE = "service_unavailable"
    EXTRACTION = "extraction"
    NO_TEXT_EXTRACTED = "no_text_extracted"
    TEXT_NOT_RECIPE = "text_not_recipe"
    PARSING = "parsing"
    PERSISTENCE = "persistence"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected"

    # Raised by entity/value-object factories
    VALIDATION = "validation"
    # Raised by the duration/servings grammar
    UNPARSEABLE = "unparseable"


class ResultAccessError(Exception):
    """
    A Result was read on the wrong side.

    Raised when:
    - ``.value`` is read from a failure
    - ``.error`` is read from a success

    This is a programming error, never a runtime condition to handle.
    """

    pass
