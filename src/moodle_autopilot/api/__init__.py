"""Dynamic binding to the Moodle web service API."""

from .catalogue import (
    WRITE_VERBS,
    OperationCatalogue,
    OperationDescriptor,
    classify_verb,
)
from .encoding import decode_parameters, encode_parameters, flatten_parameters
from .session import (
    SERVICE_PATH,
    SITE_INFO_FUNCTION,
    ActiveUser,
    ApiNamespace,
    BoundOperation,
    MoodleSession,
)

__all__ = [
    # Catalogue
    "WRITE_VERBS",
    "OperationCatalogue",
    "OperationDescriptor",
    "classify_verb",
    # Encoding
    "encode_parameters",
    "decode_parameters",
    "flatten_parameters",
    # Session
    "SERVICE_PATH",
    "SITE_INFO_FUNCTION",
    "ActiveUser",
    "ApiNamespace",
    "BoundOperation",
    "MoodleSession",
]
