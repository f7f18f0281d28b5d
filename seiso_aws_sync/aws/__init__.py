"""
Интеграция с AWS: boto3 клиенты, классификация событий и Listener.
"""

from .clients import AwsClients, classify_aws_error
from .events import EventKind, classify_event, parse_envelope, validate_registration_event
from .listener import Listener

__all__ = [
    "AwsClients",
    "classify_aws_error",
    "EventKind",
    "classify_event",
    "parse_envelope",
    "validate_registration_event",
    "Listener",
]
