"""Test orchestration layer for the mining operations web application.

Drivers (network, waits, forms, auth), page models and fixtures used by the
end-to-end and API suites under ``tests/``.
"""

from .auth import AuthDriver, AuthStage, LoginTrace
from .config import Credentials, Settings, get_settings
from .errors import ElementNotFound, MiningQAError, TransportAbort, UnexpectedStatus, WaitTimeout
from .forms import FormDriver
from .models import FieldDescriptor, FieldKind, FormDefinition, NetworkRule, RequestEvent, WaitSpec
from .network import NetworkController
from .waits import WaitCoordinator

__version__ = "0.1.0"

__all__ = [
    "AuthDriver",
    "AuthStage",
    "Credentials",
    "ElementNotFound",
    "FieldDescriptor",
    "FieldKind",
    "FormDefinition",
    "FormDriver",
    "LoginTrace",
    "MiningQAError",
    "NetworkController",
    "NetworkRule",
    "RequestEvent",
    "Settings",
    "TransportAbort",
    "UnexpectedStatus",
    "WaitCoordinator",
    "WaitSpec",
    "get_settings",
]
