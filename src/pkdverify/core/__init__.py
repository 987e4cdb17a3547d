from .validator import FreshnessPolicy, StaleWarning, STHValidation, STHValidator
from .state_machine import ConsistencyStateMachine, Transition
from .resolver import KeyLookupResolver, verify_entry
from .client import DirectoryConnector, TransparencyClient
from .settings import PKDSettings, get_settings

__all__ = [
    "FreshnessPolicy",
    "StaleWarning",
    "STHValidation",
    "STHValidator",
    "ConsistencyStateMachine",
    "Transition",
    "KeyLookupResolver",
    "verify_entry",
    "DirectoryConnector",
    "TransparencyClient",
    "PKDSettings",
    "get_settings",
]
