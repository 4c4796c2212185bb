"""Shared utilities for Clause Guard Lambda functions."""

from .admission import AdmissionController, AdmissionDecision
from .cache import ResultCache
from .config import Config
from .exceptions import (
    AnalysisError,
    ClauseGuardError,
    ConfigurationError,
    FatalProviderError,
    MalformedOutputError,
    ProviderError,
    TransientProviderError,
)
from .modes import Mode, ModeController, Policy, get_policy
from .usage_ledger import TokenPricing, UsageLedger

__all__ = [
    # Config
    "Config",
    # Admission and spend
    "AdmissionController",
    "AdmissionDecision",
    "TokenPricing",
    "UsageLedger",
    # Modes
    "Mode",
    "ModeController",
    "Policy",
    "get_policy",
    # Cache
    "ResultCache",
    # Exceptions
    "AnalysisError",
    "ClauseGuardError",
    "ConfigurationError",
    "FatalProviderError",
    "MalformedOutputError",
    "ProviderError",
    "TransientProviderError",
]
