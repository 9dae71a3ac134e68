"""Reconciliation of intent parameters across evidence sources."""

from .service import (
    IntentInference,
    ParameterReconciler,
    ParameterSource,
    Resolution,
    adapt_extracted,
    basic_parameters,
    default_value,
    flag_for_type,
    parameters_from_inference,
    to_adb_args,
    validate_parameters,
)

__all__ = [
    "IntentInference",
    "ParameterReconciler",
    "ParameterSource",
    "Resolution",
    "adapt_extracted",
    "basic_parameters",
    "default_value",
    "flag_for_type",
    "parameters_from_inference",
    "to_adb_args",
    "validate_parameters",
]
