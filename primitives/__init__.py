"""Primitives - Low-level field, polynomial and curve building blocks."""

from primitives.elliptic_curve import EcPoint, EllipticCurve
from primitives.field import (
    FF,
    STARK_PRIME,
    FractionFieldElement,
    batch_inverse,
    get_omega,
    get_omega_inv,
    to_field,
)
from primitives.ntt import NTT
from primitives.pedersen import (
    STARK_CURVE,
    STARK_PEDERSEN_CONTEXT,
    PedersenHashContext,
    pedersen_hash,
)
from primitives.polynomial import PeriodicColumn

__all__ = [
    # Field
    "FF",
    "STARK_PRIME",
    "FractionFieldElement",
    "batch_inverse",
    "get_omega",
    "get_omega_inv",
    "to_field",
    # NTT
    "NTT",
    "PeriodicColumn",
    # Curve
    "EcPoint",
    "EllipticCurve",
    "STARK_CURVE",
    # Pedersen
    "PedersenHashContext",
    "STARK_PEDERSEN_CONTEXT",
    "pedersen_hash",
]
