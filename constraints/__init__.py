"""Constraint definitions of the CPU AIR layouts.

Each constraint family (cpu, memory, range checks, diluted pool, builtins)
lives in its own module and builds its constraints from virtual column names.
A layout module combines the families with its neighbor table and virtual
columns into a CpuAirDefinition subclass registered in LAYOUT_REGISTRY.
"""

from typing import Dict, Type

from .air import AirPhase, ConstraintViolation, CpuAirDefinition
from .base import (
    Constraint,
    ConstraintContext,
    PointConstraintContext,
    RowConstraintContext,
    TraceConstraintContext,
    domain,
    every,
    row,
)
from .layout import Layout, Neighbor
from .recursive import RECURSIVE_LAYOUT, RecursiveCpuAirDefinition

# Registry mapping layout names to AIR definition classes
LAYOUT_REGISTRY: Dict[str, Type[CpuAirDefinition]] = {
    "recursive": RecursiveCpuAirDefinition,
}


def get_air_definition(layout_name: str) -> Type[CpuAirDefinition]:
    """Get the AIR definition class of a layout.

    Args:
        layout_name: Name of the layout (e.g., 'recursive')

    Returns:
        CpuAirDefinition subclass for the layout

    Raises:
        KeyError: If no AIR definition is registered for the layout
    """
    if layout_name in LAYOUT_REGISTRY:
        return LAYOUT_REGISTRY[layout_name]
    raise KeyError(
        f"No AIR definition for layout '{layout_name}'. "
        f"Available: {list(LAYOUT_REGISTRY.keys())}"
    )


__all__ = [
    "AirPhase",
    "Constraint",
    "ConstraintContext",
    "ConstraintViolation",
    "CpuAirDefinition",
    "Layout",
    "LAYOUT_REGISTRY",
    "Neighbor",
    "PointConstraintContext",
    "RECURSIVE_LAYOUT",
    "RecursiveCpuAirDefinition",
    "RowConstraintContext",
    "TraceConstraintContext",
    "domain",
    "every",
    "get_air_definition",
    "row",
]
