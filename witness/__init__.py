"""Witness generation modules.

Each layout has a WitnessModule that fills the sorted first-round cells and
computes the interaction columns directly in readable Python code.
"""

from typing import Dict, Type

from .base import WitnessModule
from .recursive import RecursiveWitness

# Registry mapping layout names to witness module classes
WITNESS_REGISTRY: Dict[str, Type[WitnessModule]] = {
    'recursive': RecursiveWitness,
}


def get_witness_module(layout_name: str) -> WitnessModule:
    """Get witness module instance for a layout.

    Args:
        layout_name: Name of the layout (e.g., 'recursive')

    Returns:
        WitnessModule instance for the layout

    Raises:
        KeyError: If no witness module is registered for the layout
    """
    if layout_name in WITNESS_REGISTRY:
        return WITNESS_REGISTRY[layout_name]()
    raise KeyError(f"No witness module for layout '{layout_name}'. "
                   f"Available: {list(WITNESS_REGISTRY.keys())}")


__all__ = [
    'WitnessModule',
    'RecursiveWitness',
    'WITNESS_REGISTRY',
    'get_witness_module',
]
