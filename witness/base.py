"""Base class for witness generation."""

from abc import ABC, abstractmethod

from primitives.field import FFPoly
from protocol.data import Trace


class WitnessModule(ABC):
    """Per-layout witness generation. Used by prover only.

    A witness module completes a first-round trace produced by trace generation:
    it fills the sorted copies the permutation arguments compare against, and
    once the interaction elements are drawn, computes the running products and
    cumulative values of the interaction round. The verifier never runs it; it
    only checks the constraints over what the prover committed to.
    """

    @abstractmethod
    def compute_sorted_columns(self, trace: Trace, air) -> None:
        """Fill the sorted first-round cells in place.

        Args:
            trace: First-round trace with the unsorted pools filled in
            air: CpuAirDefinition the trace belongs to (supplies the virtual
                columns and the public memory)
        """
        pass

    @abstractmethod
    def compute_interaction_columns(self, trace: Trace, air) -> Trace:
        """Compute the interaction round.

        Args:
            trace: Complete first-round trace
            air: CpuAirDefinition in the interaction phase

        Returns:
            New trace with the interaction columns appended
        """
        pass

    def _compute_cumulative_product(self, row_values: FFPoly) -> FFPoly:
        """Compute cumulative product: result[i] = prod(row_values[0:i+1])."""
        result = row_values.copy()
        for i in range(1, len(row_values)):
            result[i] = result[i - 1] * row_values[i]
        return result
