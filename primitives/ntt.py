"""Number Theoretic Transform for the STARK field."""

import galois
import numpy as np

from primitives.field import FF, powers

# --- NTT Engine ---

class NTT:
    """NTT engine over a power-of-two subgroup of the STARK field.

    The transforms are galois.ntt / galois.intt. galois takes the 2^k-th root of
    unity from the field's primitive element, which is GENERATOR, so evaluation
    i is at get_omega(n_bits) ** i.
    """

    def __init__(self, domain_size: int) -> None:
        """Initialize NTT engine for given domain size."""
        assert domain_size > 0, "Domain size must be positive"
        assert (domain_size & (domain_size - 1)) == 0, "Domain size must be power of 2"

        self.n = domain_size
        self.n_bits = _log2(domain_size)

    def ntt(self, coeffs: np.ndarray) -> np.ndarray:
        """Forward NTT: coefficients -> evaluations at omega^i."""
        return _as_field(galois.ntt(self._check(coeffs)))

    def intt(self, evals: np.ndarray) -> np.ndarray:
        """Inverse NTT: evaluations at omega^i -> coefficients.

        galois.intt already normalizes by 1/N.
        """
        return _as_field(galois.intt(self._check(evals)))

    def coset_ntt(self, coeffs: np.ndarray, offset) -> np.ndarray:
        """Evaluate coefficients on the coset offset * <omega>."""
        return self.ntt(self._check(coeffs) * powers(FF(offset), self.n))

    def coset_intt(self, evals: np.ndarray, offset) -> np.ndarray:
        """Interpolate evaluations given on the coset offset * <omega>."""
        return self.intt(evals) * powers(FF(offset) ** -1, self.n)

    def extend_pol(self, evals: np.ndarray, blowup: int, offset=1) -> np.ndarray:
        """Low-degree extend evaluations on <omega> to the coset offset * <omega_ext>.

        The extended domain has blowup * n points; omega_ext^blowup == omega.
        """
        assert blowup >= 1 and (blowup & (blowup - 1)) == 0, "Blowup must be power of 2"
        coeffs = self.intt(evals)
        padded = FF.Zeros(self.n * blowup)
        padded[: self.n] = coeffs
        return NTT(self.n * blowup).coset_ntt(padded, offset)

    def _check(self, values: np.ndarray) -> np.ndarray:
        assert len(values) == self.n, f"Expected {self.n} values, got {len(values)}"
        return FF(values)


# --- Helpers ---

def _log2(size: int) -> int:
    """Compute log2 of size (must be power of 2)."""
    assert size != 0
    res = 0
    while size != 1:
        size >>= 1
        res += 1
    return res


def _as_field(values) -> np.ndarray:
    # galois may hand back an array of an equal but distinct GF(p) class.
    if type(values) is FF:
        return values
    return FF(values.view(np.ndarray))
