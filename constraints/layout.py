"""Static shape of a CPU AIR layout.

A layout fixes the column split, the CPU component geometry and which builtins
exist. A builtin is enabled exactly when its parameter object is present; a
disabled builtin is None and contributes no segment, column or constraint.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

# Every builtin a layout may enable, in segment order.
BUILTIN_NAMES = (
    "output",
    "pedersen",
    "range_check",
    "ecdsa",
    "bitwise",
    "ec_op",
    "keccak",
    "poseidon",
    "range_check96",
    "add_mod",
)


@dataclass(frozen=True)
class Neighbor:
    """A trace cell referenced relative to the evaluation row."""
    column: int
    row: int


@dataclass(frozen=True)
class BuiltinParams:
    """Builtin instance density.

    Attributes:
        ratio: CPU steps per builtin instance
        row_ratio: Trace rows per builtin instance (ratio * component height)
    """
    ratio: int
    row_ratio: int


@dataclass(frozen=True)
class PedersenParams(BuiltinParams):
    repetitions: int


@dataclass(frozen=True)
class RangeCheckParams(BuiltinParams):
    n_parts: int


@dataclass(frozen=True)
class BitwiseParams(BuiltinParams):
    total_n_bits: int


@dataclass(frozen=True)
class DilutedPoolParams:
    """Diluted values: n_bits-bit numbers with consecutive bits spacing apart."""
    spacing: int
    n_bits: int


@dataclass(frozen=True)
class Layout:
    name: str
    n_columns_first: int
    n_columns_second: int
    n_interaction_elements: int
    cpu_component_step: int = 1
    cpu_component_height: int = 16
    public_memory_step: int = 16
    constraint_degree: int = 2
    offset_bits: int = 16
    output: Optional[BuiltinParams] = None
    pedersen: Optional[PedersenParams] = None
    range_check: Optional[RangeCheckParams] = None
    ecdsa: Optional[BuiltinParams] = None
    bitwise: Optional[BitwiseParams] = None
    ec_op: Optional[BuiltinParams] = None
    keccak: Optional[BuiltinParams] = None
    poseidon: Optional[BuiltinParams] = None
    range_check96: Optional[BuiltinParams] = None
    add_mod: Optional[BuiltinParams] = None
    diluted_pool: Optional[DilutedPoolParams] = None

    @property
    def code(self) -> int:
        """Layout name packed big-endian into an integer (ASCII bytes)."""
        return int.from_bytes(self.name.encode("ascii"), "big")

    @property
    def n_columns(self) -> int:
        return self.n_columns_first + self.n_columns_second

    def is_enabled(self, builtin: str) -> bool:
        assert builtin in BUILTIN_NAMES, f"Unknown builtin '{builtin}'"
        return getattr(self, builtin) is not None

    @property
    def enabled_builtins(self) -> Tuple[str, ...]:
        return tuple(name for name in BUILTIN_NAMES if self.is_enabled(name))

    @property
    def segment_names(self) -> Tuple[str, ...]:
        return ("program", "execution") + self.enabled_builtins

    @property
    def max_row_ratio(self) -> int:
        """Rows needed for one instance of every builtin (the minimal trace length)."""
        ratios = [self.cpu_component_height]
        for name in self.enabled_builtins:
            params = getattr(self, name)
            if params.row_ratio:
                ratios.append(params.row_ratio)
        return max(ratios)

    def trace_length(self, n_steps: int) -> int:
        return n_steps * self.cpu_component_height
