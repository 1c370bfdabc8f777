"""AIR configuration: memory segments, public memory and construction errors.

This module provides the configuration inputs of a CPU AIR:

- MemorySegment: begin/stop addresses of one memory segment (program,
  execution, or a builtin), keyed by segment name.
- InteractionParams: sizes of the interaction (second) commitment round.
- Errors raised when a configuration cannot describe a valid AIR instance.

The dict parsers accept the shapes used by a Cairo public input document
after it was loaded, for example::

    segments = parse_memory_segments(public_input["memory_segments"])
    public_memory = parse_public_memory(public_input["public_memory"])
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Tuple


# --- Errors ---

class ConfigurationError(ValueError):
    """The construction inputs do not describe a valid AIR instance."""


class SegmentNotFoundError(ConfigurationError):
    """A segment required by the layout is missing from the segment map."""


class InvalidDynamicParamsError(ConfigurationError):
    """The dynamic parameter map does not match the layout's parameter set."""


class InteractionPhaseError(RuntimeError):
    """Interaction data was used before the interaction elements were set, or set twice."""


# --- Segments ---

@dataclass(frozen=True)
class MemorySegment:
    """Address range of one memory segment; stop_ptr is the first unused address."""
    begin_addr: int
    stop_ptr: int

    def __post_init__(self) -> None:
        if self.begin_addr < 0 or self.stop_ptr < self.begin_addr:
            raise ConfigurationError(
                f"Invalid segment [{self.begin_addr}, {self.stop_ptr})"
            )

    @property
    def size(self) -> int:
        return self.stop_ptr - self.begin_addr

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MemorySegment":
        return cls(begin_addr=_parse_int(data["begin_addr"]), stop_ptr=_parse_int(data["stop_ptr"]))


def get_segment(mem_segment_addresses: Mapping[str, MemorySegment], name: str) -> MemorySegment:
    """Look up a segment by name.

    Raises:
        SegmentNotFoundError: If the segment map has no entry for name
    """
    try:
        return mem_segment_addresses[name]
    except KeyError:
        raise SegmentNotFoundError(
            f"Segment '{name}' not found. Available: {sorted(mem_segment_addresses)}"
        ) from None


def parse_memory_segments(data: Mapping[str, Mapping[str, Any]]) -> Dict[str, MemorySegment]:
    """Parse ``{name: {"begin_addr": .., "stop_ptr": ..}}``."""
    try:
        return {name: MemorySegment.from_dict(entry) for name, entry in data.items()}
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed memory segment map: {e}") from e


def parse_public_memory(entries: Iterable[Mapping[str, Any]]) -> List[Tuple[int, int]]:
    """Parse ``[{"address": .., "value": ..}, ...]`` into (address, value) pairs.

    Values may be ints or hex strings.
    """
    try:
        return [(_parse_int(e["address"]), _parse_int(e["value"])) for e in entries]
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed public memory entry: {e}") from e


def _parse_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 0)
    return int(value)


# --- Interaction ---

@dataclass(frozen=True)
class InteractionParams:
    """Sizes of the two trace commitment rounds."""
    n_columns_first: int
    n_columns_second: int
    n_interaction_elements: int
