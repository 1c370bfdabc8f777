"""Protocol - AIR configuration, trace data and the composition polynomial."""

from protocol.air_config import (
    ConfigurationError,
    InteractionParams,
    InteractionPhaseError,
    InvalidDynamicParamsError,
    MemorySegment,
    SegmentNotFoundError,
    get_segment,
    parse_memory_segments,
    parse_public_memory,
)
from protocol.data import INTERACTION_ELEMENT_NAMES, InteractionElements, Trace
from protocol.trace_context import TraceGenerationContext, VirtualColumn

__all__ = [
    # Configuration
    "MemorySegment",
    "InteractionParams",
    "get_segment",
    "parse_memory_segments",
    "parse_public_memory",
    # Errors
    "ConfigurationError",
    "SegmentNotFoundError",
    "InvalidDynamicParamsError",
    "InteractionPhaseError",
    # Trace data
    "Trace",
    "InteractionElements",
    "INTERACTION_ELEMENT_NAMES",
    "TraceGenerationContext",
    "VirtualColumn",
]
