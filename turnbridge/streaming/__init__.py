"""Stream reconstruction: delta accumulation, event sequencing and SSE framing."""

from .accumulator import (
    AccumulatorState,
    DeltaAccumulator,
    FragmentBuffer,
    ToolCallFragment,
)
from .sequencer import EventSequencer
from .sse import DONE_MARKER, extract_data, format_event, parse_data


__all__ = [
    "AccumulatorState",
    "DeltaAccumulator",
    "FragmentBuffer",
    "ToolCallFragment",
    "EventSequencer",
    "DONE_MARKER",
    "extract_data",
    "format_event",
    "parse_data",
]
