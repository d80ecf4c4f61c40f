"""Run event stream pipeline: decode -> reassemble -> reduce, over one connection."""

from runstream.stream.connection import ConnectionManager, backoff_delay
from runstream.stream.decoder import decode_event
from runstream.stream.events import AnyEvent, IgnoredEvent, StreamEvent
from runstream.stream.reassembler import ReassembledOutput, TaskOutputReassembler
from runstream.stream.reducer import Reduction, RunStateReducer, format_task_output

__all__ = [
    "AnyEvent",
    "ConnectionManager",
    "IgnoredEvent",
    "ReassembledOutput",
    "Reduction",
    "RunStateReducer",
    "StreamEvent",
    "TaskOutputReassembler",
    "backoff_delay",
    "decode_event",
    "format_task_output",
]
