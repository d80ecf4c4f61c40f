"""Reassemble chunked per-task output into ordered text.

Task output arrives as numbered chunks that may be redelivered after a
reconnect or arrive out of order. Each chunk is stored at its sequence
index, so applying the same chunk twice is a no-op. A task is finalized by
the chunk flagged ``done``; its slots are then joined in index order and the
buffer is dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_LOGGED_GAPS = 5


@dataclass
class TaskOutputBuffer:
    """Sparse chunk storage for one task's streaming output."""

    chunks: dict[int, str] = field(default_factory=dict)
    role: str | None = None

    def text(self) -> tuple[str, int]:
        """Join the stored slots in index order.

        Returns:
            The joined text and the number of missing interior slots, which
            are rendered as empty strings.
        """
        if not self.chunks:
            return "", 0
        indices = sorted(self.chunks)
        missing = indices[-1] + 1 - len(indices)
        return "".join(self.chunks[i] for i in indices), missing

    def missing_indices(self, limit: int) -> list[int]:
        """The first ``limit`` missing slot indices, walking stored slots only."""
        found: list[int] = []
        expected = 0
        for index in sorted(self.chunks):
            while expected < index and len(found) < limit:
                found.append(expected)
                expected += 1
            if len(found) >= limit:
                break
            expected = index + 1
        return found


@dataclass(frozen=True)
class ReassembledOutput:
    """Final text of a task once its ``done`` chunk has been applied."""

    task_id: str
    text: str
    role: str | None = None
    missing: int = 0

    @property
    def has_gaps(self) -> bool:
        return self.missing > 0


class TaskOutputReassembler:
    """Per-task chunk buffers keyed by task id.

    Usage::

        reassembler = TaskOutputReassembler()
        reassembler.apply("t1", "coder", 0, "Hel")             # None
        out = reassembler.apply("t1", None, 1, "lo", done=True)
        out.text, out.role                                     # ("Hello", "coder")
    """

    def __init__(self) -> None:
        self._buffers: dict[str, TaskOutputBuffer] = {}

    def apply(
        self,
        task_id: str,
        role: str | None,
        sequence: int,
        chunk: str,
        done: bool = False,
    ) -> ReassembledOutput | None:
        """Store one chunk and finalize the task if it is the last one.

        Args:
            task_id: Task the chunk belongs to.
            role: Worker role; the most recent non-empty value wins.
            sequence: Zero-based chunk index. Repeats overwrite the slot;
                negative indices are dropped.
            chunk: Chunk text.
            done: Whether this chunk completes the task.

        Returns:
            None while the task is still buffering, otherwise the
            reassembled output.
        """
        buffer = self._buffers.setdefault(task_id, TaskOutputBuffer())
        if sequence < 0:
            logger.debug("Dropping task-output chunk for %s with negative sequence %d", task_id, sequence)
        else:
            buffer.chunks[sequence] = chunk or ""
        if role:
            buffer.role = role

        if not done:
            return None

        del self._buffers[task_id]
        text, missing = buffer.text()
        if missing:
            logger.warning(
                "Task %s finalized with %d missing chunk(s), first: %s",
                task_id,
                missing,
                buffer.missing_indices(_LOGGED_GAPS),
            )
        return ReassembledOutput(task_id=task_id, text=text, role=buffer.role, missing=missing)

    def pending(self) -> list[str]:
        """Task ids that are still buffering."""
        return list(self._buffers)

    def discard(self, task_id: str) -> None:
        self._buffers.pop(task_id, None)

    def clear(self) -> None:
        self._buffers.clear()

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._buffers

    def __len__(self) -> int:
        return len(self._buffers)


__all__ = ["ReassembledOutput", "TaskOutputBuffer", "TaskOutputReassembler"]
