"""Tests for per-task chunk reassembly."""

import itertools
import logging

import pytest

from runstream.stream.reassembler import TaskOutputBuffer, TaskOutputReassembler


@pytest.fixture
def reassembler() -> TaskOutputReassembler:
    return TaskOutputReassembler()


class TestOrdering:
    def test_in_order_chunks(self, reassembler):
        assert reassembler.apply("t1", None, 0, "Hel") is None
        out = reassembler.apply("t1", None, 1, "lo", done=True)
        assert out.text == "Hello"
        assert out.role is None

    @pytest.mark.parametrize("order", list(itertools.permutations(range(4))))
    def test_any_delivery_order(self, reassembler, order):
        """Text is ordered by sequence number whatever the arrival order."""
        chunks = ["a", "bb", "ccc", "dddd"]
        last = order[-1]
        result = None
        for index in order:
            result = reassembler.apply("t1", "r", index, chunks[index], done=index == last)
        # Finalization happens on the done chunk, which arrives last here
        assert result is not None
        assert result.text == "abbcccdddd"

    def test_buffers_until_done(self, reassembler):
        reassembler.apply("t1", None, 1, "b")
        reassembler.apply("t1", None, 0, "a")
        assert "t1" in reassembler
        assert reassembler.pending() == ["t1"]

    def test_tasks_are_independent(self, reassembler):
        reassembler.apply("t1", "r1", 0, "one")
        reassembler.apply("t2", "r2", 0, "two")
        out = reassembler.apply("t2", None, 1, "!", done=True)
        assert out.text == "two!"
        assert out.task_id == "t2"
        assert "t1" in reassembler


class TestIdempotence:
    def test_redelivered_chunk_does_not_duplicate(self, reassembler):
        reassembler.apply("t1", None, 0, "Hel")
        reassembler.apply("t1", None, 0, "Hel")
        out = reassembler.apply("t1", None, 1, "lo", done=True)
        assert out.text == "Hello"

    def test_same_sequence_overwrites_slot(self, reassembler):
        reassembler.apply("t1", None, 0, "old")
        out = reassembler.apply("t1", None, 0, "new", done=True)
        assert out.text == "new"


class TestFinalization:
    def test_buffer_deleted_on_done(self, reassembler):
        reassembler.apply("t1", None, 0, "x", done=True)
        assert "t1" not in reassembler
        assert len(reassembler) == 0

    def test_single_empty_done_chunk(self, reassembler):
        out = reassembler.apply("t1", "coder", 0, "", done=True)
        assert out.text == ""
        assert out.role == "coder"

    def test_missing_interior_slots_render_empty(self, reassembler):
        """Known fidelity gap: dropped chunks become silent holes in the text."""
        reassembler.apply("t1", None, 0, "A")
        reassembler.apply("t1", None, 2, "C")
        out = reassembler.apply("t1", None, 4, "E", done=True)
        assert out.text == "ACE"
        assert out.missing == 2
        assert out.has_gaps

    def test_no_gaps_when_contiguous(self, reassembler):
        reassembler.apply("t1", None, 0, "A")
        out = reassembler.apply("t1", None, 1, "B", done=True)
        assert not out.has_gaps

    def test_sparse_high_sequence_is_bounded(self, reassembler, caplog):
        """Finalizing walks stored chunks only, and the warning stays short."""
        with caplog.at_level(logging.WARNING, logger="runstream.stream.reassembler"):
            out = reassembler.apply("t1", None, 20_000_000, "x", done=True)
        assert out.text == "x"
        assert out.missing == 20_000_000
        [record] = caplog.records
        assert "20000000 missing" in record.getMessage()
        assert "[0, 1, 2, 3, 4]" in record.getMessage()
        assert len(record.getMessage()) < 200

    def test_missing_indices_sample(self):
        buffer = TaskOutputBuffer(chunks={0: "a", 2: "c", 5: "f"})
        assert buffer.missing_indices(10) == [1, 3, 4]
        assert buffer.missing_indices(2) == [1, 3]
        assert TaskOutputBuffer(chunks={0: "a", 1: "b"}).missing_indices(5) == []


class TestNegativeSequence:
    def test_negative_sequence_does_not_overwrite_slot_zero(self, reassembler):
        reassembler.apply("t1", None, 0, "Hello")
        reassembler.apply("t1", None, -1, "JUNK")
        out = reassembler.apply("t1", None, 1, " world", done=True)
        assert out.text == "Hello world"
        assert not out.has_gaps

    def test_negative_done_chunk_still_finalizes(self, reassembler):
        reassembler.apply("t1", "coder", 0, "kept")
        out = reassembler.apply("t1", None, -3, "dropped", done=True)
        assert out.text == "kept"
        assert out.role == "coder"
        assert "t1" not in reassembler

    def test_only_negative_chunks_finalize_empty(self, reassembler):
        out = reassembler.apply("t1", None, -1, "x", done=True)
        assert out.text == ""
        assert out.missing == 0


class TestRole:
    def test_most_recent_non_empty_role_wins(self, reassembler):
        reassembler.apply("t1", "planner", 0, "a")
        reassembler.apply("t1", "", 1, "b")
        reassembler.apply("t1", "coder", 2, "c")
        out = reassembler.apply("t1", None, 3, "d", done=True)
        assert out.role == "coder"

    def test_role_absent_throughout(self, reassembler):
        out = reassembler.apply("t1", None, 0, "x", done=True)
        assert out.role is None


class TestClear:
    def test_clear_drops_all_buffers(self, reassembler):
        reassembler.apply("t1", None, 0, "a")
        reassembler.apply("t2", None, 0, "b")
        reassembler.clear()
        assert len(reassembler) == 0

    def test_discard_one(self, reassembler):
        reassembler.apply("t1", None, 0, "a")
        reassembler.discard("t1")
        reassembler.discard("missing")
        assert "t1" not in reassembler
