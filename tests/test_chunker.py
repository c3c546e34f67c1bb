# tests/test_chunker.py
import pytest

from docchat.memory.chunker import chunk_text, find_break_point


SENTENCES = "Sentence one. Sentence two. Sentence three."


class TestShortText:

    def test_text_within_size_is_single_chunk(self):
        """Short text comes back untouched, whitespace included."""
        text = "  short text  "
        assert chunk_text(text, size=100, overlap=10) == [text]

    def test_blank_text_has_no_chunks(self):
        assert chunk_text("", size=100, overlap=10) == []
        assert chunk_text("   \n\t ", size=100, overlap=10) == []


class TestBreakPoints:

    def test_prefers_sentence_boundary_over_mid_word_cut(self):
        chunks = chunk_text(SENTENCES, size=20, overlap=0)

        assert chunks == ["Sentence one.", "Sentence two.", "Sentence three."]

    def test_hard_cut_when_no_boundary_exists(self):
        text = "abcdefghij" * 5

        chunks = chunk_text(text, size=20, overlap=5)

        assert chunks == [text[0:20], text[15:35], text[30:50]]

    def test_early_boundary_is_ignored(self):
        """A space in the first half of the window does not shorten the chunk."""
        text = "ab " + "c" * 30

        chunks = chunk_text(text, size=20, overlap=0)

        assert chunks[0] == text[:20]

    def test_break_point_cuts_after_separator(self):
        text = "hello world, again and again"

        # Right-most space inside [0, 20) is at index 18
        assert find_break_point(text, 0, 20, 20) == 19

    def test_break_point_ignores_separator_at_window_end(self):
        text = "x" * 19 + " " + "y" * 10

        # Index 19 is inside the window; index 20 would not be
        assert find_break_point(text, 0, 20, 20) == 20
        assert find_break_point(text, 0, 19, 19) == 19


class TestGuarantees:

    def test_three_thousand_characters_make_four_or_five_chunks(self):
        sentence = "The quick brown fox jumps over the lazy dog. "
        text = (sentence * 100)[:3000]

        chunks = chunk_text(text, size=1000, overlap=200)

        assert 4 <= len(chunks) <= 5
        assert all(len(c) <= 1000 for c in chunks)

    def test_chunks_cover_the_whole_text(self):
        words = " ".join(f"word{i}" for i in range(600))

        chunks = chunk_text(words, size=200, overlap=40)

        for i in range(600):
            assert any(f"word{i}" in c.split() for c in chunks), f"word{i} missing"

    def test_consecutive_chunks_overlap(self):
        text = "abcdefghij" * 10

        chunks = chunk_text(text, size=30, overlap=10)

        for previous, current in zip(chunks, chunks[1:]):
            assert previous[-10:] == current[:10]

    def test_no_empty_chunks(self):
        text = ("word " * 50) + (" " * 300) + ("tail " * 50)

        chunks = chunk_text(text, size=100, overlap=20)

        assert chunks
        assert all(c.strip() == c and c for c in chunks)

    def test_overlap_not_smaller_than_size_still_terminates(self):
        text = "x" * 50

        chunks = chunk_text(text, size=10, overlap=10)

        # The window start advances one character per step
        assert len(chunks) == 41
        assert all(len(c) <= 10 for c in chunks)

    def test_huge_overlap_terminates(self):
        chunks = chunk_text("y" * 30, size=5, overlap=1000)

        assert len(chunks) == 26


class TestInvalidParameters:

    @pytest.mark.parametrize("size", [0, -5])
    def test_non_positive_size_rejected(self, size):
        with pytest.raises(ValueError):
            chunk_text("some text", size=size, overlap=0)

    def test_negative_overlap_rejected(self):
        with pytest.raises(ValueError):
            chunk_text("some text", size=10, overlap=-1)
