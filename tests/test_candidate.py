#!/usr/bin/env python3
# tests/test_candidate.py - Unit tests for candidate.py

import pytest
import os
import sys

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from candidate import (
    Candidate, Segment, Suggestion, build_suggestions, make_candidate,
    prefix_complete, reconstruct_candidate_text,
)
from composing import ComposingBuffer
from romaji import create_transliterator, load_layout

LAYOUT_PATH = os.path.join(os.path.dirname(__file__), '..', 'data', 'layouts', 'romaji.json')


@pytest.fixture(scope='module')
def transliterator():
    return create_transliterator(load_layout(LAYOUT_PATH))


@pytest.fixture
def kanji_buffer(transliterator):
    buffer = ComposingBuffer(transliterator)
    buffer.insert('kanji')
    return buffer


class TestMakeCandidate:

    def test_count_defaults_to_reading_length(self):
        candidate = make_candidate([('かん', '漢'), ('じ', '字')])
        assert candidate.segments == (Segment('かん', '漢'), Segment('じ', '字'))
        assert candidate.corresponding_count == 3

    def test_explicit_count(self):
        assert make_candidate([('かん', '感')], 2).corresponding_count == 2


class TestReconstructCandidateText:
    """Test suite for reconstruct_candidate_text()"""

    def test_segments_cover_whole_text(self):
        candidate = make_candidate([('かん', '漢'), ('じ', '字')])
        assert reconstruct_candidate_text(candidate, 'かんじ') == '漢字'

    def test_nothing_appended_after_last_segment(self):
        candidate = make_candidate([('たべ', '食べ')])
        assert reconstruct_candidate_text(candidate, 'たべた') == '食べ'

    def test_two_segments_shorter_than_text(self):
        candidate = make_candidate([('た', '食'), ('べ', 'べ')], 2)
        assert reconstruct_candidate_text(candidate, 'たべた') == '食べ'

    def test_shorter_remaining_text_is_shown_as_is(self):
        candidate = make_candidate([('かん', '漢'), ('じょう', '場')])
        assert reconstruct_candidate_text(candidate, 'かんじ') == '漢じ'

    def test_segments_after_cut_are_ignored(self):
        candidate = make_candidate([('かんじ', '漢字'), ('です', 'です'), ('か', '課')])
        assert reconstruct_candidate_text(candidate, 'かんじで') == '漢字で'

    def test_no_segments(self):
        assert reconstruct_candidate_text(Candidate((), 0), 'かんじ') == ''


class TestBuildSuggestions:
    """Test suite for build_suggestions()"""

    def test_whole_and_partial_candidates(self, kanji_buffer):
        candidates = [
            make_candidate([('かんじ', '漢字')]),
            make_candidate([('かん', '感')]),
        ]
        suggestions = build_suggestions(candidates, kanji_buffer)
        assert suggestions == [
            Suggestion('漢字', '', 3),
            Suggestion('感', 'じ', 2),
        ]

    def test_partial_candidate_subtext(self, transliterator):
        buffer = ComposingBuffer(transliterator)
        buffer.insert('tabeta')
        candidate = make_candidate([('た', '食'), ('べ', 'べ')], 2)
        assert build_suggestions([candidate], buffer) == [Suggestion('食べ', 'た', 2)]
        assert buffer.convert_target == 'たべた'

    def test_order_is_preserved(self, kanji_buffer):
        candidates = [make_candidate([('かんじ', w)]) for w in ('感じ', '漢字', '幹事')]
        texts = [s.text for s in build_suggestions(candidates, kanji_buffer)]
        assert texts == ['感じ', '漢字', '幹事']

    def test_buffer_is_not_modified(self, kanji_buffer):
        before = kanji_buffer.copy()
        build_suggestions([make_candidate([('か', '下')])], kanji_buffer)
        assert kanji_buffer == before

    def test_no_candidates(self, kanji_buffer):
        assert build_suggestions([], kanji_buffer) == []

    def test_prefix_complete_preview(self, kanji_buffer):
        residual = prefix_complete(kanji_buffer, 1)
        assert residual.convert_target == 'んじ'
        assert kanji_buffer.convert_target == 'かんじ'


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
