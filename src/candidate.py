#!/usr/bin/env python3
# candidate.py - Conversion candidates and their reconstruction into display text

import logging
from collections import namedtuple

logger = logging.getLogger(__name__)

# reading: the phonetic text the segment consumes (e.g. "かん")
# word: the surface text it produces (e.g. "漢")
Segment = namedtuple('Segment', ['reading', 'word'])

# segments: tuple of Segment, in reading order
# corresponding_count: number of reading characters the segments cover
Candidate = namedtuple('Candidate', ['segments', 'corresponding_count'])

# text: display text of the candidate
# subtext: convert target left over if the candidate were accepted
# corresponding_count: as in Candidate
Suggestion = namedtuple('Suggestion', ['text', 'subtext', 'corresponding_count'])


def make_candidate(segments, corresponding_count=None):
    """
    Build a Candidate from (reading, word) pairs.

    Args:
        segments: Iterable of Segment or (reading, word) tuples
        corresponding_count: Reading characters covered; defaults to the
                             total length of the segment readings

    Returns:
        Candidate
    """
    segments = tuple(Segment(reading, word) for reading, word in segments)
    if corresponding_count is None:
        corresponding_count = sum(len(segment.reading) for segment in segments)
    return Candidate(segments, corresponding_count)


def reconstruct_candidate_text(candidate, phonetic_text):
    """
    Turn a candidate's segments into the text shown for it.

    The segments are consumed against phonetic_text from the front. When the
    text left is shorter than the next segment's reading, that text is shown
    as-is and the walk stops. When the segments run out first, nothing more
    is appended.

    Example:
        segments [("かん", "漢"), ("じ", "字")], phonetic_text "かんじ" → "漢字"
        segments [("た", "食"), ("べ", "べ")], phonetic_text "たべた" → "食べ"

    Args:
        candidate: Candidate to render
        phonetic_text: Current convert target

    Returns:
        str: The display text
    """
    remaining = phonetic_text
    result = []
    for segment in candidate.segments:
        if len(remaining) < len(segment.reading):
            result.append(remaining)
            break
        remaining = remaining[len(segment.reading):]
        result.append(segment.word)
    return ''.join(result)


def prefix_complete(buffer, corresponding_count):
    """
    Preview the buffer left after accepting corresponding_count characters.

    The given buffer is not modified.
    """
    return buffer.prefix_complete(corresponding_count)


def build_suggestions(candidates, buffer):
    """
    Reconstruct every candidate against the buffer's convert target.

    Args:
        candidates: Candidates in supplier order
        buffer: The live ComposingBuffer (read only)

    Returns:
        list: Suggestion tuples in the same order
    """
    hiragana = buffer.convert_target
    suggestions = []
    for candidate in candidates:
        text = reconstruct_candidate_text(candidate, hiragana)
        residual = prefix_complete(buffer, candidate.corresponding_count)
        suggestions.append(Suggestion(text, residual.convert_target, candidate.corresponding_count))
    logger.debug(f'build_suggestions({hiragana!r}) → {len(suggestions)} suggestions')
    return suggestions
