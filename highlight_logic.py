"""
Text Search and Highlight Engine.

This module provides the search side of the viewer:
- Match engine with three policies: exact substring, fixed-distance fuzzy
  (Levenshtein sliding window) and scored fuzzy line search (RapidFuzz)
- Span merging into a minimal set of disjoint ranges
- Segment building: a lossless partition of the text into plain/highlighted runs
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

import Levenshtein
import numpy as np
from rapidfuzz import fuzz, process
from rapidfuzz.distance import OSA

logger = logging.getLogger(__name__)

DEFAULT_SCORE_THRESHOLD = 0.6
DEFAULT_MIN_MATCH_LENGTH = 1


# ============================================================================
# Data model
# ============================================================================
@dataclass(frozen=True, order=True)
class MatchSpan:
    """Half-open character range [start, end) into the searched text."""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def shifted(self, offset: int) -> "MatchSpan":
        return MatchSpan(self.start + offset, self.end + offset)


@dataclass(frozen=True)
class Segment:
    text: str
    highlighted: bool = False


@dataclass(frozen=True)
class LineMatch:
    """
    A line accepted by the scored fuzzy search.

    ``spans`` are local to ``text``; ``offset`` is the index of the line's
    first character in the full text.
    """

    line_number: int
    text: str
    offset: int
    score: float
    spans: tuple

    def global_spans(self) -> list:
        return [s.shifted(self.offset) for s in self.spans]


# Match modes are a tagged variant: the class is the tag, the fields its payload.
@dataclass(frozen=True)
class ExactMatch:
    case_sensitive: bool = False
    whole_word: bool = False


@dataclass(frozen=True)
class DistanceMatch:
    threshold: int = 0
    case_sensitive: bool = False


@dataclass(frozen=True)
class ScoredMatch:
    threshold: float = DEFAULT_SCORE_THRESHOLD
    case_sensitive: bool = False
    min_match_length: int = DEFAULT_MIN_MATCH_LENGTH


MatchMode = Union[ExactMatch, DistanceMatch, ScoredMatch]

MODE_NAMES = ("exact", "distance", "scored")


# ============================================================================
# Parameter clamping (applied at the boundary, before the engine)
# ============================================================================
def clamp_distance_threshold(value) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def clamp_score_threshold(value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SCORE_THRESHOLD
    if np.isnan(value):
        return DEFAULT_SCORE_THRESHOLD
    return min(1.0, max(0.0, value))


def make_match_mode(
    name: str,
    threshold=None,
    case_sensitive: bool = False,
    whole_word: bool = False,
) -> MatchMode:
    """
    Build a match mode from raw UI values.

    Args:
        name: One of "exact", "distance" or "scored"
        threshold: Edit distance (distance mode) or score cutoff (scored mode)
        case_sensitive: Whether comparison respects case
        whole_word: Exact mode only; reject occurrences inside a word

    Returns:
        The tagged mode with its threshold clamped into range
    """
    name = (name or "exact").lower()
    if name == "distance":
        return DistanceMatch(
            threshold=clamp_distance_threshold(threshold),
            case_sensitive=case_sensitive,
        )
    if name == "scored":
        return ScoredMatch(
            threshold=clamp_score_threshold(
                DEFAULT_SCORE_THRESHOLD if threshold is None else threshold
            ),
            case_sensitive=case_sensitive,
        )
    if name not in MODE_NAMES:
        raise ValueError(f"Unknown match mode: {name!r}")
    return ExactMatch(case_sensitive=case_sensitive, whole_word=whole_word)


# ============================================================================
# Match engine
# ============================================================================
def _fold(text: str) -> str:
    """Lowercase character by character, keeping every index in place."""
    # Characters that expand when lowered (e.g. "İ") are left as they are.
    return "".join(c if len(c.lower()) != 1 else c.lower() for c in text)


def _is_word_char(c: str) -> bool:
    return c.isalnum() or c == "_"


def _on_word_boundaries(text: str, start: int, end: int) -> bool:
    if start > 0 and _is_word_char(text[start - 1]):
        return False
    if end < len(text) and _is_word_char(text[end]):
        return False
    return True


def _find_exact(text: str, query: str, mode: ExactMatch) -> list:
    haystack = text if mode.case_sensitive else _fold(text)
    needle = query if mode.case_sensitive else _fold(query)

    spans = []
    pos = haystack.find(needle)
    while pos != -1:
        end = pos + len(needle)
        if mode.whole_word and not _on_word_boundaries(text, pos, end):
            pos = haystack.find(needle, pos + 1)
            continue
        spans.append(MatchSpan(pos, end))
        pos = haystack.find(needle, end)
    return spans


def _find_within_distance(text: str, query: str, mode: DistanceMatch) -> list:
    """
    Slide a window of len(query) across the text one character at a time.

    A window within the threshold is refined against the windows overlapping
    it: the lowest Levenshtein distance wins, then the lowest distance with
    adjacent transpositions counted once, then the earliest start. The scan
    then resumes at the end of the accepted window.
    """
    haystack = text if mode.case_sensitive else _fold(text)
    needle = query if mode.case_sensitive else _fold(query)
    m = len(needle)
    threshold = mode.threshold
    last_start = len(haystack) - m

    spans = []
    i = 0
    while i <= last_start:
        dist = Levenshtein.distance(
            haystack[i : i + m], needle, score_cutoff=threshold
        )
        if dist > threshold:
            i += 1
            continue

        best_key = (dist, OSA.distance(haystack[i : i + m], needle), i)
        for j in range(i + 1, min(i + m, last_start + 1)):
            if best_key[0] == 0:
                break
            window = haystack[j : j + m]
            d = Levenshtein.distance(window, needle, score_cutoff=best_key[0])
            if d > best_key[0]:
                continue
            key = (d, OSA.distance(window, needle), j)
            if key < best_key:
                best_key = key

        start = best_key[2]
        spans.append(MatchSpan(start, start + m))
        i = start + m
    return spans


def _split_lines(text: str) -> list:
    """Return (line_number, offset, line_text) for each newline-delimited line."""
    lines = []
    offset = 0
    for number, line in enumerate(text.split("\n"), start=1):
        lines.append((number, offset, line))
        offset += len(line) + 1
    return lines


def _contributing_spans(query: str, line: str, min_length: int) -> list:
    """Character ranges of ``line`` that the best fuzzy alignment agrees on."""
    if len(line) < len(query):
        # The line fits inside the query; align against all of it.
        start, end = 0, len(line)
    else:
        alignment = fuzz.partial_ratio_alignment(query, line)
        if alignment is None or alignment.score <= 0:
            return []
        start, end = alignment.dest_start, alignment.dest_end
    window = line[start:end]
    blocks = Levenshtein.matching_blocks(
        Levenshtein.editops(query, window), query, window
    )
    return [
        MatchSpan(start + block.b, start + block.b + block.size)
        for block in blocks
        if block.size >= max(1, min_length)
    ]


def search_lines(text: str, query: str, mode: Optional[ScoredMatch] = None) -> list:
    """
    Scored fuzzy search over the lines of ``text``.

    Each line gets a score in [0.0, 1.0] (0.0 is a perfect match) from how
    well the whole query aligns with its best substring of the line. The
    match position does not affect it; a line shorter than the query is
    scaled down by the fraction of the query it could cover.

    Returns:
        List of LineMatch for lines scoring at or below the threshold that
        have at least one contributing sub-match, in line order
    """
    mode = mode or ScoredMatch()
    if not query or not text:
        return []

    lines = _split_lines(text)
    needle = query if mode.case_sensitive else _fold(query)
    prepared = [line if mode.case_sensitive else _fold(line) for _, _, line in lines]

    similarity = process.cdist(
        [needle], prepared, scorer=fuzz.partial_ratio, dtype=np.float64
    )[0]
    # A line shorter than the query can only cover that share of it.
    lengths = np.array([len(line) for line in prepared], dtype=np.float64)
    coverage = np.minimum(1.0, lengths / len(needle))
    scores = 1.0 - similarity * coverage / 100.0
    accepted = np.flatnonzero(scores <= mode.threshold)

    results = []
    for idx in accepted:
        number, offset, line = lines[idx]
        spans = merge_spans(
            _contributing_spans(needle, prepared[idx], mode.min_match_length)
        )
        if not spans:
            continue
        results.append(
            LineMatch(
                line_number=number,
                text=line,
                offset=offset,
                score=float(scores[idx]),
                spans=tuple(spans),
            )
        )

    logger.debug(
        "Scored search for %r: %d/%d lines accepted", query, len(results), len(lines)
    )
    return results


def find_matches(text: str, query: str, mode: Optional[MatchMode] = None) -> list:
    """
    Find the spans of ``text`` matching ``query`` under ``mode``.

    Spans always index into the original (non-folded) text. Scored-mode line
    spans are shifted to whole-text offsets. An empty query yields no spans.

    Args:
        text: Text to search
        query: Search string
        mode: ExactMatch, DistanceMatch or ScoredMatch (default ExactMatch())

    Returns:
        List of MatchSpan, possibly overlapping for scored mode
    """
    mode = mode or ExactMatch()
    if not query or not text:
        return []

    if isinstance(mode, ExactMatch):
        spans = _find_exact(text, query, mode)
    elif isinstance(mode, DistanceMatch):
        spans = _find_within_distance(text, query, mode)
    elif isinstance(mode, ScoredMatch):
        spans = [s for lm in search_lines(text, query, mode) for s in lm.global_spans()]
    else:
        raise TypeError(f"Unsupported match mode: {type(mode).__name__}")

    logger.debug("%s search for %r: %d spans", type(mode).__name__, query, len(spans))
    return spans


# ============================================================================
# Span merger and segment builder
# ============================================================================
def merge_spans(spans) -> list:
    """Coalesce overlapping or touching spans into sorted, disjoint spans."""
    merged = []
    for span in sorted(spans):
        if merged and span.start <= merged[-1].end:
            if span.end > merged[-1].end:
                merged[-1] = MatchSpan(merged[-1].start, span.end)
        else:
            merged.append(span)
    return merged


def build_segments(text: str, merged_spans) -> list:
    """
    Partition ``text`` into plain and highlighted segments.

    ``merged_spans`` must be sorted and disjoint (see merge_spans). The
    segments concatenate back to ``text`` exactly.
    """
    if not merged_spans:
        return [Segment(text, False)]

    segments = []
    cursor = 0
    for span in merged_spans:
        if span.start > cursor:
            segments.append(Segment(text[cursor : span.start], False))
        segments.append(Segment(text[span.start : span.end], True))
        cursor = span.end
    if cursor < len(text):
        segments.append(Segment(text[cursor:], False))
    return segments


def highlight(text: str, query: str, mode: Optional[MatchMode] = None) -> list:
    """Run the full search pipeline and return the segments for ``text``."""
    return build_segments(text, merge_spans(find_matches(text, query, mode)))


def highlight_lines(
    text: str, query: str, mode: Optional[ScoredMatch] = None
) -> list:
    """
    Per-line rendering for scored mode.

    Returns:
        List of (LineMatch, segments) tuples, one per accepted line
    """
    return [
        (lm, build_segments(lm.text, list(lm.spans)))
        for lm in search_lines(text, query, mode)
    ]
