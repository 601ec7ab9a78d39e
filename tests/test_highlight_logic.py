import unittest
import os
import sys

# Ensure the root directory is in path so we can import the core modules
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from highlight_logic import (
    DEFAULT_SCORE_THRESHOLD,
    DistanceMatch,
    ExactMatch,
    MatchSpan,
    ScoredMatch,
    Segment,
    build_segments,
    find_matches,
    highlight,
    highlight_lines,
    make_match_mode,
    merge_spans,
    search_lines,
)


class TestExactMatch(unittest.TestCase):
    def test_all_occurrences(self):
        spans = find_matches("the cat sat on the mat", "at", ExactMatch())
        self.assertEqual(spans, [MatchSpan(5, 7), MatchSpan(9, 11), MatchSpan(20, 22)])

    def test_scan_resumes_after_match(self):
        """Occurrences never overlap: the scan restarts at the match end."""
        spans = find_matches("aaaaa", "aa", ExactMatch())
        self.assertEqual(spans, [MatchSpan(0, 2), MatchSpan(2, 4)])

    def test_case_sensitivity(self):
        text = "Fox fox FOX"
        self.assertEqual(len(find_matches(text, "fox", ExactMatch())), 3)
        self.assertEqual(
            find_matches(text, "fox", ExactMatch(case_sensitive=True)),
            [MatchSpan(4, 7)],
        )

    def test_whole_word(self):
        text = "cat concatenate cat"
        self.assertEqual(
            find_matches(text, "cat", ExactMatch(whole_word=True)),
            [MatchSpan(0, 3), MatchSpan(16, 19)],
        )
        self.assertEqual(len(find_matches(text, "cat", ExactMatch())), 3)

    def test_spans_equal_query(self):
        text = "One two ONE three one, oNe."
        for case_sensitive in (True, False):
            for span in find_matches(text, "one", ExactMatch(case_sensitive)):
                found = text[span.start : span.end]
                if case_sensitive:
                    self.assertEqual(found, "one")
                else:
                    self.assertEqual(found.lower(), "one")

    def test_indices_point_into_original_text(self):
        # "İ" grows when lowered; offsets must still index the original text.
        text = "İstanbul"
        self.assertEqual(find_matches(text, "stan", ExactMatch()), [MatchSpan(1, 5)])

    def test_empty_query(self):
        for mode in (ExactMatch(), DistanceMatch(2), ScoredMatch()):
            self.assertEqual(find_matches("some text", "", mode), [])
            self.assertEqual(highlight("some text", "", mode), [Segment("some text")])


class TestDistanceMatch(unittest.TestCase):
    def test_transposed_query(self):
        spans = find_matches("the quick brown fox", "quikc", DistanceMatch(threshold=2))
        self.assertEqual(spans, [MatchSpan(4, 9)])

    def test_one_edit(self):
        spans = find_matches("hello world", "wrld", DistanceMatch(threshold=1))
        self.assertEqual(spans, [MatchSpan(7, 11)])

    def test_threshold_zero_equals_exact(self):
        samples = [
            ("the cat sat on the mat", "at"),
            ("aaaaa", "aa"),
            ("Fox fox FOX", "fox"),
            ("nothing here", "xyz"),
            ("abcabcabc", "cab"),
        ]
        for text, query in samples:
            for case_sensitive in (True, False):
                self.assertEqual(
                    find_matches(text, query, DistanceMatch(0, case_sensitive)),
                    find_matches(text, query, ExactMatch(case_sensitive)),
                    msg=f"{text!r} / {query!r} / {case_sensitive}",
                )

    def test_matches_do_not_overlap(self):
        spans = find_matches("abababab", "abab", DistanceMatch(threshold=1))
        for a, b in zip(spans, spans[1:]):
            self.assertLessEqual(a.end, b.start)

    def test_query_longer_than_text(self):
        self.assertEqual(find_matches("abc", "abcdef", DistanceMatch(threshold=3)), [])


class TestScoredMatch(unittest.TestCase):
    TEXT = "alpha beta\ngamma delta\nepsilon"

    def test_exact_line_hit(self):
        results = search_lines(self.TEXT, "delta", ScoredMatch(threshold=0.2))
        self.assertEqual(len(results), 1)
        line = results[0]
        self.assertEqual(line.line_number, 2)
        self.assertEqual(line.text, "gamma delta")
        self.assertAlmostEqual(line.score, 0.0)
        self.assertEqual(line.spans, (MatchSpan(6, 11),))
        self.assertEqual(line.global_spans(), [MatchSpan(17, 22)])

    def test_find_matches_returns_global_spans(self):
        spans = find_matches(self.TEXT, "delta", ScoredMatch(threshold=0.2))
        self.assertEqual(spans, [MatchSpan(17, 22)])
        self.assertEqual(self.TEXT[17:22], "delta")

    def test_fuzzy_line(self):
        text = "the quikc brown fox"
        results = search_lines(text, "quick", ScoredMatch(threshold=0.5))
        self.assertEqual(len(results), 1)
        self.assertLessEqual(results[0].score, 0.5)
        highlighted = "".join(
            s.text for s in build_segments(text, list(results[0].spans)) if s.highlighted
        )
        self.assertIn("qui", highlighted)

    def test_case_sensitive(self):
        self.assertEqual(
            search_lines(self.TEXT, "DELTA", ScoredMatch(0.2, case_sensitive=True)), []
        )
        self.assertEqual(len(search_lines(self.TEXT, "DELTA", ScoredMatch(0.2))), 1)

    def test_short_lines_inside_query_not_perfect(self):
        text = "Chapter 1\nb\nthe lazy dog sleeps"
        results = search_lines(text, "quick brown fox", ScoredMatch())
        self.assertFalse({1, 2} & {r.line_number for r in results})
        for line in results:
            self.assertGreater(line.score, 0.0)

        self.assertEqual(search_lines("ab", "QUICK brwn", ScoredMatch()), [])

    def test_line_shorter_than_query(self):
        text = "brown"
        query = "quick brown fox"
        # Only a third of the query can be present.
        self.assertEqual(search_lines(text, query, ScoredMatch()), [])

        results = search_lines(text, query, ScoredMatch(threshold=0.7))
        self.assertEqual(len(results), 1)
        self.assertAlmostEqual(results[0].score, 2 / 3, places=6)
        self.assertEqual(results[0].spans, (MatchSpan(0, 5),))

    def test_weak_line_rejected(self):
        text = "zzzz yyyy wwww vvvv"
        self.assertEqual(search_lines(text, "quick brown fox", ScoredMatch()), [])
        self.assertEqual(find_matches(text, "quick brown fox", ScoredMatch()), [])

    def test_score_grows_as_similarity_drops(self):
        text = "quick brown fox\nquick brown fix\nquick bravo fix"
        results = search_lines(text, "quick brown fox", ScoredMatch(threshold=1.0))
        scores = {r.line_number: r.score for r in results}
        self.assertEqual(set(scores), {1, 2, 3})
        self.assertAlmostEqual(scores[1], 0.0)
        self.assertGreater(scores[2], scores[1])
        self.assertGreater(scores[3], scores[2])

    def test_highlight_lines(self):
        results = highlight_lines(self.TEXT, "delta", ScoredMatch(threshold=0.2))
        self.assertEqual(len(results), 1)
        line, segments = results[0]
        self.assertEqual("".join(s.text for s in segments), line.text)
        self.assertEqual(segments[-1], Segment("delta", True))


class TestMakeMatchMode(unittest.TestCase):
    def test_clamping(self):
        self.assertEqual(make_match_mode("distance", -3), DistanceMatch(0))
        self.assertEqual(make_match_mode("distance", 2.0).threshold, 2)
        self.assertEqual(make_match_mode("scored", 1.7).threshold, 1.0)
        self.assertEqual(make_match_mode("scored", -0.2).threshold, 0.0)
        self.assertEqual(make_match_mode("scored").threshold, DEFAULT_SCORE_THRESHOLD)

    def test_exact_options(self):
        mode = make_match_mode("exact", case_sensitive=True, whole_word=True)
        self.assertEqual(mode, ExactMatch(case_sensitive=True, whole_word=True))

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            make_match_mode("regex")


class TestMergeAndSegments(unittest.TestCase):
    def test_merge_touching(self):
        spans = [MatchSpan(2, 5), MatchSpan(5, 8), MatchSpan(10, 12)]
        self.assertEqual(merge_spans(spans), [MatchSpan(2, 8), MatchSpan(10, 12)])

    def test_merge_unsorted_and_contained(self):
        spans = [MatchSpan(10, 12), MatchSpan(1, 4), MatchSpan(3, 6), MatchSpan(2, 3)]
        self.assertEqual(merge_spans(spans), [MatchSpan(1, 6), MatchSpan(10, 12)])

    def test_one_char_gap_kept(self):
        spans = [MatchSpan(0, 2), MatchSpan(3, 5)]
        self.assertEqual(merge_spans(spans), spans)

    def test_merge_idempotent(self):
        sets = [
            [],
            [MatchSpan(0, 1)],
            [MatchSpan(4, 9), MatchSpan(0, 5), MatchSpan(9, 10), MatchSpan(20, 30)],
        ]
        for spans in sets:
            once = merge_spans(spans)
            self.assertEqual(merge_spans(once), once)

    def test_segments(self):
        self.assertEqual(
            build_segments("hello world", [MatchSpan(0, 5)]),
            [Segment("hello", True), Segment(" world", False)],
        )
        self.assertEqual(
            build_segments("hello world", [MatchSpan(6, 11)]),
            [Segment("hello ", False), Segment("world", True)],
        )
        self.assertEqual(build_segments("hello", []), [Segment("hello", False)])

    def test_round_trip(self):
        texts = [
            "",
            "the quick brown fox",
            "Line one\nline TWO\n\nthree, one more",
            "aaaaaaa",
        ]
        queries = ["", "o", "one", "quikc", "aa", "zzz"]
        modes = [ExactMatch(), ExactMatch(True, True), DistanceMatch(1), ScoredMatch()]
        for text in texts:
            for query in queries:
                for mode in modes:
                    segments = highlight(text, query, mode)
                    self.assertEqual("".join(s.text for s in segments), text)


if __name__ == "__main__":
    unittest.main()
