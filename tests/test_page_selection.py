from __future__ import annotations

import unittest

from pdf_tools.contracts import PageSelectionError
from pdf_tools.page_selection import (
    canonical_page_selection,
    parse_insert_positions,
    parse_page_selection,
)


class TestParsePageSelection(unittest.TestCase):
    def test_singles_and_ranges_are_sorted_and_unique(self) -> None:
        self.assertEqual(parse_page_selection("5, 1,3-4,3", page_count=10), [1, 3, 4, 5])

    def test_lenient_mode_drops_what_it_cannot_use(self) -> None:
        self.assertEqual(parse_page_selection("0,2,x,4-2,9-12", page_count=10), [2, 9, 10])

    def test_empty_selection_is_no_pages(self) -> None:
        self.assertEqual(parse_page_selection("", page_count=3), [])
        self.assertEqual(parse_page_selection("  ", page_count=3), [])
        self.assertEqual(parse_page_selection(None, page_count=3), [])
        self.assertEqual(parse_page_selection(",,", page_count=3), [])

    def test_strict_mode_raises(self) -> None:
        for selection in ("1,x", "3-1", "4", "0"):
            with self.subTest(selection=selection):
                with self.assertRaises(PageSelectionError):
                    parse_page_selection(selection, page_count=3, strict=True)
        self.assertEqual(parse_page_selection("1-3", page_count=3, strict=True), [1, 2, 3])

    def test_page_selection_error_is_a_value_error(self) -> None:
        self.assertTrue(issubclass(PageSelectionError, ValueError))


class TestInsertPositions(unittest.TestCase):
    def test_positions_within_zero_and_page_count(self) -> None:
        self.assertEqual(parse_insert_positions("3,0,2,2,7,-1,x", page_count=3), [0, 2, 3])
        self.assertEqual(parse_insert_positions(None, page_count=3), [])


class TestCanonicalSelection(unittest.TestCase):
    def test_whitespace_is_removed(self) -> None:
        self.assertEqual(canonical_page_selection(" 1, 3 - 5 "), "1,3-5")
        self.assertEqual(canonical_page_selection(None), "all")
        self.assertEqual(canonical_page_selection(""), "all")


if __name__ == "__main__":
    unittest.main()
