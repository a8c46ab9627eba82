"""Tests for Markdown and plain-text line formatting."""

from __future__ import annotations

import unittest

from llm_tui.formatting import MIN_WIDTH, format_markdown, wrap_plain


class FormatMarkdownTests(unittest.TestCase):
    def test_empty_text_renders_no_lines(self) -> None:
        self.assertEqual(format_markdown("", 40), [])
        self.assertEqual(format_markdown("   \n", 40), [])

    def test_inline_markup_is_consumed(self) -> None:
        lines = format_markdown("**bold** and `code`", 40)
        self.assertEqual(lines[0].plain, "bold and code")

    def test_lines_fit_requested_width(self) -> None:
        text = "A fairly long paragraph " * 10 + "\n\n- first item\n- second item"
        lines = format_markdown(text, 30)
        self.assertGreater(len(lines), 5)
        for line in lines:
            self.assertLessEqual(line.cell_len, 30)
        self.assertTrue(lines[-1].plain)

    def test_list_items_are_rendered(self) -> None:
        plain = [line.plain for line in format_markdown("- alpha\n- beta", 40)]
        self.assertTrue(any("alpha" in line for line in plain))
        self.assertTrue(any("beta" in line for line in plain))

    def test_width_has_a_floor(self) -> None:
        for line in format_markdown("some words here", 1):
            self.assertLessEqual(line.cell_len, MIN_WIDTH)


class WrapPlainTests(unittest.TestCase):
    def test_long_words_are_folded(self) -> None:
        lines = wrap_plain("a" * 20, 8)
        self.assertEqual([line.plain for line in lines], ["a" * 8, "a" * 8, "a" * 4])

    def test_blank_lines_inside_text_are_kept(self) -> None:
        lines = wrap_plain("one\n\ntwo", 20)
        self.assertEqual([line.plain for line in lines], ["one", "", "two"])

    def test_style_is_applied(self) -> None:
        lines = wrap_plain("oops", 20, style="red")
        self.assertEqual(str(lines[0].style), "red")


if __name__ == "__main__":
    unittest.main()
