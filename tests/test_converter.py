"""
Tests for the plain-text to Notion block converter.
"""

import unittest

from backlog_notion_sync.converters import (
    classify_line,
    markdown_to_blocks,
    rich_text,
)
from backlog_notion_sync.converters.blocks import MAX_TEXT_LENGTH


def _text(block):
    return "".join(
        seg["text"]["content"] for seg in block[block["type"]]["rich_text"]
    )


class TestClassifyLine(unittest.TestCase):
    """Test single-line classification."""

    def test_headings(self):
        self.assertEqual(classify_line("# Title"), ("heading_1", "Title"))
        self.assertEqual(classify_line("## Sub"), ("heading_2", "Sub"))
        self.assertEqual(classify_line("### Minor"), ("heading_3", "Minor"))

    def test_deeper_heading_is_paragraph(self):
        """Notion has three heading levels; #### stays literal."""
        self.assertEqual(
            classify_line("#### Deep"), ("paragraph", "#### Deep")
        )

    def test_hash_without_space_is_paragraph(self):
        self.assertEqual(classify_line("#tag"), ("paragraph", "#tag"))

    def test_bullets(self):
        self.assertEqual(
            classify_line("- item"), ("bulleted_list_item", "item")
        )
        self.assertEqual(
            classify_line("* item"), ("bulleted_list_item", "item")
        )

    def test_indented_bullet(self):
        self.assertEqual(
            classify_line("   - nested"), ("bulleted_list_item", "nested")
        )

    def test_blank_line(self):
        self.assertEqual(classify_line(""), ("paragraph", ""))
        self.assertEqual(classify_line("   "), ("paragraph", ""))

    def test_plain_text_is_trimmed(self):
        self.assertEqual(
            classify_line("  hello world  "), ("paragraph", "hello world")
        )


class TestMarkdownToBlocks(unittest.TestCase):
    """Test whole-document conversion."""

    def test_empty_input(self):
        self.assertEqual(markdown_to_blocks(""), [])

    def test_one_block_per_line(self):
        blocks = markdown_to_blocks("# 概要\n\n- 項目\n本文")

        self.assertEqual(
            [b["type"] for b in blocks],
            ["heading_1", "paragraph", "bulleted_list_item", "paragraph"],
        )
        self.assertEqual([_text(b) for b in blocks], ["概要", "", "項目", "本文"])

    def test_block_shape(self):
        (block,) = markdown_to_blocks("## API")

        self.assertEqual(block["object"], "block")
        self.assertEqual(block["type"], "heading_2")
        self.assertEqual(
            block["heading_2"]["rich_text"],
            [{"type": "text", "text": {"content": "API"}}],
        )

    def test_crlf_line_endings(self):
        blocks = markdown_to_blocks("a\r\nb")
        self.assertEqual([_text(b) for b in blocks], ["a", "b"])

    def test_inline_formatting_kept_literal(self):
        (block,) = markdown_to_blocks("see **this** and [docs](https://x.y)")
        self.assertEqual(_text(block), "see **this** and [docs](https://x.y)")


class TestRichText(unittest.TestCase):
    """Test rich_text segmenting."""

    def test_empty(self):
        self.assertEqual(rich_text(""), [])

    def test_long_text_is_split(self):
        text = "x" * (MAX_TEXT_LENGTH * 2 + 1)

        segments = rich_text(text)

        self.assertEqual(
            [len(s["text"]["content"]) for s in segments],
            [MAX_TEXT_LENGTH, MAX_TEXT_LENGTH, 1],
        )
        self.assertEqual(
            "".join(s["text"]["content"] for s in segments), text
        )


if __name__ == "__main__":
    unittest.main()
