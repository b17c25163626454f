"""Tests for pgn/movetext.py — strict PGN grammar parser."""

from __future__ import annotations

import pytest

from repertoire_graph.errors import StructuredParseError
from repertoire_graph.pgn.movetext import (
    REQUIRED_TAGS,
    ensure_required_tags,
    parse_game,
    parse_tags,
    tokenize,
)

HEADER = '[Event "Test"]\n[Result "*"]\n\n'


def game(movetext: str):
    return parse_game(HEADER + movetext)


def notations(moves):
    return [m.notation for m in moves]


# ─── Tags ─────────────────────────────────────────────────────────────────────


class TestTags:
    def test_parse_tags(self):
        headers, offset = parse_tags('[White "Carlsen, M."]\n[Black "A \\"B\\" C"]\n1. e4')
        assert headers == {"White": "Carlsen, M.", "Black": 'A "B" C'}
        assert offset == len('[White "Carlsen, M."]\n[Black "A \\"B\\" C"]\n')

    def test_malformed_tag(self):
        with pytest.raises(StructuredParseError, match="malformed tag pair"):
            parse_tags('[Event "unterminated]\n1. e4')

    def test_roster_added_when_missing(self):
        text = ensure_required_tags("1. e4 e5")
        headers, _ = parse_tags(text)
        assert headers == REQUIRED_TAGS
        assert text.endswith("1. e4 e5")

    def test_roster_not_added_when_present(self):
        text = '[Event "Mine"]\n1. e4'
        assert ensure_required_tags(text) == text

    def test_missing_tags_rejected(self):
        with pytest.raises(StructuredParseError, match="missing tag pair"):
            parse_game("1. e4 e5")


# ─── Tokenizer ────────────────────────────────────────────────────────────────


class TestTokenize:
    def test_kinds(self):
        kinds = [t.kind for t in tokenize("1. e4 {c} e5!? $2 (1... c5) ; rest\n1-0")]
        assert kinds == [
            "number", "move", "comment", "move", "nag",
            "open", "number", "move", "close", "line_comment", "result",
        ]

    def test_suffix_glyph_attached(self):
        token = next(t for t in tokenize("1. Nf3!?") if t.kind == "move")
        assert (token.value, token.suffix) == ("Nf3", "!?")

    def test_zero_castling_normalized(self):
        values = [t.value for t in tokenize("0-0 0-0-0") if t.kind == "move"]
        assert values == ["O-O", "O-O-O"]

    def test_positions_include_offset(self):
        token = next(iter(tokenize("e4", offset=10)))
        assert token.position == 10

    def test_unexpected_text(self):
        with pytest.raises(StructuredParseError, match="unexpected text") as info:
            list(tokenize("1. e4 ??? 2. Nf3"))
        assert info.value.position == 6

    def test_unterminated_comment(self):
        with pytest.raises(StructuredParseError, match="unterminated comment"):
            list(tokenize("1. e4 {never closed"))


# ─── Move Tree ────────────────────────────────────────────────────────────────


class TestParseGame:
    def test_mainline(self):
        parsed = game("1. e4 e5 2. Nf3 Nc6 *")
        assert notations(parsed.moves) == ["e4", "e5", "Nf3", "Nc6"]
        assert parsed.headers["Event"] == "Test"

    def test_variation_attached_to_replaced_move(self):
        parsed = game("1. e4 e5 (1... c5 2. Nf3) 2. Nf3")
        e5 = parsed.moves[1]
        assert notations(parsed.moves) == ["e4", "e5", "Nf3"]
        assert [notations(v) for v in e5.variations] == [["c5", "Nf3"]]

    def test_nested_and_sibling_variations(self):
        parsed = game("1. e4 (1. d4 d5 (1... Nf6)) (1. c4) e5")
        e4 = parsed.moves[0]
        assert [notations(v) for v in e4.variations] == [["d4", "d5"], ["c4"]]
        assert notations(e4.variations[0][1].variations[0]) == ["Nf6"]

    def test_comments(self):
        parsed = game("{Start} 1. e4 {Best by test}  {really} e5 (1... c5 {Sicilian})")
        e4, e5 = parsed.moves
        assert e4.comment_before == "Start"
        assert e4.comment == "Best by test really"
        assert e5.variations[0][0].comment == "Sicilian"

    def test_comment_whitespace_collapsed(self):
        parsed = game("1. e4 {  two\n   lines }")
        assert parsed.moves[0].comment == "two lines"

    def test_nags(self):
        parsed = game("1. e4! e5 $6 2. Nf3 !?")
        assert [m.nags for m in parsed.moves] == [[1], [6], [5]]

    def test_result_token(self):
        assert game("1. e4 1-0").result == "1-0"

    def test_result_from_header(self):
        parsed = parse_game('[Result "0-1"]\n1. f3 e5 2. g4 Qh4#')
        assert parsed.result == "0-1"
        assert notations(parsed.moves)[-1] == "Qh4#"

    def test_empty_movetext(self):
        assert game("").moves == []

    def test_deep_nesting(self):
        """Variation depth is not bounded by the interpreter recursion limit."""
        parsed = game("1. e4 " + "(1. d4 " * 5000 + ")" * 5000)
        depth, line = 0, parsed.moves
        while line[0].variations:
            line = line[0].variations[0]
            depth += 1
        assert depth == 5000
        assert line[0].notation == "d4"


class TestParseErrors:
    def test_unbalanced_close(self):
        with pytest.raises(StructuredParseError, match="unbalanced"):
            game("1. e4 ) e5")

    def test_unclosed_variation(self):
        with pytest.raises(StructuredParseError, match="unclosed variation"):
            game("1. e4 e5 (1... c5 2. Nf3")

    def test_unclosed_variation_points_at_innermost_open(self):
        text = HEADER + "1. e4 " + "(1. d4 " * 3000
        with pytest.raises(StructuredParseError, match="unclosed variation") as info:
            parse_game(text)
        assert info.value.position == text.rindex("(")

    def test_variation_without_move(self):
        with pytest.raises(StructuredParseError, match="without a preceding move"):
            game("(1. d4) 1. e4")

    def test_result_inside_variation(self):
        with pytest.raises(StructuredParseError, match="inside a variation"):
            game("1. e4 (1. d4 1-0) e5")

    def test_moves_after_result(self):
        with pytest.raises(StructuredParseError, match="after the game result"):
            game("1. e4 1-0 e5")

    def test_glyph_without_move(self):
        with pytest.raises(StructuredParseError, match="without a move"):
            game("$1 1. e4")

    def test_error_position_points_into_full_text(self):
        text = HEADER + "1. e4 )"
        with pytest.raises(StructuredParseError) as info:
            parse_game(text)
        assert info.value.position == text.index(")")
