"""Tests for content segmentation."""

from mcp_timelog.models import DEFAULT_STYLE, SegmentKind, StyleSpan, TextStyle
from mcp_timelog.segmenter import (
    HIGHLIGHT_BACKGROUND,
    TAG_ACCENT_COLOR,
    decode_rich_format,
    encode_rich_format,
    highlight_matches,
    is_tag_token,
    segment,
    split_tags_and_text,
    strip_tags,
)


def texts(segments):
    return [s.text for s in segments]


class TestPlainSegmentation:
    """Segmentation without rich format."""

    def test_example_sentence(self):
        """Words and separators alternate; only the tag is marked."""
        segments = segment("hello #world foo")

        assert texts(segments) == ["hello", " ", "#world", " ", "foo"]
        assert [s.is_tag for s in segments] == [False, False, True, False, False]

    def test_lone_marker_is_not_tag(self):
        segments = segment("a # b")
        assert not any(s.is_tag for s in segments)
        assert texts(segments) == ["a", " ", "#", " ", "b"]

    def test_double_marker_is_tag(self):
        assert segment("##")[0].is_tag

    def test_empty_string(self):
        assert segment("") == []

    def test_each_whitespace_char_is_own_segment(self):
        segments = segment("a  \n\tb")
        assert texts(segments) == ["a", " ", " ", "\n", "\t", "b"]
        assert [s.kind for s in segments[1:5]] == [SegmentKind.SEPARATOR] * 4

    def test_newlines_split_tags(self):
        segments = segment("#one\n#two")
        assert texts(segments) == ["#one", "\n", "#two"]
        assert segments[0].is_tag and segments[2].is_tag

    def test_tag_gets_accent_color(self):
        tag = segment("#work")[0]
        assert tag.style == TextStyle(color=TAG_ACCENT_COLOR)

    def test_plain_text_default_style(self):
        assert segment("plain")[0].style == DEFAULT_STYLE

    def test_marker_inside_word_is_not_tag(self):
        segments = segment("issue#42")
        assert len(segments) == 1
        assert not segments[0].is_tag

    def test_concatenation_restores_content(self):
        content = "  lead\n\n#tag trailing  \t"
        assert "".join(texts(segment(content))) == content

    def test_deterministic(self):
        content = "same #input twice"
        assert segment(content) == segment(content)

    def test_unicode_content(self):
        segments = segment("今天 #散步 很开心")
        assert texts(segments) == ["今天", " ", "#散步", " ", "很开心"]
        assert segments[2].is_tag

    def test_is_tag_token(self):
        assert is_tag_token("#a")
        assert not is_tag_token("#")
        assert not is_tag_token("a#")


class TestRichFormat:
    """Segmentation with recorded style runs."""

    def test_encode_decode(self):
        spans = [StyleSpan(0, 5, TextStyle(bold=True)), StyleSpan(6, 3, TextStyle(color="#FF0000"))]
        blob = encode_rich_format("hello big world", spans)

        text, decoded = decode_rich_format(blob)
        assert text == "hello big world"
        assert decoded == spans

    def test_recorded_style_applied(self):
        content = "hello world"
        blob = encode_rich_format(content, [StyleSpan(0, 5, TextStyle(bold=True))])

        segments = segment(content, blob)
        assert texts(segments) == ["hello", " ", "world"]
        assert segments[0].style == TextStyle(bold=True)
        assert segments[2].style == DEFAULT_STYLE

    def test_word_split_at_style_boundary(self):
        content = "helloworld"
        blob = encode_rich_format(content, [StyleSpan(0, 5, TextStyle(italic=True))])

        segments = segment(content, blob)
        assert texts(segments) == ["hello", "world"]
        assert segments[0].style.italic
        assert not segments[1].style.italic

    def test_tag_layers_accent_on_recorded_style(self):
        content = "#bold tag"
        blob = encode_rich_format(content, [StyleSpan(0, 5, TextStyle(bold=True, color="#00FF00"))])

        tag = segment(content, blob)[0]
        assert tag.is_tag
        assert tag.style == TextStyle(bold=True, color=TAG_ACCENT_COLOR)

    def test_tag_never_split(self):
        content = "#mixed"
        blob = encode_rich_format(content, [StyleSpan(0, 3, TextStyle(bold=True))])

        segments = segment(content, blob)
        assert texts(segments) == ["#mixed"]
        assert segments[0].style.bold

    def test_later_span_wins_on_overlap(self):
        content = "abc"
        blob = encode_rich_format(content, [
            StyleSpan(0, 3, TextStyle(bold=True)),
            StyleSpan(1, 1, TextStyle(underline=True)),
        ])
        segments = segment(content, blob)
        assert texts(segments) == ["a", "b", "c"]
        assert segments[1].style == TextStyle(underline=True)

    def test_drifted_rich_format_falls_back(self):
        blob = encode_rich_format("old text", [StyleSpan(0, 3, TextStyle(bold=True))])
        segments = segment("new text", blob)
        assert segments == segment("new text")

    def test_malformed_rich_format_falls_back(self):
        for blob in ["not json", "[]", '{"text": 1}', '{"text": "x", "spans": [{"start": -1, "length": 1}]}',
                     '{"text": "x", "spans": [{"start": 0, "length": 1, "attributes": {"bold": "yes"}}]}']:
            assert segment("x", blob) == segment("x")

    def test_span_past_end_is_clipped(self):
        content = "ab"
        blob = encode_rich_format(content, [StyleSpan(1, 10, TextStyle(bold=True))])
        segments = segment(content, blob)
        assert texts(segments) == ["a", "b"]
        assert segments[1].style.bold

    def test_inputs_not_mutated(self):
        content = "keep #me"
        blob = encode_rich_format(content, [StyleSpan(0, 4, TextStyle(bold=True))])
        segment(content, blob)
        assert content == "keep #me"
        assert decode_rich_format(blob)[0] == content


class TestHelpers:
    """Tag row / plain text helpers and search highlighting."""

    def test_split_tags_and_text(self):
        tags, plain = split_tags_and_text("#a first\nsecond #b #a")
        assert tags == ["#a", "#b"]
        assert plain == "first second"

    def test_strip_tags(self):
        assert strip_tags("#trip lunch by the lake #food") == "lunch by the lake"

    def test_highlight_matches_case_insensitive(self):
        segments = highlight_matches(segment("Coffee with #Friends"), "friend")
        tag = segments[-1]
        assert tag.style.background == HIGHLIGHT_BACKGROUND
        assert tag.style.bold
        assert tag.style.color == TAG_ACCENT_COLOR
        assert segments[0].style == DEFAULT_STYLE

    def test_highlight_empty_query_is_noop(self):
        segments = segment("anything here")
        assert highlight_matches(segments, "") == segments
        assert highlight_matches(segments, None) == segments

    def test_highlight_skips_separators(self):
        segments = highlight_matches(segment("a b"), " ")
        assert all(s.style == DEFAULT_STYLE for s in segments)
