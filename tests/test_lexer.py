"""
Tests for the ndb lexer (Layer 1: raw bytes → Pairs).

We need to:
1. Split lines into attribute=value tuples in source order
2. Remove quoting and resolve '' escapes
3. Reject malformed lines with the offset of the first bad byte
4. Record which attributes repeat within a line
"""

import dataclasses

import pytest
from ndb.lexer import tokenize, is_attr_char
from ndb.model import Multiplicity, Pair
from ndb.errors import NdbSyntaxError


def pairs(line: bytes):
    return [(p.attr, p.value) for p in tokenize(line)]


class TestBasicTuples:
    """Unquoted tuples and separators."""

    def test_simple_tuples(self):
        """Should split a line into tuples on whitespace."""
        assert pairs(b"key1=val1 key2=val2 key3=val3") == [
            (b"key1", b"val1"),
            (b"key2", b"val2"),
            (b"key3", b"val3"),
        ]

    def test_extra_whitespace_is_skipped(self):
        """Runs of spaces and tabs between tuples should be skipped."""
        assert pairs(b"  a=1 \t  b=2   ") == [(b"a", b"1"), (b"b", b"2")]

    def test_empty_line(self):
        """Should return no pairs for an empty or blank line."""
        assert tokenize(b"") == []
        assert tokenize(b"   \t ") == []

    def test_dashes_in_attribute(self):
        """Dashes should be allowed in attribute names."""
        assert pairs(b"host-name=p2-jbs537 native-vlan=218") == [
            (b"host-name", b"p2-jbs537"),
            (b"native-vlan", b"218"),
        ]

    def test_unicode_attribute(self):
        """Should accept Unicode letters in attribute names."""
        assert pairs("größe=42 名前=値".encode()) == [
            ("größe".encode(), b"42"),
            ("名前".encode(), "値".encode()),
        ]

    def test_bare_attribute_has_empty_value(self):
        """An attribute without '=' should get an empty value."""
        assert pairs(b"sys user=glenda") == [(b"sys", b""), (b"user", b"glenda")]

    def test_bare_attribute_at_end_of_line(self):
        """Should finish a bare attribute at end of line."""
        assert pairs(b"user=glenda sys") == [(b"user", b"glenda"), (b"sys", b"")]

    def test_empty_value(self):
        """Should give 'attr=' an empty value."""
        assert pairs(b"a= b=2") == [(b"a", b""), (b"b", b"2")]
        assert pairs(b"a=") == [(b"a", b"")]

    def test_punctuation_in_unquoted_value(self):
        """Unquoted values should take any non-space character, '=' included."""
        assert pairs(b"cost=$$ mod=ctrl+alt+shift eq=a=b") == [
            (b"cost", b"$$"),
            (b"mod", b"ctrl+alt+shift"),
            (b"eq", b"a=b"),
        ]

    def test_pairs_are_immutable(self):
        """Pairs should be frozen."""
        p = tokenize(b"a=1")[0]
        assert p == Pair(b"a", b"1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            p.value = b"2"


class TestQuoting:
    """Quoted values and the '' escape."""

    def test_quoted_value_with_spaces(self):
        """Should keep spaces inside a quoted value."""
        assert pairs(b"title='Some value with spaces' width=340 height=200") == [
            (b"title", b"Some value with spaces"),
            (b"width", b"340"),
            (b"height", b"200"),
        ]

    def test_escaped_quote_inside_quotes(self):
        """A doubled quote inside quotes should become one quote."""
        assert pairs(b"title='Dave''s pasta' sq=Davis cost=$$") == [
            (b"title", b"Dave's pasta"),
            (b"sq", b"Davis"),
            (b"cost", b"$$"),
        ]

    def test_spaces_and_quotes(self):
        """Should handle spaces and escaped quotes in the same value."""
        assert pairs(b"s='spaces and '' quotes'") == [(b"s", b"spaces and ' quotes")]

    def test_escape_sequence_documentation(self):
        """Should read the format's own escaping example correctly."""
        assert pairs(b"esc='Use '''' to escape a '''") == [(b"esc", b"Use '' to escape a '")]

    def test_escaped_quote_in_unquoted_value(self):
        """A doubled quote in an unquoted value should become one quote."""
        assert pairs(b"example3=can''t") == [(b"example3", b"can't")]

    def test_leading_escaped_quote_is_not_empty_value(self):
        """Should read ''x as an unquoted value starting with a quote."""
        assert pairs(b"action=''bradley key=jay mod=ctrl+alt+shift") == [
            (b"action", b"'bradley"),
            (b"key", b"jay"),
            (b"mod", b"ctrl+alt+shift"),
        ]

    def test_lone_doubled_quote_is_a_quote(self):
        """'' followed by white space is the value ', never an empty value."""
        assert pairs(b"action=reload key='' mod=ctrl+alt+shift") == [
            (b"action", b"reload"),
            (b"key", b"'"),
            (b"mod", b"ctrl+alt+shift"),
        ]

    def test_lone_doubled_quote_at_end_of_line(self):
        """Should read a lone '' after '=' as a single quote."""
        assert pairs(b"key=''") == [(b"key", b"'")]

    def test_triple_quote_opens_value_with_leading_quote(self):
        """Should open a quoted value whose first character is a quote on '''."""
        assert pairs(b"q=''' a' z=1") == [(b"q", b"' a"), (b"z", b"1")]

    def test_quoted_value_ending_in_escaped_quote(self):
        """Should keep an escaped quote right before the closing quote."""
        assert pairs(b"q='a ''' z=1") == [(b"q", b"a '"), (b"z", b"1")]

    def test_quoted_value_at_end_of_line(self):
        """A closing quote at end of line should finish the tuple."""
        assert pairs(b"a=1 q='x y'") == [(b"a", b"1"), (b"q", b"x y")]

    def test_quoted_value_followed_by_tab(self):
        """A tab should count as the space after a closing quote."""
        assert pairs(b"q='x y'\tz=1") == [(b"q", b"x y"), (b"z", b"1")]


class TestSyntaxErrors:
    """Malformed lines are rejected as a whole."""

    def test_unterminated_quote(self):
        """Should report a quote left open at end of line."""
        with pytest.raises(NdbSyntaxError) as exc:
            tokenize(b"a=1 title='never closed")
        assert exc.value.kind == "unterminated"
        assert exc.value.offset == len(b"a=1 title='never closed")

    def test_unterminated_after_opening_quote(self):
        """Should report a line that ends right after an opening quote."""
        with pytest.raises(NdbSyntaxError) as exc:
            tokenize(b"title='")
        assert exc.value.kind == "unterminated"

    def test_newline_inside_quotes(self):
        """A line terminator inside quotes should be unterminated."""
        with pytest.raises(NdbSyntaxError) as exc:
            tokenize(b"title='two\nlines'")
        assert exc.value.kind == "unterminated"
        assert exc.value.offset == 10

    def test_space_before_equals(self):
        """Whitespace between attribute and '=' should be a bad attribute."""
        with pytest.raises(NdbSyntaxError) as exc:
            tokenize(b"key =value")
        assert exc.value.kind == "bad-attribute"
        assert exc.value.offset == 4

    def test_bad_attribute_character(self):
        """Should report the offset of a bad attribute character."""
        with pytest.raises(NdbSyntaxError) as exc:
            tokenize(b"ok=1 ke;y=v")
        assert exc.value.kind == "bad-attribute"
        assert exc.value.offset == 7

    def test_quote_cannot_start_attribute(self):
        """A quote cannot start an attribute."""
        with pytest.raises(NdbSyntaxError) as exc:
            tokenize(b"'a'=1")
        assert exc.value.kind == "bad-attribute"
        assert exc.value.offset == 0

    def test_missing_space_after_closing_quote(self):
        """Should require whitespace after a closing quote."""
        with pytest.raises(NdbSyntaxError) as exc:
            tokenize(b"a='x y'b=2")
        assert exc.value.kind == "missing-space"
        assert exc.value.offset == 7

    def test_invalid_utf8(self):
        """Should report invalid UTF-8 at the offending byte."""
        with pytest.raises(NdbSyntaxError) as exc:
            tokenize(b"ok=1 v=ab\xffcd")
        assert exc.value.kind == "bad-unicode"
        assert exc.value.offset == 9

    def test_offset_counts_bytes_not_characters(self):
        """Offsets should count bytes, not characters."""
        with pytest.raises(NdbSyntaxError) as exc:
            tokenize("é=ü ;".encode())
        assert exc.value.offset == 6

    def test_error_message_points_into_line(self):
        """The rendered error should quote the line from the offset."""
        with pytest.raises(NdbSyntaxError) as exc:
            tokenize(b"a='x y'b=2 c=3 d=4")
        assert str(exc.value) == "Missing white space between tuples\n\tat `b=2 c=3 d='"
        assert exc.value.data == b"a='x y'b=2 c=3 d=4"

    def test_error_message_keeps_whole_characters(self):
        """The snippet should not cut a multi-byte character."""
        err = NdbSyntaxError("Invalid attribute name", "aé".encode(), 2, "bad-attribute")
        assert err.snippet() == "é".encode()


class TestMultiplicity:
    """Repeated attributes are tracked per line."""

    def test_repeated_attribute(self):
        """Should mark an attribute seen twice as repeated."""
        multi = Multiplicity()
        tokenize(b"user=clive user=david group=dirty-dozen", multi)
        assert multi.is_repeated(b"user")
        assert not multi.is_repeated(b"group")
        assert multi.any_repeated()

    def test_no_repeats(self):
        """Should report no repeats for distinct attributes."""
        multi = Multiplicity()
        tokenize(b"a=1 b=2", multi)
        assert not multi.any_repeated()
        assert multi.seen == {b"a", b"b"}

    def test_names_are_case_sensitive(self):
        """Attribute names differing in case are different attributes."""
        multi = Multiplicity()
        tokenize(b"User=a user=b", multi)
        assert not multi.any_repeated()

    def test_bare_attributes_count(self):
        """Bare attributes should count towards repeats."""
        multi = Multiplicity()
        tokenize(b"sys sys=x", multi)
        assert multi.is_repeated(b"sys")

    def test_order_is_preserved(self):
        """Pairs should come back in source order."""
        assert [p.value for p in tokenize(b"user=clive user=david user=trenton")] == [
            b"clive",
            b"david",
            b"trenton",
        ]


class TestAttributeCharacters:

    @pytest.mark.parametrize("ch", ["a", "Z", "0", "-", "é", "名", "٣"])
    def test_allowed(self, ch):
        """Letters, numbers and '-' should be attribute characters."""
        assert is_attr_char(ch)

    @pytest.mark.parametrize("ch", ["=", "'", " ", "_", ".", ";", "$"])
    def test_rejected(self, ch):
        """Punctuation, quotes and whitespace should not be attribute characters."""
        assert not is_attr_char(ch)
