"""Tests for text matching, decoding and request mutation utilities."""

from common.constants import ParamSource
from common.models import HttpRequest, Parameter
from common.utils.http import (
    build_endpoint,
    has_nosniff,
    normalize_content_type,
    passes_content_type_gating,
)
from common.utils.query import mutate_param_value, parse_cookie_header, parse_query_string
from common.utils.text import (
    compute_keyword_counts,
    encode_uri_component,
    encoded_variants,
    find_matches,
    html_decode,
    js_decode,
    random_value,
    safe_decode_twice,
    strict_unquote,
    variants_of,
)


class TestFindMatches:
    """Tests for find_matches."""

    def test_literal_matches_are_non_overlapping(self) -> None:
        """Test literal scanning resumes after each match."""
        assert find_matches("aaaa", "aa") == [(0, 2), (2, 4)]

    def test_empty_inputs(self) -> None:
        """Test empty text or needle never match."""
        assert find_matches("", "x") == []
        assert find_matches("abc", "") == []
        assert find_matches(None, "x") == []

    def test_single_decode_round(self) -> None:
        """Test a percent-encoded value matches its decoded form."""
        assert find_matches("<div>a b</div>", "a%20b") == [(5, 8)]

    def test_double_decode_round(self) -> None:
        """Test a double-encoded value matches after two rounds."""
        assert find_matches("x<y", "%253C") == [(1, 2)]

    def test_malformed_percent_returns_no_match(self) -> None:
        """Test malformed input resolves to no match instead of raising."""
        assert find_matches("abc", "%E0%A4%A") == []
        assert find_matches("abc", "%ZZ%41") == []

    def test_no_decode_without_percent_sequence(self) -> None:
        """Test plain values are not decoded."""
        assert find_matches("hello", "world") == []

    def test_keyword_counts(self) -> None:
        """Test keyword counts follow keyword order."""
        body = '<script>a</script><div>""</div><div>'
        assert compute_keyword_counts(body, ["<script", "<div", '""', "[]"]) == [1, 2, 1, 0]


class TestDecoding:
    """Tests for the decoding helpers."""

    def test_strict_unquote(self) -> None:
        """Test strict decoding refuses dangling percent signs."""
        assert strict_unquote("a%3Cb") == "a<b"
        assert strict_unquote("100%") is None
        assert strict_unquote("%FF") is None

    def test_safe_decode_twice(self) -> None:
        """Test decoding stops at the first malformed round."""
        assert safe_decode_twice("%253C") == "<"
        assert safe_decode_twice("%25") == "%"

    def test_html_decode(self) -> None:
        """Test named and numeric entities."""
        assert html_decode("&lt;a&gt; &quot;&#39;&#x41;") == "<a> \"'A"
        assert html_decode("&unknown;") == "&unknown;"

    def test_js_decode(self) -> None:
        """Test hex, unicode, code point and octal escapes."""
        assert js_decode(r"\x3c>\u{41}\101") == "<>AA"

    def test_variants_of(self) -> None:
        """Test variants are ordered and de-duplicated."""
        variants = variants_of("%26lt%3B")
        assert variants[0] == "%26lt%3B"
        assert variants[1] == "&lt;"
        assert "<" in variants
        assert len(variants) == len(set(variants))

    def test_encoded_variants(self) -> None:
        """Test url, html and unicode escape encodings."""
        variants = encoded_variants('a"<')
        assert variants["url"] == "a%22%3C"
        assert variants["html"] == "a&quot;&lt;"
        assert variants["js_unicode"] == "\\u0061\\u0022\\u003C"

    def test_encode_uri_component(self) -> None:
        """Test unreserved characters are kept."""
        assert encode_uri_component("a b<'(") == "a%20b%3C'("

    def test_random_value(self) -> None:
        """Test random tokens use the lowercase alphanumeric alphabet."""
        token = random_value(12)
        assert len(token) == 12
        assert token.isalnum() and token == token.lower()


class TestQueryUtilities:
    """Tests for query parsing and parameter mutation."""

    def test_parse_query_string_keeps_raw_values(self) -> None:
        """Test values stay encoded while keys are decoded."""
        assert parse_query_string("a%20b=c%20d&&e=") == [("a b", "c%20d"), ("e", "")]

    def test_parse_cookie_header(self) -> None:
        """Test cookie pairs are split and trimmed."""
        assert parse_cookie_header("sid=abc; theme=dark;flag") == [("sid", "abc"), ("theme", "dark")]

    def test_mutate_query_keeps_other_pairs(self) -> None:
        """Test only the target pair is rewritten."""
        request = HttpRequest.from_url("https://example.com/s?x=%41&q=hello&z=1")
        param = Parameter(key="q", value="hello", source=ParamSource.URL)

        assert mutate_param_value(request, param, "probe") is True
        assert request.get_query() == "x=%41&q=probe&z=1"

    def test_mutate_body(self) -> None:
        """Test form bodies are rewritten."""
        request = HttpRequest.from_url("https://example.com/form", method="POST", body="a=1&b=2")
        param = Parameter(key="b", value="2", source=ParamSource.BODY, method="POST")

        assert mutate_param_value(request, param, "x") is True
        assert request.get_body() == "a=1&b=x"

    def test_mutate_cookie(self) -> None:
        """Test cookies are rewritten in the Cookie header."""
        request = HttpRequest.from_url("https://example.com/", headers={"Cookie": "sid=1; lang=en"})
        param = Parameter(key="lang", value="en", source=ParamSource.COOKIE)

        assert mutate_param_value(request, param, "fr") is True
        assert request.get_header("Cookie") == ["sid=1; lang=fr"]

    def test_mutate_missing_param(self) -> None:
        """Test a missing parameter is reported, not added."""
        request = HttpRequest.from_url("https://example.com/?a=1")
        param = Parameter(key="b", value="1", source=ParamSource.URL)

        assert mutate_param_value(request, param, "x") is False
        assert request.get_query() == "a=1"


class TestHttpUtilities:
    """Tests for endpoint naming and content-type gating."""

    def test_build_endpoint(self) -> None:
        """Test endpoint keys include scheme, host and path."""
        assert build_endpoint(True, "example.com", "/a") == "https://example.com/a"
        assert build_endpoint(False, "example.com", "/") == "http://example.com/"

    def test_normalize_content_type(self) -> None:
        """Test parameters are stripped and case folded."""
        assert normalize_content_type(["", "Text/HTML; charset=utf-8"]) == "text/html"
        assert normalize_content_type(None) is None

    def test_has_nosniff(self) -> None:
        """Test nosniff detection across values."""
        assert has_nosniff(["NoSniff"]) is True
        assert has_nosniff(None) is False

    def test_gating(self) -> None:
        """Test sniff-sensitive types pass and others are skipped."""
        assert passes_content_type_gating(["text/html"], None) is True
        assert passes_content_type_gating(["application/json"], ["nosniff"]) is False
        assert passes_content_type_gating(["application/json"], None) is False
        assert passes_content_type_gating(None, None) is True
        assert passes_content_type_gating(None, ["nosniff"]) is False
