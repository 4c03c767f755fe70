"""Tests for body, JSON and header payload generators."""

from unittest.mock import patch

from common.models import Detection
from scanner.payload import BodyPayloadGenerator, Document, JsonPayloadGenerator
from scanner.payload import header_generator
from scanner.payload.body_generator import enclosing_quotes, escaped_candidates
from scanner.payload.document import markup_text_ranges
from scanner.payload.json_generator import is_inside_json_string


class TestDocument:
    """Tests for the flattened markup tree."""

    def test_raw_attribute_quotes(self) -> None:
        """Test the source quoting of attributes is recovered."""
        doc = Document("<div a=\"1\" b='2' c=3></div>")
        div = doc.elements("div")[0]

        assert doc.raw_attribute(div, "a").quote == '"'
        assert doc.raw_attribute(div, "b").quote == "'"
        assert doc.raw_attribute(div, "c").value == "3"
        assert doc.raw_attribute(div, "c").quote == ""
        assert doc.raw_attribute(div, "d") is None

    def test_raw_tag_on_later_line(self) -> None:
        """Test start tags are located on multi-line documents."""
        doc = Document("<html>\n<body>\n  <img alt='x' src=\"y\">\n</body></html>")
        img = doc.elements("img")[0]

        assert img.raw_tag == "<img alt='x' src=\"y\">"

    def test_text_content_and_ancestors(self) -> None:
        """Test text concatenation and ancestor lookup."""
        doc = Document("<template><p>one <b>two</b></p></template>")
        template = doc.elements("template")[0]
        bold_text = [n for n in doc.nodes if n.text == "two"][0]

        assert doc.text_content(template) == "one two"
        assert doc.nearest_ancestor(bold_text, {"template"}) is template

    def test_markup_text_ranges_skip_tags_and_code(self) -> None:
        """Test character data excludes tags, comments and scripts."""
        markup = "a<b>c</b><!-- d --><script>e</script>f"
        texts = [markup[start:end] for start, end in markup_text_ranges(markup)]

        assert texts == ["a", "c", "f"]

    def test_contains_markup_text_ignores_entities(self) -> None:
        """Test entity-encoded markers are not treated as literal."""
        assert Document("<p>abc<def</p>").contains_markup_text("abc<def") is True
        assert Document("<p>abc&lt;def</p>").contains_markup_text("abc<def") is False


class TestBodyGenerate:
    """Tests for BodyPayloadGenerator.generate."""

    def test_html_text(self) -> None:
        """Test a value in body text probes tag opening."""
        info = BodyPayloadGenerator("<html><body><p>Hello REFL</p></body></html>").generate("REFL")

        assert info.context == ["html"]
        assert info.payload == ["<"]

    def test_script_string(self) -> None:
        """Test a value inside a quoted script string."""
        info = BodyPayloadGenerator('<script>var a = "hello";</script>').generate("hello")

        assert info.context == ["jsInQuote"]
        assert info.payload == ['"', "\\"]

    def test_script_bare(self) -> None:
        """Test an unquoted script value probes the bare marker."""
        info = BodyPayloadGenerator("<script>var a = hello;</script>").generate("hello")

        assert info.context == ["js"]
        assert info.payload == [""]

    def test_non_executable_script_is_ignored(self) -> None:
        """Test templates in non-JS script types are treated as text."""
        info = BodyPayloadGenerator('<script type="text/x-template">hello</script>').generate("hello")

        assert "js" not in info.context
        assert "jsInQuote" not in info.context

    def test_style_string(self) -> None:
        """Test a value inside a quoted style string."""
        info = BodyPayloadGenerator("<style>a { font-family: 'REF'; }</style>").generate("REF")

        assert info.context == ["cssInQuote"]
        assert info.payload == ["'", "\\"]

    def test_json_script_string(self) -> None:
        """Test a value inside a JSON script block string."""
        body = '<script type="application/json">{"key":"REF"}</script>'
        info = BodyPayloadGenerator(body).generate("REF")

        assert info.context == ["jsonInQuote"]
        assert info.payload == ['"', "\\"]

    def test_unquoted_attribute_with_entities(self) -> None:
        """Test an unquoted attribute whose raw value carries the value."""
        info = BodyPayloadGenerator("<img data-x=&quot;REF&quot;>").generate("REF")

        assert info.context == ["attribute"]
        assert info.payload == [""]

    def test_entity_encoded_attribute(self) -> None:
        """Test a value only present after entity decoding."""
        info = BodyPayloadGenerator('<img data-x="&#x52;&#x45;&#x46;">').generate("REF")

        assert info.context == ["attributeEscaped"]
        assert info.payload == []

    def test_quoted_attribute(self) -> None:
        """Test a quoted plain attribute."""
        info = BodyPayloadGenerator("<input value='REF'>").generate("REF")

        assert info.context == ["attributeInQuote"]
        assert info.payload == ["'"]

    def test_url_attribute(self) -> None:
        """Test URL-bearing attributes probe scheme characters."""
        info = BodyPayloadGenerator('<a href="/go?u=REF">x</a>').generate("REF")

        assert info.context == ["urlAttrInQuote"]
        assert info.payload == [":", "//", '"']

    def test_event_handler(self) -> None:
        """Test event handler attributes."""
        info = BodyPayloadGenerator("<div onclick=\"go('REF')\">x</div>").generate("REF")

        assert info.context == ["eventHandlerAttrInQuote"]
        assert info.payload == ['"', "\\", ";"]

    def test_html_comment(self) -> None:
        """Test a value inside an HTML comment."""
        info = BodyPayloadGenerator("<div><!-- REF --></div>").generate("REF")

        assert info.context == ["htmlComment"]
        assert info.payload == ["<"]

    def test_percent_encoded_value(self) -> None:
        """Test the value is decoded before searching."""
        info = BodyPayloadGenerator("<div><span><</span></div>").generate("%3C")

        assert "html" in info.context
        assert "<" in info.payload

    def test_multiple_occurrences_are_deduplicated(self) -> None:
        """Test repeated reflections give unique contexts and payloads."""
        body = '<script>a = "REF"; b = "REF";</script>'
        info = BodyPayloadGenerator(body).generate("REF")

        assert info.context == ["jsInQuote"]
        assert info.payload == ['"', "\\"]

    def test_value_not_present(self) -> None:
        """Test absent values produce an empty context info."""
        info = BodyPayloadGenerator("<p>nothing</p>").generate("REF")

        assert info.context == []
        assert info.payload == []


class TestBodyDetect:
    """Tests for BodyPayloadGenerator.detect."""

    def test_tag_open_in_text(self) -> None:
        """Test a literal ``<`` in character data is detected as html."""
        detections = BodyPayloadGenerator("<p>abc<def</p>").detect(["html"], "abc", "<", "def")

        assert detections == [Detection("<", "html")]

    def test_encoded_tag_open_is_not_detected(self) -> None:
        """Test an entity-encoded ``<`` is not a detection."""
        assert BodyPayloadGenerator("<p>abc&lt;def</p>").detect(["html"], "abc", "<", "def") == []

    def test_quote_in_script_string(self) -> None:
        """Test a quote surviving inside a script string."""
        body = '<script>var a = "abc"def";</script>'
        detections = BodyPayloadGenerator(body).detect(["jsInQuote"], "abc", '"', "def")

        assert detections == [Detection('"', "jsInQuote")]

    def test_escaped_quote_in_script_string(self) -> None:
        """Test a backslash-escaped quote still counts in script code."""
        body = '<script>var a = "abc\\"def";</script>'
        detections = BodyPayloadGenerator(body).detect(["jsInQuote"], "abc", '"', "def")

        assert detections == [Detection('"', "jsInQuote")]

    def test_bare_marker_in_script(self) -> None:
        """Test an unquoted script reflection of the bare marker."""
        body = "<script>var a = abcdef;</script>"
        detections = BodyPayloadGenerator(body).detect(["js"], "abc", "", "def")

        assert detections == [Detection("", "js")]

    def test_attribute_quote_breakout(self) -> None:
        """Test a quote closing the attribute early."""
        body = '<input value="abc"def">'
        detections = BodyPayloadGenerator(body).detect(["attributeInQuote"], "abc", '"', "def")

        assert Detection('"', "attributeInQuote") in detections

    def test_entity_encoded_attribute_is_escaped(self) -> None:
        """Test an attribute carrying the marker only after decoding."""
        body = '<input value="abc&quot;def">'
        detections = BodyPayloadGenerator(body).detect(["attributeInQuote"], "abc", '"', "def")

        assert detections == [Detection('"', "attributeEscaped")]

    def test_event_handler_detection(self) -> None:
        """Test event handler attributes are searched when requested."""
        body = "<div onclick=\"go('abc;def')\">x</div>"
        detections = BodyPayloadGenerator(body).detect(
            ["eventHandlerAttrInQuote"], "abc", ";", "def"
        )

        assert detections == [Detection(";", "eventHandler")]

    def test_json_block_detection(self) -> None:
        """Test JSON script blocks distinguish strings from structure."""
        body = '<script type="application/json">{"k":"abc\\def", "n": abc"def}</script>'
        generator = BodyPayloadGenerator(body)

        assert generator.detect(["jsonInQuote"], "abc", "\\", "def") == [
            Detection("\\", "jsonString")
        ]
        assert generator.detect(["json"], "abc", '"', "def") == [Detection('"', "jsonStructure")]


class TestCodeHelpers:
    """Tests for script/style string helpers."""

    def test_enclosing_quotes(self) -> None:
        """Test quotes enclosing each occurrence are collected in order."""
        assert enclosing_quotes("a='X'; b=\"X\"; c=X", "X") == ["'", '"']
        assert enclosing_quotes("a = 'it\\'s X'", "X") == ["'"]

    def test_escaped_candidates(self) -> None:
        """Test escaped forms include backslash-escaped quotes."""
        candidates = escaped_candidates('a"b')
        assert candidates[0] == 'a"b'
        assert 'a\\"b' in candidates
        assert 'a\\\\"b' in candidates

    def test_is_inside_json_string(self) -> None:
        """Test escaped quotes do not close JSON strings."""
        text = '{"a":"x\\"y", "b": z}'
        assert is_inside_json_string(text, text.index("y")) is True
        assert is_inside_json_string(text, text.index("z")) is False


class TestJsonGenerator:
    """Tests for JsonPayloadGenerator."""

    def test_string_context(self) -> None:
        """Test a value inside a JSON string."""
        info = JsonPayloadGenerator('{"key":"REF"}').generate("REF")

        assert info.context == ["jsonString"]
        assert info.payload == ['"', ",", "}", "]", ":", "\\"]

    def test_structure_context(self) -> None:
        """Test a value outside strings."""
        info = JsonPayloadGenerator('{"key": 12345}').generate("12345")

        assert info.context == ["jsonStructure"]
        assert "\\" not in info.payload

    def test_absent_value_defaults_to_structure(self) -> None:
        """Test values that are not found default to structure."""
        info = JsonPayloadGenerator('{"key": 1}').generate("REF")

        assert info.context == ["jsonStructure"]

    def test_percent_encoded_value(self) -> None:
        """Test encoded values are decoded before searching."""
        info = JsonPayloadGenerator('{"k":"a b"}').generate("a%20b")

        assert info.context == ["jsonString"]

    def test_detect_filters_requested(self) -> None:
        """Test detections are limited to requested contexts."""
        generator = JsonPayloadGenerator('{"a":"abc,def", "b": abc,def}')

        assert generator.detect(["jsonString"], "abc", ",", "def") == [Detection(",", "jsonString")]
        assert len(generator.detect([], "abc", ",", "def")) == 2


class TestHeaderGenerator:
    """Tests for the header payload generator."""

    def test_candidate_chars(self) -> None:
        """Test charsets are unioned with CR/LF and extras, de-duplicated."""
        chars = header_generator.candidate_chars(["Set-Cookie", "Content-Disposition"], ["<", ";"])

        assert chars[:6] == [";", ",", "=", " ", '"', "'"]
        assert "*" in chars
        assert "\n" in chars and "\r" in chars
        assert chars.count(";") == 1
        assert chars[-1] == "<"

    def test_unknown_header_probes_crlf_only(self) -> None:
        """Test unknown headers still probe response splitting."""
        assert header_generator.candidate_chars(["X-Foo"]) == ["\n", "\r"]

    def test_build_plan(self) -> None:
        """Test every marker is percent-encoded into the injected value."""
        with patch.object(header_generator, "random_value", side_effect=["pa", "sa", "pb", "sb"]):
            plan = header_generator.build_plan(["X-Foo"])

        assert [m.needle for m in plan.markers] == ["pa%0Asa", "pb%0Dsb"]
        assert plan.injected_value == "pa%0Asapb%0Dsb"

    def test_detect_crlf_injection(self) -> None:
        """Test surviving CR/LF is flagged."""
        markers = [
            header_generator.HeaderMarker("\n", "pa", "sa", "pa%0Asa"),
            header_generator.HeaderMarker(";", "pb", "sb", "pb%3Bsb"),
        ]
        result = header_generator.detect({"location": ["/x?pa\nsapb%3Bsb"]}, markers)

        assert result.allowed_chars == ["\n"]
        assert result.crlf_injection is True

    def test_detect_alphabetic_case_fallback(self) -> None:
        """Test alphabetic characters match case-insensitively."""
        markers = [header_generator.HeaderMarker("t", "pre", "suf", "pretsuf")]
        result = header_generator.detect({"x": "PRETSUF"}, markers)

        assert result.allowed_chars == ["t"]
        assert result.crlf_injection is False
