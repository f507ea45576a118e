"""Tests for the polygon header codec."""

import io

import pytest

from sceneloader.exceptions import (
    DuplicateNameError,
    InvalidAsciiError,
    InvalidCountError,
    InvalidFormatVariantError,
    InvalidPropertyKindError,
    MissingTokenError,
    UnexpectedEofError,
)
from sceneloader.polygon import (
    Element,
    Format,
    Header,
    ListPropertyKind,
    ScalarPropertyKind,
)

FLOAT = ScalarPropertyKind("float", 4)
UCHAR = ScalarPropertyKind("uchar", 1)
INT = ScalarPropertyKind("int", 4)


def decode(text: bytes, kinds=None) -> Header:
    return Header.decode(io.BytesIO(text), kinds)


class TestHeaderDecode:
    """Test header decoding."""

    def test_scenario_a(self, scenario_a_header):
        """Test an ASCII header with one vertex element of three floats."""
        header = decode(scenario_a_header)

        assert header.format is Format.ASCII
        assert header.version == "1.0"
        assert header.elements.names() == ["vertex"]
        vertex = header.elements["vertex"]
        assert vertex.count == 1
        assert [(p.name, p.kind) for p in vertex.properties] == [("x", FLOAT), ("y", FLOAT), ("z", FLOAT)]

    def test_scenario_b(self):
        """Test a list property declaration."""
        header = decode(
            b"ply\nformat binary_little_endian 1.0\n"
            b"element face 0\n"
            b"property list uchar int vertex_indices\n"
            b"end_header\n"
        )
        prop = header.elements["face"].properties["vertex_indices"]
        assert prop.kind == ListPropertyKind(UCHAR, INT)
        assert prop.kind.count.size == 1
        assert prop.kind.value.size == 4
        assert prop.is_list

    def test_stream_left_at_payload(self):
        """Test that decoding stops right after end_header."""
        reader = io.BytesIO(b"ply\nformat binary_big_endian 1.0\nend_header\n\x01\x02")
        header = Header.decode(reader)
        assert header.format is Format.BINARY_BIG_ENDIAN
        assert reader.read() == b"\x01\x02"

    def test_crlf(self):
        """Test that CR LF newlines are accepted."""
        header = decode(
            b"ply\r\nformat ascii 1.0\r\nelement vertex 2\r\nproperty float x\r\nend_header\r\n"
        )
        assert header.elements["vertex"].count == 2
        assert header.elements["vertex"].properties.names() == ["x"]

    def test_comments_keep_position(self):
        """Test that comment and obj_info lines keep their keyword and position."""
        header = decode(
            b"ply\nformat ascii 1.0\n"
            b"comment first\n"
            b"element vertex 1\n"
            b"obj_info  two spaces\n"
            b"property float x\n"
            b"comment  last\n"
            b"end_header\n"
        )
        assert [(c.keyword, c.text, c.position) for c in header.comments] == [
            ("comment", "first", 0),
            ("obj_info", " two spaces", 1),
            ("comment", " last", 2),
        ]

    def test_large_count(self):
        header = decode(b"ply\nformat ascii 1.0\nelement vertex 18446744073709551615\nend_header\n")
        assert header.elements["vertex"].count == 2 ** 64 - 1

    def test_custom_kind(self, kinds):
        """Test that a registry passed in resolves custom kinds."""
        kinds.register("vec3f", 12)
        header = decode(b"ply\nformat ascii 1.0\nelement vertex 1\nproperty vec3f p\nend_header\n", kinds)
        assert header.elements["vertex"].properties["p"].kind == ScalarPropertyKind("vec3f", 12)


class TestHeaderDecodeErrors:
    """Test malformed headers."""

    def test_bad_signature(self):
        with pytest.raises(MissingTokenError) as info:
            decode(b"plx\nformat ascii 1.0\nend_header\n")
        assert info.value.token == "ply"

    def test_signature_without_newline(self):
        with pytest.raises(MissingTokenError):
            decode(b"ply format ascii 1.0\nend_header\n")

    def test_bad_format_keyword(self):
        with pytest.raises(MissingTokenError):
            decode(b"ply\nform\xc3\xa4t ascii 1.0\nend_header\n")

    def test_bad_format_variant(self):
        with pytest.raises(InvalidFormatVariantError) as info:
            decode(b"ply\nformat binary_middle_endian 1.0\nend_header\n")
        assert info.value.variant == "binary_middle_endian"

    def test_missing_version(self):
        with pytest.raises(MissingTokenError):
            decode(b"ply\nformat ascii \nend_header\n")

    def test_property_before_element(self):
        """Test that a property needs a preceding element."""
        with pytest.raises(MissingTokenError) as info:
            decode(b"ply\nformat ascii 1.0\nproperty float x\nend_header\n")
        assert info.value.token == "element"

    @pytest.mark.parametrize("count", [b"-1", b"abc", b"1.5", b"", b"18446744073709551616"])
    def test_bad_count(self, count):
        with pytest.raises(InvalidCountError):
            decode(b"ply\nformat ascii 1.0\nelement vertex " + count + b"\nend_header\n")

    def test_unknown_kind(self):
        with pytest.raises(InvalidPropertyKindError) as info:
            decode(b"ply\nformat ascii 1.0\nelement vertex 1\nproperty float128 x\nend_header\n")
        assert info.value.kind == "float128"

    def test_list_as_value_kind(self):
        with pytest.raises(InvalidPropertyKindError):
            decode(b"ply\nformat ascii 1.0\nelement face 1\nproperty list uchar list x\nend_header\n")

    def test_unknown_keyword(self):
        with pytest.raises(MissingTokenError):
            decode(b"ply\nformat ascii 1.0\nelemental vertex 1\nend_header\n")

    def test_end_header_trailing_text(self):
        """Test that end_header must be followed by a newline only."""
        with pytest.raises(MissingTokenError):
            decode(b"ply\nformat ascii 1.0\nend_header x\n")

    def test_end_headex(self):
        with pytest.raises(MissingTokenError):
            decode(b"ply\nformat ascii 1.0\nend_headex\n")

    def test_truncated(self):
        with pytest.raises(UnexpectedEofError):
            decode(b"ply\nformat ascii 1.0\nelement vertex 1\n")

    def test_duplicate_element(self):
        with pytest.raises(DuplicateNameError) as info:
            decode(b"ply\nformat ascii 1.0\nelement vertex 1\nelement vertex 2\nend_header\n")
        assert info.value.name == "vertex"

    def test_duplicate_property(self):
        with pytest.raises(DuplicateNameError) as info:
            decode(b"ply\nformat ascii 1.0\nelement vertex 1\nproperty float x\nproperty int x\nend_header\n")
        assert info.value.scope == "vertex"

    def test_non_ascii_comment(self):
        with pytest.raises(InvalidAsciiError):
            decode("ply\nformat ascii 1.0\ncomment café\nend_header\n".encode("utf-8"))


class TestHeaderEncode:
    """Test header encoding and round trips."""

    @pytest.mark.parametrize("text", [
        b"ply\nformat ascii 1.0\nelement vertex 1\nproperty float x\nproperty float y\nproperty float z\nend_header\n",
        b"ply\nformat binary_little_endian 1.0\nend_header\n",
        b"ply\nformat binary_big_endian 1.0\n"
        b"comment a\ncomment b\n"
        b"element vertex 0\n"
        b"element face 7\nobj_info  info\nproperty list uchar int vertex_indices\n"
        b"comment tail\n"
        b"end_header\n",
    ])
    def test_roundtrip(self, text):
        """Test that encode reproduces the decoded text byte for byte."""
        assert decode(text).to_bytes() == text

    def test_roundtrip_fixture(self, triangle_le):
        text = triangle_le[:triangle_le.index(b"end_header\n") + len(b"end_header\n")]
        assert decode(triangle_le).to_bytes() == text

    def test_default_header(self):
        assert Header().to_bytes() == b"ply\nformat binary_little_endian 1.0\nend_header\n"

    def test_build(self):
        """Test building a header programmatically."""
        header = Header(format=Format.ASCII)
        header.add_comment("built")
        vertex = header.add_element("vertex", 2)
        vertex.add_property("x", "float")
        header.add_obj_info("between")
        face = header.add_element("face", 1)
        face.add_property("vertex_indices", "list uchar int")
        assert str(header) == (
            "ply\nformat ascii 1.0\n"
            "comment built\n"
            "element vertex 2\nproperty float x\n"
            "obj_info between\n"
            "element face 1\nproperty list uchar int vertex_indices\n"
            "end_header\n"
        )
        assert Header.from_string(str(header)) == header

    def test_non_ascii_name(self):
        header = Header()
        header.add_element("vértex", 0)
        with pytest.raises(InvalidAsciiError):
            header.to_bytes()

    def test_duplicate_add(self):
        header = Header()
        header.add_element("vertex")
        with pytest.raises(DuplicateNameError):
            header.add_element("vertex")

    @pytest.mark.parametrize("text", ["first\nelement vertex 9", "first\rsecond"])
    def test_comment_line_break(self, text):
        """Test that a comment cannot inject header lines."""
        header = Header()
        header.add_comment(text)
        writer = io.BytesIO()
        with pytest.raises(ValueError):
            header.encode(writer)
        assert writer.getvalue() == b""

    def test_obj_info_line_break(self):
        header = Header()
        header.add_obj_info("a\nb")
        with pytest.raises(ValueError):
            header.to_bytes()

    @pytest.mark.parametrize("name", ["my vertex", "", "vertex\n"])
    def test_bad_element_name(self, name):
        header = Header()
        header.add_element(name, 1)
        with pytest.raises(ValueError):
            header.to_bytes()

    @pytest.mark.parametrize("name", ["", "x\ny", "x\r"])
    def test_bad_property_name(self, name):
        header = Header()
        header.add_element("vertex", 1).add_property(name, FLOAT)
        with pytest.raises(ValueError):
            header.to_bytes()

    def test_property_name_with_space(self):
        """Test that a property name runs to the end of its line."""
        header = Header()
        header.add_element("vertex", 1).add_property("my x", FLOAT)
        assert Header.from_string(header.to_bytes()) == header

    @pytest.mark.parametrize("kind", [
        ScalarPropertyKind("vec 3f", 12),
        ListPropertyKind(ScalarPropertyKind("u char", 1), INT),
        ListPropertyKind(UCHAR, ScalarPropertyKind("", 4)),
    ])
    def test_bad_kind_name(self, kind):
        header = Header()
        header.add_element("vertex", 1).add_property("x", kind)
        with pytest.raises(ValueError):
            header.to_bytes()

    def test_version_line_break(self):
        header = Header(version="1.0\nelement vertex 1")
        with pytest.raises(ValueError):
            header.to_bytes()


class TestElements:
    """Test element helpers."""

    def test_record_size(self):
        element = Element("vertex", 3)
        element.add_property("x", "float")
        element.add_property("red", "uchar")
        assert element.record_size() == 5
        element.add_property("idx", "list uchar int")
        assert element.record_size() is None

    def test_is_same_order_ignores_count(self):
        a = Header.from_string("ply\nformat ascii 1.0\nelement vertex 1\nproperty float x\nend_header\n")
        b = Header.from_string("ply\nformat ascii 1.0\nelement vertex 9\nproperty float x\nend_header\n")
        c = Header.from_string("ply\nformat ascii 1.0\nelement vertex 1\nproperty double x\nend_header\n")
        assert a.elements.is_same_order(b.elements)
        assert a.elements != b.elements
        assert not a.elements.is_same_order(c.elements)

    def test_lookup(self, triangle_le):
        header = decode(triangle_le)
        assert header.elements.index("face") == 1
        assert header.elements[1].name == "face"
        assert header.get_element("nope") is None
        assert "edge" in header.elements
        assert header.meta_line_count == (1 + 4) + (1 + 2) + (1 + 1)

    def test_format_helpers(self):
        assert Format.binary_native_endian().is_binary_native_endian()
        assert Format.BINARY_BIG_ENDIAN.byteorder == "big"
        assert Format.BINARY_LITTLE_ENDIAN.byteorder == "little"
        with pytest.raises(NotImplementedError):
            Format.ASCII.byteorder
