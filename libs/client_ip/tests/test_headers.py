"""Tests for header lookup, occurrence selection and the ASCII guard."""

import pytest
from starlette.datastructures import Headers, MutableHeaders

from libs.client_ip.errors import (
    AbsentHeaderError,
    NonAsciiHeaderValueError,
    SingleHeaderRequiredError,
)
from libs.client_ip.headers import (
    AsciiHeaderValue,
    ClientIpHeader,
    SelectionPolicy,
    header_values,
    normalize_header_name,
    select_header_value,
)

HEADER = "my-header"


class TestHeaderValues:
    """Tests for reading raw values out of different header containers."""

    def test_starlette_headers_keep_every_occurrence(self):
        """Test that repeated headers are returned in insertion order."""
        headers = Headers(
            raw=[
                (b"my-header", b"foo"),
                (b"other", b"x"),
                (b"my-header", b"bar"),
            ]
        )

        assert header_values(headers, HEADER) == [b"foo", b"bar"]

    def test_mutable_headers(self):
        """Test that MutableHeaders are read through their raw list."""
        headers = MutableHeaders()
        headers.append("My-Header", "foo")
        headers.append("my-header", "bar")

        assert header_values(headers, HEADER) == [b"foo", b"bar"]

    def test_asgi_header_list(self):
        """Test that a raw ASGI header list is accepted."""
        raw = [(b"x-real-ip", b"1.2.3.4")]

        assert header_values(raw, ClientIpHeader.X_REAL_IP) == [b"1.2.3.4"]

    def test_str_pairs_are_encoded(self):
        """Test that str names and values are encoded to bytes."""
        pairs = [("My-Header", "foo"), ("MY-HEADER", "ы")]

        assert header_values(pairs, HEADER) == [b"foo", "ы".encode("utf-8")]

    def test_mapping(self):
        """Test that a plain dict provides one occurrence per key."""
        assert header_values({"My-Header": "foo"}, HEADER) == [b"foo"]

    def test_lookup_is_case_insensitive(self):
        """Test that the looked-up name is matched case-insensitively."""
        assert header_values([(b"my-header", b"foo")], "MY-Header") == [b"foo"]

    def test_absent_header(self):
        """Test that an absent header yields an empty list."""
        assert header_values([], HEADER) == []

    def test_unsupported_container(self):
        """Test that an unsupported container raises TypeError."""
        with pytest.raises(TypeError, match="Unsupported header container"):
            header_values(42, HEADER)

    def test_unsupported_value_type(self):
        """Test that non str/bytes entries raise TypeError."""
        with pytest.raises(TypeError, match="must be str or bytes"):
            header_values([(HEADER, 1234)], HEADER)


class TestNormalizeHeaderName:
    """Tests for normalize_header_name."""

    def test_enum_member(self):
        assert normalize_header_name(ClientIpHeader.CF_CONNECTING_IP) == "cf-connecting-ip"

    def test_string_is_lowercased(self):
        assert normalize_header_name("X-Forwarded-For") == "x-forwarded-for"


class TestAsciiGuard:
    """Tests for AsciiHeaderValue.validate."""

    def test_visible_ascii_and_spaces(self):
        """Test that printable ASCII including spaces passes."""
        value = AsciiHeaderValue.validate(b" for=1.2.3.4; proto=http ", HEADER)

        assert value.text == " for=1.2.3.4; proto=http "
        assert value.header_name == HEADER

    def test_empty_value(self):
        """Test that an empty value is valid ASCII."""
        assert AsciiHeaderValue.validate(b"", HEADER).text == ""

    @pytest.mark.parametrize(
        "raw",
        [
            "ы".encode("utf-8"),
            b"1.2.3.4\xff",
            b"1.2.3.4\t",
            b"1.2.3.4\x00",
            b"1.2.3.4\x7f",
            b"\r\n1.2.3.4",
        ],
    )
    def test_rejects_non_printable_bytes(self, raw):
        """Test that non-ASCII bytes and control characters are rejected."""
        with pytest.raises(NonAsciiHeaderValueError) as exc_info:
            AsciiHeaderValue.validate(raw, HEADER)

        assert exc_info.value == NonAsciiHeaderValueError(HEADER)

    def test_header_name_is_normalized(self):
        """Test that the stored header name is lower-case."""
        assert AsciiHeaderValue.validate(b"foo", "My-Header").header_name == HEADER


class TestOfLastHeader:
    """Tests for AsciiHeaderValue.of_last_header."""

    def test_absent(self):
        with pytest.raises(AbsentHeaderError) as exc_info:
            AsciiHeaderValue.of_last_header([], HEADER)

        assert exc_info.value == AbsentHeaderError(HEADER)

    def test_non_ascii(self):
        with pytest.raises(NonAsciiHeaderValueError):
            AsciiHeaderValue.of_last_header([(HEADER, "ы")], HEADER)

    def test_single_valid_header(self):
        assert AsciiHeaderValue.of_last_header([(HEADER, "foo")], HEADER).text == "foo"

    def test_multiple_valid_headers(self):
        """Test that the last occurrence wins."""
        headers = [(HEADER, "foo"), (HEADER, "bar")]

        assert AsciiHeaderValue.of_last_header(headers, HEADER).text == "bar"

    def test_earlier_non_ascii_occurrence_ignored(self):
        """Test that earlier occurrences are not validated."""
        headers = [(HEADER, "ы"), (HEADER, "bar")]

        assert AsciiHeaderValue.of_last_header(headers, HEADER).text == "bar"


class TestOfSingleHeader:
    """Tests for AsciiHeaderValue.of_single_header."""

    def test_absent(self):
        with pytest.raises(AbsentHeaderError):
            AsciiHeaderValue.of_single_header([], HEADER)

    def test_non_ascii(self):
        with pytest.raises(NonAsciiHeaderValueError):
            AsciiHeaderValue.of_single_header([(HEADER, "ы")], HEADER)

    def test_multiple_headers(self):
        """Test that repeated headers fail even when each value is valid."""
        headers = [(HEADER, "foo"), (HEADER, "bar")]

        with pytest.raises(SingleHeaderRequiredError) as exc_info:
            AsciiHeaderValue.of_single_header(headers, HEADER)

        assert exc_info.value == SingleHeaderRequiredError(HEADER)

    def test_multiple_headers_checked_before_ascii(self):
        """Test that repetition is reported even if a value is non-ASCII."""
        headers = [(HEADER, "ы"), (HEADER, "bar")]

        with pytest.raises(SingleHeaderRequiredError):
            AsciiHeaderValue.of_single_header(headers, HEADER)

    def test_single_header(self):
        assert AsciiHeaderValue.of_single_header([(HEADER, "foo")], HEADER).text == "foo"


class TestSelectHeaderValue:
    """Tests for select_header_value dispatching on SelectionPolicy."""

    def test_require_single(self):
        headers = [(HEADER, "foo"), (HEADER, "bar")]

        with pytest.raises(SingleHeaderRequiredError):
            select_header_value(headers, HEADER, SelectionPolicy.REQUIRE_SINGLE)

    def test_take_last(self):
        headers = [(HEADER, "foo"), (HEADER, "bar")]

        value = select_header_value(headers, HEADER, SelectionPolicy.TAKE_LAST)

        assert value == AsciiHeaderValue(header_name=HEADER, text="bar")

    @pytest.mark.parametrize("policy", list(SelectionPolicy))
    def test_absent_regardless_of_policy(self, policy):
        with pytest.raises(AbsentHeaderError):
            select_header_value([], HEADER, policy)
