"""Errors raised while extracting a client IP from proxy headers.

Every extractor either returns an address or raises exactly one of the
exceptions below. Nothing here is logged or retried: the caller decides
whether a failure means "reject the request" or "try another source".

Errors compare equal when their type and payload match, which keeps
assertions in tests and callers structural rather than string-based.
"""

from typing import Any


class ClientIpError(Exception):
    """Base class for all client IP extraction failures.

    Subclasses list their payload attributes in `_fields`; equality, hashing,
    pickling and repr are built from those and nothing else.
    """

    _fields: tuple[str, ...] = ()

    def _payload(self) -> tuple[Any, ...]:
        return tuple(getattr(self, name) for name in self._fields)

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return self._payload() == other._payload()  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self._payload()))

    def __reduce__(self) -> tuple[Any, ...]:
        # Exception pickling replays self.args, which holds the message only
        return (type(self), self._payload())

    def __repr__(self) -> str:
        fields = ", ".join(
            f"{name}={value!r}" for name, value in zip(self._fields, self._payload())
        )
        return f"{type(self).__name__}({fields})"


class AbsentHeaderError(ClientIpError):
    """The IP-related header is missing."""

    _fields = ("header_name",)

    def __init__(self, header_name: str) -> None:
        self.header_name = header_name
        super().__init__(f"Missing required header: {header_name}")


class NonAsciiHeaderValueError(ClientIpError):
    """Header value contains something other than visible ASCII and spaces."""

    _fields = ("header_name",)

    def __init__(self, header_name: str) -> None:
        self.header_name = header_name
        super().__init__(f"Header value contains non-ASCII characters: {header_name}")


class MalformedHeaderValueError(ClientIpError):
    """Header value has an unexpected format for its convention."""

    _fields = ("header_name", "header_value")

    def __init__(self, header_name: str, header_value: str) -> None:
        self.header_name = header_name
        self.header_value = header_value
        super().__init__(f"Malformed header value for `{header_name}`: {header_value}")


class SingleHeaderRequiredError(ClientIpError):
    """A header required to occur only once occurred several times.

    RFC 7230, Section 3.2.2: a sender MUST NOT generate multiple header
    fields with the same field name in a message unless the entire field
    value for that header field is defined as a comma-separated list.
    """

    _fields = ("header_name",)

    def __init__(self, header_name: str) -> None:
        self.header_name = header_name
        super().__init__(
            f"Multiple occurrences of the header aren't allowed: {header_name}"
        )


class ForwardedHeaderError(ClientIpError):
    """Base class for failures specific to the RFC 7239 `Forwarded` header."""

    _fields = ("header_value",)
    message_template = "`Forwarded` header error: {header_value}"

    def __init__(self, header_value: str) -> None:
        self.header_value = header_value
        super().__init__(self.message_template.format(header_value=header_value))


class ForwardedNoForError(ForwardedHeaderError):
    """The rightmost `Forwarded` stanza has no `for` directive."""

    message_template = "`Forwarded` header missing `for` directive: {header_value}"


class ForwardedObfuscatedError(ForwardedHeaderError):
    """The `for` identifier is obfuscated (RFC 7239, Section 6.3)."""

    message_template = "`Forwarded` header contains obfuscated IP: {header_value}"


class ForwardedUnknownError(ForwardedHeaderError):
    """The `for` identifier is the literal `unknown` (RFC 7239, Section 6.2)."""

    message_template = "`Forwarded` header contains unknown identifier: {header_value}"
