"""Content marshalling between stored bytes and application values.

Stores only ever see bytes. A ``Contents`` object converts between those
bytes and whatever representation the caller works with, so ``save`` and
``retrieve`` stay generic without backends knowing about content types.

Example:
    >>> store.save("notes.txt", author, "first draft", "hello")   # str -> TEXT
    >>> store.retrieve("notes.txt", contents=TEXT)
    'hello'
    >>> store.retrieve("notes.txt")                                 # BYTES by default
    b'hello'
"""

from __future__ import annotations

from typing import Any, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")

ENCODING = "utf-8"


@runtime_checkable
class Contents(Protocol[T]):
    """Converts between raw bytes and values of type ``T``.

    Implementations must satisfy the round-trip law:
    ``from_bytes(to_bytes(x)) == x`` for every representable ``x`` and
    ``to_bytes(from_bytes(b)) == b`` for every well-formed ``b``.
    """

    def from_bytes(self, data: bytes) -> T: ...

    def to_bytes(self, value: T) -> bytes: ...


class BytesContents:
    """Identity marshalling for raw bytes."""

    def from_bytes(self, data: bytes) -> bytes:
        return bytes(data)

    def to_bytes(self, value: bytes | bytearray | memoryview) -> bytes:
        return bytes(value)

    def __repr__(self) -> str:
        return "BytesContents()"


class TextContents:
    """UTF-8 text marshalling.

    Malformed input decodes with U+FFFD replacement characters rather than
    failing; the round-trip law only covers well-formed UTF-8.
    """

    def from_bytes(self, data: bytes) -> str:
        return bytes(data).decode(ENCODING, errors="replace")

    def to_bytes(self, value: str) -> bytes:
        return value.encode(ENCODING)

    def __repr__(self) -> str:
        return "TextContents()"


BYTES: Contents[bytes] = BytesContents()
TEXT: Contents[str] = TextContents()


def resolve_contents(value: Any, contents: Contents[Any] | None = None) -> Contents[Any]:
    """Pick the marshaller for ``value``.

    Args:
        value: The value about to be saved.
        contents: Explicit marshaller; wins when given.

    Returns:
        ``contents`` if given, ``BYTES`` for bytes-like values, ``TEXT`` for str.

    Raises:
        TypeError: If no marshaller applies.
    """
    if contents is not None:
        return contents
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BYTES
    if isinstance(value, str):
        return TEXT
    raise TypeError(
        f"No content marshaller for {type(value).__name__}; pass contents= explicitly"
    )
