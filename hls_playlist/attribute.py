"""Quote-aware parser for the NAME=VALUE attribute lists of compound tags."""

import re
from typing import Iterator

from hls_playlist.exceptions import InvalidInputError

# Legal characters of an AttributeName
NAME_PATTERN = re.compile(r"^[A-Z0-9-]+$")


def attribute_pairs(text: str) -> Iterator[tuple[str, str]]:
    """
    Split an attribute list into ``(name, raw_value)`` pairs.

    Values are returned exactly as written, so quoted strings keep their
    quotes. A comma inside a quoted string does not end the value. Duplicate
    names are yielded as they appear; callers keep the last one. Spaces
    around names and values are tolerated and removed.

    Args:
        text: The part of a tag line after the tag prefix

    Yields:
        ``(name, raw_value)`` tuples in document order

    Raises:
        InvalidInputError: If a name has illegal characters, an ``=`` is missing
            or a quoted string is not terminated
    """
    index = 0
    length = len(text)

    while index < length:
        separator = text.find("=", index)
        if separator == -1:
            raise InvalidInputError("Attribute is missing '='", text[index:])

        name = text[index:separator].strip(" ")
        if not NAME_PATTERN.match(name):
            raise InvalidInputError("Invalid attribute name", name)

        index = separator + 1
        inside_quotes = False
        end = length
        for position in range(index, length):
            char = text[position]
            if char == '"':
                inside_quotes = not inside_quotes
            elif char == "," and not inside_quotes:
                end = position
                break

        if inside_quotes:
            raise InvalidInputError(f"Unterminated quoted string in attribute {name}", text[index:])

        yield name, text[index:end].strip(" ")
        index = end + 1


def attribute_dict(text: str) -> dict[str, str]:
    """Collect an attribute list into a dict, the last occurrence of a name wins."""
    return dict(attribute_pairs(text))
