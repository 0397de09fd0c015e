"""
BookFS - Filename Sanitizer

Maps book titles to directory names that are safe on every common
filesystem, and back. Unsafe characters become ``~<hex codepoint>~``;
``~`` itself is always escaped, which keeps the mapping lossless.
"""
import re

ESCAPE_CHAR = "~"

# NAME_MAX on common filesystems
MAX_NAME_BYTES = 255

_UNSAFE_CHARS = set('/\\:*?"<>|' + ESCAPE_CHAR)
_ESCAPE_PATTERN = re.compile(r"~([0-9a-f]+)~")


def _escape(char: str) -> str:
    return f"{ESCAPE_CHAR}{ord(char):x}{ESCAPE_CHAR}"


def _needs_escape(char: str, index: int, last: int) -> bool:
    if char in _UNSAFE_CHARS or ord(char) < 32 or ord(char) == 127:
        return True
    # hidden files and "." / ".." on POSIX
    if index == 0 and char == ".":
        return True
    # Windows strips trailing dots and spaces
    return index == last and char in ". "


def sanitize(title: str) -> str:
    """
    Convert a book title into a filesystem-safe name.

    Args:
        title: Display title (must not be empty)

    Returns:
        Name usable as a single path component

    Raises:
        ValueError: empty title, or an escaped name longer than
            MAX_NAME_BYTES in UTF-8
    """
    if not title:
        raise ValueError("Cannot sanitize an empty title")

    last = len(title) - 1
    name = "".join(
        _escape(char) if _needs_escape(char, index, last) else char
        for index, char in enumerate(title)
    )

    size = len(name.encode("utf-8"))
    if size > MAX_NAME_BYTES:
        raise ValueError(f"Title is too long for a directory name ({size} bytes escaped, max {MAX_NAME_BYTES})")

    return name


def desanitize(name: str) -> str:
    """Exact inverse of :func:`sanitize`."""
    return _ESCAPE_PATTERN.sub(_unescape, name)


def _unescape(match: "re.Match[str]") -> str:
    codepoint = int(match.group(1), 16)
    # directories not created by sanitize() may contain arbitrary tildes
    if codepoint > 0x10FFFF:
        return match.group(0)
    return chr(codepoint)
