"""Tolerant key/value extraction from OpenClaw's JSON5 config text.

This is deliberately not a parser. The gateway owns the schema and its own
validator; the audit only needs to read values a human operator could read,
so it searches the text for ``key: value`` bindings instead of building a
tree. It copes with unquoted keys, single or double quotes, trailing commas,
``//`` and ``/* */`` comments and arbitrary nesting, and it never raises.

A key that is not bound to a scalar anywhere is ``UNRESOLVED``. Callers fall
back to the documented default for that setting.

Keys that recur under different parents ("mode" under ``gateway``, ``auth``
and ``sandbox``) are disambiguated with the scoped variants, which only look
at a window of lines after the first occurrence of the parent key. The window
is a tunable heuristic: deeply nested or minified config can defeat it, so
results are advisory.
"""

import logging
import re
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional, Union

from .files import read_text

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 10


class Unresolved(Enum):
    """Explicit "no value found" outcome of an extraction."""

    UNRESOLVED = "unresolved"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNRESOLVED"


UNRESOLVED = Unresolved.UNRESOLVED

Extracted = Union[str, Unresolved]

_VALUE = (
    r"""(?:"(?P<dq>(?:[^"\\\n]|\\.)*)\""""
    r"""|'(?P<sq>(?:[^'\\\n]|\\.)*)'"""
    r"""|(?P<bare>[^\s,{}\[\]"']+))"""
)


@lru_cache(maxsize=256)
def _key_re(key: str) -> re.Pattern:
    escaped = re.escape(key)
    return re.compile(rf"""(?<![\w$.-])(?:"{escaped}"|'{escaped}'|{escaped})\s*[:=]\s*""")


@lru_cache(maxsize=256)
def _binding_re(key: str) -> re.Pattern:
    return re.compile(_key_re(key).pattern + _VALUE)


def strip_comments(text: str) -> str:
    """Remove // and /* */ comments that are outside string literals.

    Newlines inside block comments are kept so line numbers and scoped
    windows stay aligned with the original text.
    """
    out: list[str] = []
    i = 0
    n = len(text)
    quote: Optional[str] = None

    while i < n:
        ch = text[i]
        if quote:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            # An unterminated quote never leaks past its line
            if ch == quote or ch == "\n":
                quote = None
            i += 1
            continue

        if ch in "\"'":
            quote = ch
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            if end == -1:
                break
            i = end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            chunk = text[i:] if end == -1 else text[i:end + 2]
            out.append("\n" * chunk.count("\n"))
            if end == -1:
                break
            i = end + 2
        else:
            out.append(ch)
            i += 1

    return "".join(out)


def _values(text: str, key: str) -> Iterable[str]:
    for match in _binding_re(key).finditer(text):
        for group in ("dq", "sq", "bare"):
            value = match.group(group)
            if value is not None:
                yield value
                break


def _accept(value: str, choices: Optional[Iterable[str]]) -> bool:
    return choices is None or value in choices


def extract(text: str, key: str, choices: Optional[Iterable[str]] = None) -> Extracted:
    """Return the first scalar value bound to key anywhere in text.

    Args:
        text: Config text, comments allowed.
        key: Key name, matched whether quoted or not.
        choices: When given, only values in this collection count as a match.

    Returns:
        The value as a string (quotes removed), or UNRESOLVED.
    """
    try:
        choices = tuple(choices) if choices is not None else None
        for value in _values(strip_comments(text), key):
            if _accept(value, choices):
                return value
    except (re.error, TypeError) as e:
        logger.debug(f"Extraction of {key!r} failed: {e}")
    return UNRESOLVED


def extract_all(text: str, key: str) -> list[str]:
    """Return every scalar value bound to key, in order of appearance."""
    try:
        return list(_values(strip_comments(text), key))
    except (re.error, TypeError) as e:
        logger.debug(f"Extraction of {key!r} failed: {e}")
        return []


def has_key(text: str, key: str) -> bool:
    """Whether key appears bound to anything (scalar, object or array)."""
    try:
        return _key_re(key).search(strip_comments(text)) is not None
    except (re.error, TypeError):
        return False


def scope_text(text: str, parent_key: str, window: int = DEFAULT_WINDOW) -> Optional[str]:
    """Text of the line holding the first parent_key plus `window` lines after it."""
    try:
        lines = strip_comments(text).splitlines()
        pattern = _key_re(parent_key)
        for index, line in enumerate(lines):
            match = pattern.search(line)
            if match:
                # Start at the key so an earlier sibling on the same line does not count
                head = line[match.start():]
                return "\n".join([head] + lines[index + 1:index + 1 + max(window, 0)])
    except (re.error, TypeError) as e:
        logger.debug(f"Scoping on {parent_key!r} failed: {e}")
    return None


def extract_scoped(
    text: str,
    parent_key: str,
    child_key: str,
    window: int = DEFAULT_WINDOW,
    choices: Optional[Iterable[str]] = None,
) -> Extracted:
    """Like extract, restricted to `window` lines after the first parent_key."""
    scoped = scope_text(text, parent_key, window)
    if scoped is None:
        return UNRESOLVED
    return extract(scoped, child_key, choices)


def to_bool(value: Extracted) -> Optional[bool]:
    """Interpret an extracted value as a boolean, None when it is not one."""
    if value is UNRESOLVED:
        return None
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


def to_int(value: Extracted) -> Optional[int]:
    """Interpret an extracted value as an integer, None when it is not one."""
    if value is UNRESOLVED:
        return None
    try:
        return int(value)
    except ValueError:
        return None


_BOOL_CHOICES = ("true", "false", "True", "False")


class ConfigSnapshot:
    """Raw text of one config file plus a cache of resolved keys.

    The snapshot never changes after construction; only the cache fills in as
    rules ask for keys. A snapshot for a missing or unreadable file is
    "unavailable": every extraction on it is UNRESOLVED.
    """

    __slots__ = ("_path", "_raw", "_text", "_read_error", "_cache")

    def __init__(self, raw_text: Optional[str], path: Optional[Path] = None, read_error: Optional[str] = None):
        self._path = path
        self._raw = raw_text
        self._text: Optional[str] = None
        self._read_error = read_error
        self._cache: dict[tuple, object] = {}

    @classmethod
    def load(cls, path: str | Path) -> "ConfigSnapshot":
        """Read a config file. Never raises; failures are kept on the snapshot."""
        path = Path(path)
        try:
            return cls(read_text(path), path=path)
        except FileNotFoundError:
            return cls(None, path=path, read_error=f"File not found: {path}")
        except PermissionError:
            return cls(None, path=path, read_error=f"Permission denied: {path}")
        except OSError as e:
            return cls(None, path=path, read_error=f"Error reading {path}: {e}")

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def available(self) -> bool:
        return self._raw is not None

    @property
    def read_error(self) -> Optional[str]:
        return self._read_error

    @property
    def raw_text(self) -> str:
        return self._raw or ""

    @property
    def text(self) -> str:
        """Config text with comments removed."""
        if self._text is None:
            self._text = strip_comments(self.raw_text)
        return self._text

    def _cached(self, cache_key: tuple, compute):
        if cache_key not in self._cache:
            self._cache[cache_key] = compute()
        return self._cache[cache_key]

    def get(self, key: str, choices: Optional[tuple[str, ...]] = None) -> Extracted:
        return self._cached(("get", key, choices), lambda: extract(self.text, key, choices))

    def get_all(self, key: str) -> tuple[str, ...]:
        return self._cached(("all", key), lambda: tuple(extract_all(self.text, key)))

    def get_bool(self, key: str) -> Optional[bool]:
        return to_bool(self.get(key, _BOOL_CHOICES))

    def get_int(self, key: str) -> Optional[int]:
        return self._cached(
            ("int", key),
            lambda: next((to_int(v) for v in self.get_all(key) if to_int(v) is not None), None),
        )

    def has(self, key: str) -> bool:
        return self._cached(("has", key), lambda: has_key(self.text, key))

    def get_scoped(
        self,
        parent_key: str,
        child_key: str,
        window: int = DEFAULT_WINDOW,
        choices: Optional[tuple[str, ...]] = None,
    ) -> Extracted:
        return self._cached(
            ("scoped", parent_key, child_key, window, choices),
            lambda: extract_scoped(self.text, parent_key, child_key, window, choices),
        )

    def get_bool_scoped(self, parent_key: str, child_key: str, window: int = DEFAULT_WINDOW) -> Optional[bool]:
        return to_bool(self.get_scoped(parent_key, child_key, window, _BOOL_CHOICES))

    def scope(self, parent_key: str, window: int = DEFAULT_WINDOW) -> Optional[str]:
        return self._cached(("scope", parent_key, window), lambda: scope_text(self.text, parent_key, window))

    def lines(self) -> list[tuple[int, str]]:
        """(line_number, line) pairs of the comment-stripped text."""
        return [(i, line) for i, line in enumerate(self.text.splitlines(), start=1)]
