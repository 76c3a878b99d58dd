"""
Bracket-aware text scanning helpers for schema definition files
"""

import re
from typing import Iterator, List, Optional, Tuple

_PAIRS = {'(': ')', '[': ']', '{': '}'}
_CLOSERS = set(_PAIRS.values())
_QUOTES = ('"', "'", '`')


def _skip_comment(text: str, i: int) -> int:
    """Offset just past a comment starting at ``i``, or ``i`` if there is none"""
    if text.startswith('//', i):
        end = text.find('\n', i)
        return len(text) if end == -1 else end
    if text.startswith('/*', i):
        end = text.find('*/', i + 2)
        return len(text) if end == -1 else end + 2
    return i


def find_closing(text: str, start: int) -> Optional[int]:
    """Index of the bracket closing the one at ``start``, or None if unbalanced"""
    stack: List[str] = []
    quote: Optional[str] = None
    i = start

    while i < len(text):
        char = text[i]
        if quote:
            if char == '\\':
                i += 2
                continue
            if char == quote:
                quote = None
        elif char == '/' and _skip_comment(text, i) != i:
            i = _skip_comment(text, i)
            continue
        elif char in _QUOTES:
            quote = char
        elif char in _PAIRS:
            stack.append(_PAIRS[char])
        elif char in _CLOSERS:
            if not stack or stack.pop() != char:
                return None
            if not stack:
                return i
        i += 1

    return None


def iter_blocks(text: str, pattern: re.Pattern) -> Iterator[Tuple[re.Match, str, int]]:
    """Yield (header match, block body, end offset) for each ``pattern`` followed by a braced block"""
    position = 0
    while True:
        match = pattern.search(text, position)
        if not match:
            return
        open_brace = text.find('{', match.end() - 1)
        close_brace = find_closing(text, open_brace) if open_brace != -1 else None
        if close_brace is None:
            position = match.end()
            continue
        yield match, text[open_brace + 1:close_brace], close_brace + 1
        position = close_brace + 1


def split_top_level(text: str, separator: str = ',') -> List[str]:
    """Split on ``separator`` outside of brackets and string literals"""
    parts: List[str] = []
    depth = 0
    quote: Optional[str] = None
    current: List[str] = []
    i = 0

    while i < len(text):
        char = text[i]
        if quote:
            current.append(char)
            if char == '\\' and i + 1 < len(text):
                current.append(text[i + 1])
                i += 2
                continue
            if char == quote:
                quote = None
        elif char == '/' and _skip_comment(text, i) != i:
            i = _skip_comment(text, i)
            continue
        elif char in _QUOTES:
            quote = char
            current.append(char)
        elif char in _PAIRS:
            depth += 1
            current.append(char)
        elif char in _CLOSERS:
            depth -= 1
            current.append(char)
        elif char == separator and depth == 0:
            parts.append(''.join(current))
            current = []
        else:
            current.append(char)
        i += 1

    parts.append(''.join(current))
    return [part.strip() for part in parts if part.strip()]


def strip_line_comment(line: str) -> str:
    """Drop a trailing ``//`` comment that is not inside a string literal"""
    quote: Optional[str] = None
    for i, char in enumerate(line):
        if quote:
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        elif line.startswith('//', i):
            return line[:i]
    return line


def strip_comments(text: str) -> str:
    """Remove ``//`` line comments and ``/* */`` block comments"""
    text = re.sub(r'/\*.*?\*/', '', text, flags=re.DOTALL)
    return '\n'.join(strip_line_comment(line) for line in text.splitlines())


def call_arguments(text: str, name: str) -> Optional[str]:
    """Raw argument text of the first ``name(...)`` call in ``text``"""
    match = re.search(r'(?<!\w)' + re.escape(name) + r'\s*\(', text)
    if not match:
        return None
    open_paren = match.end() - 1
    close_paren = find_closing(text, open_paren)
    if close_paren is None:
        return None
    return text[open_paren + 1:close_paren]


def unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        return value[1:-1]
    return value
