"""
Reversible escaping of TSV delimiter and line-terminator characters.

**Conceptual**: A TSV cell must never contain a raw tab (it would split the
cell in two) or a raw CR/LF (it would split the record across lines). This
module rewrites those characters as two-character escape markers, and doubles
backslashes so that a literal backslash can never be confused with the start
of a marker.

**Encoding table**:
  - backslash -> ``\\\\``
  - tab       -> ``\\t``
  - CR        -> ``\\r``
  - LF        -> ``\\n``

**Decoding**: A single left-to-right scan. Whenever a backslash is followed by
``t``, ``r``, ``n`` or another backslash, both characters are consumed and the
original character is emitted. Any other character (including a lone trailing
backslash) is copied through unchanged.

**Teaching note**: It is tempting to decode with a chain of ``str.replace``
calls. That breaks on inputs such as ``\\\\t`` (an escaped backslash followed
by a literal ``t``), because a global replace cannot tell which backslash
starts a marker. Scanning once from the left always pairs each backslash with
the character right after it, so ``decode(encode(s)) == s`` for every string.
"""

ESCAPE_CHAR = "\\"

# Character -> escape marker letter
_ENCODE_MAP = {
    "\\": "\\",
    "\t": "t",
    "\r": "r",
    "\n": "n",
}

# Escape marker letter -> character
_DECODE_MAP = {letter: char for char, letter in _ENCODE_MAP.items()}


def encode_special_characters(value: str) -> str:
    """
    Escape backslash, tab, CR and LF so the text fits in one TSV cell.

    Args:
        value: Text to escape.

    Returns:
        Escaped text containing no raw tab, CR or LF characters.

    Example:
        >>> encode_special_characters("a\\tb\\nc")
        'a\\\\tb\\\\nc'
    """
    # Fast path: nothing to escape
    if not any(char in value for char in _ENCODE_MAP):
        return value

    parts = []
    for char in value:
        letter = _ENCODE_MAP.get(char)
        if letter is None:
            parts.append(char)
        else:
            parts.append(ESCAPE_CHAR + letter)
    return "".join(parts)


def decode_special_characters(value: str) -> str:
    """
    Reverse encode_special_characters with a single left-to-right scan.

    Input not produced by encode_special_characters is decoded on a best
    effort basis; unknown escape sequences are copied through as-is.

    Args:
        value: Escaped cell text.

    Returns:
        The original text.
    """
    if ESCAPE_CHAR not in value:
        return value

    parts = []
    i = 0
    length = len(value)
    while i < length:
        char = value[i]
        if char == ESCAPE_CHAR and i + 1 < length:
            decoded = _DECODE_MAP.get(value[i + 1])
            if decoded is not None:
                parts.append(decoded)
                i += 2
                continue
        parts.append(char)
        i += 1
    return "".join(parts)
