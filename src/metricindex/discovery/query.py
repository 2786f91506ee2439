"""
Glob queries over dot-delimited metric names.

A query is matched segment by segment. Inside a segment ``*`` matches any
run of non-dot characters, ``?`` matches one non-dot character and
``{a,b}`` matches any of the alternatives. Everything else is literal.

The same query is translated to a Python regex (in-memory backend) and to
Lucene regexp syntax (Elasticsearch ``regexp`` queries and terms
``include`` filters).
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional

from metricindex.core.errors import MalformedQueryError

DELIMITER = "."
WILDCARD_CHARS = frozenset("*?{")

# Characters with a special meaning in Lucene regular expressions
_LUCENE_RESERVED = frozenset('.?+*|{}[]()"\\#@&<>~^$')


def parse_query(query: str) -> List[str]:
    """Split a query into segments, rejecting malformed patterns."""
    if not isinstance(query, str) or not query:
        raise MalformedQueryError("Query must be a non-empty string", {"query": query})

    depth = 0
    for char in query:
        if char == "{":
            if depth:
                raise MalformedQueryError("Nested braces are not supported", {"query": query})
            depth += 1
        elif char == "}":
            if not depth:
                raise MalformedQueryError("Unbalanced braces", {"query": query})
            depth -= 1
        elif char == DELIMITER and depth:
            raise MalformedQueryError("Alternatives may not contain '.'", {"query": query})
    if depth:
        raise MalformedQueryError("Unbalanced braces", {"query": query})

    segments = query.split(DELIMITER)
    if any(not segment for segment in segments):
        raise MalformedQueryError("Query contains an empty segment", {"query": query})
    return segments


def query_depth(query: str) -> int:
    return len(parse_query(query))


def has_wildcards(query: str) -> bool:
    return any(char in WILDCARD_CHARS for char in query)


def _translate_segment(
    segment: str,
    escape: Callable[[str], str],
    group_open: str,
) -> str:
    parts = []
    in_braces = False
    for char in segment:
        if char == "{":
            parts.append(group_open)
            in_braces = True
        elif char == "}":
            parts.append(")")
            in_braces = False
        elif char == "," and in_braces:
            parts.append("|")
        elif char == "*":
            parts.append("[^.]*")
        elif char == "?":
            parts.append("[^.]")
        else:
            parts.append(escape(char))
    return "".join(parts)


def _extra_levels(max_extra_levels: Optional[int], group_open: str) -> str:
    if max_extra_levels == 0:
        return ""
    repeat = "*" if max_extra_levels is None else "{0,%d}" % max_extra_levels
    return rf"{group_open}\.[^.]+){repeat}"


def compile_query(query: str, *, max_extra_levels: Optional[int] = 0) -> re.Pattern:
    """
    Compile a query into a Python regex.

    Args:
        query: Glob query
        max_extra_levels: How many segments may follow the matched prefix
            (None for any number)

    Returns:
        Pattern to use with ``fullmatch``
    """
    body = r"\.".join(_translate_segment(s, re.escape, "(?:") for s in parse_query(query))
    return re.compile(body + _extra_levels(max_extra_levels, "(?:"))


def _lucene_escape(char: str) -> str:
    return "\\" + char if char in _LUCENE_RESERVED else char


def to_lucene_regex(query: str, *, max_extra_levels: Optional[int] = 0) -> str:
    """Translate a query into Lucene regexp syntax (implicitly anchored)."""
    body = r"\.".join(_translate_segment(s, _lucene_escape, "(") for s in parse_query(query))
    return body + _extra_levels(max_extra_levels, "(")
