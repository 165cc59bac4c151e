"""
XML Field Extractor
===================

Regex-based tag and CDATA extraction plus HTML entity decoding over raw
feed document fragments.

Feed documents are frequently not well-formed, so nothing here raises:
a missing or malformed element is reported as an empty string and the
caller treats it as a missing field.
"""

import re
from functools import lru_cache
from typing import Pattern


# Entities reversed by decode_entities. Decoded in one pass so that
# "&amp;lt;" becomes "&lt;" rather than "<".
BASIC_ENTITIES = {
    "lt": "<",
    "gt": ">",
    "amp": "&",
    "quot": '"',
    "#039": "'",
    "apos": "'",
}

# Named entities commonly found in feed titles and summaries
NAMED_ENTITIES = {
    "lt": "<",
    "gt": ">",
    "amp": "&",
    "quot": '"',
    "apos": "'",
    "nbsp": " ",
    "ndash": "–",
    "mdash": "—",
    "lsquo": "‘",
    "rsquo": "’",
    "ldquo": "“",
    "rdquo": "”",
    "hellip": "…",
    "copy": "©",
    "reg": "®",
    "trade": "™",
    "bull": "•",
    "middot": "·",
    "deg": "°",
    "plusmn": "±",
    "times": "×",
    "divide": "÷",
    "frac12": "½",
    "frac14": "¼",
    "frac34": "¾",
}

_BASIC_ENTITY_RE = re.compile(r"&(lt|gt|amp|quot|#039|apos);")
_ENTITY_RE = re.compile(r"&(#\d+|#[xX][0-9a-fA-F]+|[a-zA-Z][a-zA-Z0-9]*);")
_CDATA_ONLY_RE = re.compile(r"^\s*<!\[CDATA\[((?:(?!\]\]>).)*)\]\]>\s*$", re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


@lru_cache(maxsize=64)
def _element_pattern(tag_name: str) -> Pattern:
    # Opening tag may carry attributes but must not be self-closing
    name = re.escape(tag_name)
    return re.compile(
        rf"<{name}(?:\s[^>]*)?(?<!/)>(.*?)</{name}\s*>",
        re.IGNORECASE | re.DOTALL,
    )


@lru_cache(maxsize=64)
def _cdata_pattern(tag_name: str) -> Pattern:
    name = re.escape(tag_name)
    return re.compile(
        rf"<{name}(?:\s[^>]*)?(?<!/)>\s*<!\[CDATA\[((?:(?!\]\]>).)*)\]\]>\s*</{name}\s*>",
        re.IGNORECASE | re.DOTALL,
    )


def extract_tag(document: str, tag_name: str) -> str:
    """Return the trimmed inner text of the first ``tag_name`` element.

    Matching is case-insensitive and ignores attributes on the opening tag.
    An inner text consisting of a single CDATA section is unwrapped.

    Returns:
        Inner text, or "" when the element is absent or unterminated
    """
    if not document or not tag_name:
        return ""

    match = _element_pattern(tag_name).search(document)
    if not match:
        return ""

    inner = match.group(1)
    cdata = _CDATA_ONLY_RE.match(inner)
    if cdata:
        return cdata.group(1).strip()
    return inner.strip()


def extract_cdata(document: str, tag_name: str) -> str:
    """Return the CDATA payload of the first ``tag_name`` element.

    Returns:
        Trimmed CDATA content, or "" when the element is absent or has no
        CDATA wrapper
    """
    if not document or not tag_name:
        return ""

    match = _cdata_pattern(tag_name).search(document)
    return match.group(1).strip() if match else ""


def extract_text(document: str, tag_name: str) -> str:
    """CDATA-first, then plain extraction of an element."""
    return extract_cdata(document, tag_name) or extract_tag(document, tag_name)


def decode_entities(text: str) -> str:
    """Reverse the five XML entities in a single pass.

    >>> decode_entities("&amp;lt;")
    '&lt;'
    """
    if not text:
        return ""
    return _BASIC_ENTITY_RE.sub(lambda m: BASIC_ENTITIES[m.group(1)], text)


def _replace_entity(match) -> str:
    entity = match.group(1)

    if entity.startswith("#"):
        try:
            if entity[1:2] in ("x", "X"):
                code_point = int(entity[2:], 16)
            else:
                code_point = int(entity[1:])
            if code_point == 0 or 0xD800 <= code_point <= 0xDFFF:
                return match.group(0)
            return chr(code_point)
        except (ValueError, OverflowError):
            return match.group(0)

    return NAMED_ENTITIES.get(entity.lower(), match.group(0))


def decode_html(text: str) -> str:
    """Decode named and numeric HTML entities in a single pass.

    Unknown entities are left as-is.
    """
    if not text:
        return ""
    return _ENTITY_RE.sub(_replace_entity, text)


def deep_decode_html(text: str, max_passes: int = 3) -> str:
    """Repeat decode_html until the text stops changing.

    Feeds regularly ship content that was escaped more than once
    (``&amp;lt;p&amp;gt;``); ``max_passes`` bounds the work.
    """
    if not text:
        return ""

    decoded = text
    for _ in range(max_passes):
        next_pass = decode_html(decoded)
        if next_pass == decoded:
            break
        decoded = next_pass
    return decoded


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_markup(html: str) -> str:
    """Remove every ``<...>`` tag and collapse whitespace."""
    if not html:
        return ""
    return collapse_whitespace(_TAG_RE.sub(" ", html))
