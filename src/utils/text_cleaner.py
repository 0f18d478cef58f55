from __future__ import annotations

import html as _html
import math
import re
import unicodedata
from typing import Iterable

from bs4 import BeautifulSoup


_BOILERPLATE_PATTERNS: Iterable[re.Pattern] = [
    re.compile(r"^\s*read more\s*$", re.I),
    re.compile(r"^\s*continue reading\s*$", re.I),
    re.compile(r"^\s*the post .* appeared first on .*", re.I),
]
_MARKDOWN_MARKERS = re.compile(r"[#*`\-\[\]()]")
_LATIN_WORD = re.compile(r"[a-zA-Z]+")


def normalize_text(text: str) -> str:
    if not text:
        return ""
    text = _html.unescape(text)
    text = unicodedata.normalize("NFKC", text)
    text = text.replace("\x00", "").replace("\r", " ").replace("\n", " ")
    text = " ".join(text.split())
    return text.strip()


def clean_html(html: str) -> str:
    """Reduce a feed summary to plain prompt-safe text."""
    if not html:
        return ""
    if "<" not in html:
        return normalize_text(html)
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    for element in list(soup.find_all(string=True)):
        if any(p.search(normalize_text(str(element))) for p in _BOILERPLATE_PATTERNS):
            element.extract()
    return normalize_text(soup.get_text(" "))


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 1)].rstrip() + "…"


def count_words(text: str) -> int:
    """Count words in mixed Latin/CJK text.

    Latin words count individually; every other letter-like character counts
    as half a word, rounded up.
    """
    if not text:
        return 0
    stripped = _MARKDOWN_MARKERS.sub("", text).strip()
    latin_words = len(_LATIN_WORD.findall(stripped))
    other_chars = 0
    for char in stripped:
        if char.isspace() or char.isdigit() or ("a" <= char.lower() <= "z"):
            continue
        if not unicodedata.category(char).startswith("L"):
            continue
        other_chars += 1
    return latin_words + math.ceil(other_chars / 2)


def levenshtein_distance(first: str, second: str) -> int:
    if first == second:
        return 0
    if not first:
        return len(second)
    if not second:
        return len(first)
    previous = list(range(len(second) + 1))
    for i, left in enumerate(first, start=1):
        current = [i]
        for j, right in enumerate(second, start=1):
            cost = 0 if left == right else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def string_similarity(first: str, second: str) -> float:
    """Edit-distance similarity in [0, 1] relative to the longer string."""
    longer, shorter = (first, second) if len(first) >= len(second) else (second, first)
    if not longer:
        return 1.0
    return (len(longer) - levenshtein_distance(longer, shorter)) / len(longer)


def contains_keyword(haystack: str, keyword: str) -> bool:
    """Case-insensitive substring match used by the keyword fallbacks."""
    needle = keyword.strip().lower()
    return bool(needle) and needle in haystack.lower()


__all__ = [
    "clean_html",
    "contains_keyword",
    "count_words",
    "levenshtein_distance",
    "normalize_text",
    "string_similarity",
    "truncate",
]
