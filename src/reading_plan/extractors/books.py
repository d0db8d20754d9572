"""Book-name whitelist and reference normalization.

A reference looks like "1 Samuel 7" or "Psalms 46–48": optional numeral,
book name, chapter or chapter range. Everything that turns loose page text into
that shape lives here so the extraction strategies stay small.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

OLD_TESTAMENT = [
    "Genesis",
    "Exodus",
    "Leviticus",
    "Numbers",
    "Deuteronomy",
    "Joshua",
    "Judges",
    "Ruth",
    "1 Samuel",
    "2 Samuel",
    "1 Kings",
    "2 Kings",
    "1 Chronicles",
    "2 Chronicles",
    "Ezra",
    "Nehemiah",
    "Esther",
    "Job",
    "Psalms",
    "Proverbs",
    "Ecclesiastes",
    "Song of Songs",
    "Isaiah",
    "Jeremiah",
    "Lamentations",
    "Ezekiel",
    "Daniel",
    "Hosea",
    "Joel",
    "Amos",
    "Obadiah",
    "Jonah",
    "Micah",
    "Nahum",
    "Habakkuk",
    "Zephaniah",
    "Haggai",
    "Zechariah",
    "Malachi",
]

NEW_TESTAMENT = [
    "Matthew",
    "Mark",
    "Luke",
    "John",
    "Acts",
    "Romans",
    "1 Corinthians",
    "2 Corinthians",
    "Galatians",
    "Ephesians",
    "Philippians",
    "Colossians",
    "1 Thessalonians",
    "2 Thessalonians",
    "1 Timothy",
    "2 Timothy",
    "Titus",
    "Philemon",
    "Hebrews",
    "James",
    "1 Peter",
    "2 Peter",
    "1 John",
    "2 John",
    "3 John",
    "Jude",
    "Revelation",
]

BOOKS = OLD_TESTAMENT + NEW_TESTAMENT

# Variant spellings seen on plan pages, mapped to the canonical name
ALIASES: Dict[str, str] = {
    "psalm": "Psalms",
    "song": "Song of Songs",
    "song of solomon": "Song of Songs",
}

_CANONICAL: Dict[str, str] = {b.lower(): b for b in BOOKS}
_CANONICAL.update(ALIASES)

DASH = "–"


def _alternation(names: Iterable[str]) -> str:
    # Longest first, so "Song of Songs" wins over "Song" and "1 John" over "John"
    ordered = sorted(set(names), key=len, reverse=True)
    return "|".join(r"\s+".join(re.escape(w) for w in n.split()) for n in ordered)


_ALL_NAMES = BOOKS + [n.title() for n in ALIASES]
_BARE_NAMES = [re.sub(r"^\d\s+", "", n) for n in _ALL_NAMES]

BOOK_REF_RE = re.compile(
    r"\b(" + _alternation(_ALL_NAMES) + r")\s+(\d+(?:\s*[-–—]\s*\d+)?)\b",
    re.IGNORECASE,
)

# Bare book word, without numeral or chapter ("Samuel", "Psalm", ...)
BOOK_TOKEN_RE = re.compile(r"\b(" + _alternation(_BARE_NAMES) + r")\b", re.IGNORECASE)

_REF_SHAPE = re.compile(
    r"^(?:(\d)\s+)?([A-Za-z]+(?:\s+[A-Za-z]+)*?)\s+(\d+)(?:\s*[-–—]\s*(\d+))?"
)


def _title(word: str) -> str:
    return word[:1].upper() + word[1:].lower() if word else word


def normalize_reference(text: str) -> Optional[str]:
    """Normalize one reference, or return None when it has no book/chapter shape.

    >>> normalize_reference("1 samuel   7")
    '1 Samuel 7'
    >>> normalize_reference("Psalm 46-48")
    'Psalms 46–48'
    """
    if not text:
        return None
    t = " ".join(text.split())
    m = _REF_SHAPE.match(t)
    if not m:
        return None
    num, book, first, last = m.groups()
    book = " ".join(book.split())
    key = f"{num} {book}".lower() if num else book.lower()
    canonical = _CANONICAL.get(key)
    if canonical is None:
        canonical = " ".join(_title(w) for w in book.split(" "))
        if num:
            canonical = f"{num} {canonical}"
    chapters = f"{first}{DASH}{last}" if last else first
    return f"{canonical} {chapters}"


def reference_key(ref: str) -> str:
    """Equality key: case-insensitive, whitespace-normalized."""
    return " ".join(ref.split()).casefold()


def unique_references(refs: Iterable[Optional[str]]) -> List[str]:
    """Drop empties and duplicates, keeping first-seen order."""
    seen: Dict[str, str] = {}
    for ref in refs:
        if ref and reference_key(ref) not in seen:
            seen[reference_key(ref)] = ref
    return list(seen.values())


def has_book_token(text: str) -> bool:
    return bool(BOOK_TOKEN_RE.search(text or ""))


def normalize_readings(text: str) -> Optional[str]:
    """Normalize a plain-text reading list to "A 1; B 2–3" separators.

    Returns None when the text does not mention any known book.
    """
    t = " ".join((text or "").split())
    if not t or not has_book_token(t):
        return None
    t = re.sub(r"\s*[•|·,]\s*", "; ", t)
    t = re.sub(r"\s*;\s*", "; ", t)
    t = re.sub(r"\s*[–—]\s*", DASH, t)
    return t.strip("; ")


def split_readings(readings: str) -> List[str]:
    """Split a normalized reading list and normalize every piece."""
    return unique_references(normalize_reference(p) for p in readings.split(";"))


def scan_references(text: str) -> List[str]:
    """Find every "<Book> <chapter>[-<chapter>]" in free text, in order, unique."""
    return unique_references(
        normalize_reference(f"{m.group(1)} {m.group(2)}")
        for m in BOOK_REF_RE.finditer(text or "")
    )


def find_reading_line(text: str) -> Optional[str]:
    """First sentence or line that looks like a reading list.

    Needs a separator (; or ,), a digit and a book word. This is a best-effort
    guess with no confidence score and may pick up nearby unrelated text.
    """
    for line in re.split(r"(?<=[.!?])\s+|\n+", text or ""):
        t = line.strip()
        if not t or not re.search(r"[;,]", t):
            continue
        if not re.search(r"\d", t) or not has_book_token(t):
            continue
        return normalize_readings(t)
    return None
