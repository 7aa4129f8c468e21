"""
Individual text transforms behind each normalization rule.

Each function is pure, total and idempotent on its own output.
"""

import re
import unicodedata
from urllib.parse import parse_qsl, urlencode, urlsplit


# ============================================================================
# Encoding repairs
# ============================================================================

# Characters whose cp1252/latin-1 byte is a UTF-8 continuation byte (0x80-0xBF)
_CONTINUATION = "\u0080-¿€‚ƒ„…†‡ˆ‰Š‹ŒŽ‘’“”•–—˜™š›œžŸ"

# A 2-byte sequence led by Â-Ç (U+0080-U+01FF mangled, "ƒ" appears once text is mangled twice) or a 3-byte
# sequence led by â (general punctuation mangled)
_MOJIBAKE = re.compile(f"[Â-Ç][{_CONTINUATION}]|â[{_CONTINUATION}]{{2}}")

# A mangled "à" whose trailing non-breaking space was turned into a plain space
_MANGLED_A_GRAVE = re.compile("Ã ")


def _to_byte(char: str) -> int | None:
    if ord(char) < 0x100:
        return ord(char)
    try:
        return char.encode("cp1252")[0]
    except UnicodeEncodeError:
        return None


def _decode_mojibake(match: re.Match[str]) -> str:
    sequence = match.group(0)
    raw = [_to_byte(char) for char in sequence]
    if any(b is None for b in raw):
        return sequence

    try:
        return bytes(b for b in raw if b is not None).decode("utf-8")
    except UnicodeDecodeError:
        return sequence


def fix_characters(text: str) -> str:
    """
    Repair UTF-8 text that was decoded as cp1252 once too often.

    Text mangled more than once is repaired layer by layer until nothing changes; every repair shortens the text.

    Examples:
        "GrÃ¼n" -> "Grün", "cafÃ©" -> "café", "Itâ€™s" -> "It’s", "â€œquotedâ€\x9d" -> "“quoted”"
        "cafÃƒÂ©" -> "café", "cafÃƒÆ’Ã‚Â©" -> "café"
    """
    previous = None
    repaired = text
    while repaired != previous:
        previous = repaired
        repaired = _MOJIBAKE.sub(_decode_mojibake, repaired)
        repaired = _MANGLED_A_GRAVE.sub("à", repaired)
    return repaired


# ============================================================================
# Typography
# ============================================================================

_TYPOGRAPHY_TABLE = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "„": '"',
        "‟": '"',
        "«": '"',
        "»": '"',
        "‘": "'",
        "’": "'",
        "‚": "'",
        "‛": "'",
        "‹": "'",
        "›": "'",
        "´": "'",
        "`": "'",
        "‐": "-",
        "‑": "-",
        "‒": "-",
        "–": "-",
        "—": "-",
        "―": "-",
        "−": "-",
        "…": "...",
    }
)

_UNICODE_SPACES = re.compile("[\u00a0\u1680\u2000-\u200a\u202f\u205f\u3000]")


def fix_typography(text: str) -> str:
    """
    Smart quotes, dashes, ellipsis and exotic spaces to their ASCII forms, after repairing mangled encodings.

    Example:
        "“Deep” learning — a survey…" -> '"Deep" learning - a survey...'
    """
    repaired = fix_characters(text)
    typographic = _UNICODE_SPACES.sub(" ", repaired.translate(_TYPOGRAPHY_TABLE))
    # A mangled "à" followed by an exotic space is only recognizable once that space is plain
    return _MANGLED_A_GRAVE.sub("à", typographic)


# ============================================================================
# URLs
# ============================================================================

_URL = re.compile(r"https?://[^\s<>\"]+", re.IGNORECASE)

_TRACKING_PARAMS = frozenset({"fbclid", "gclid"})
_TRACKING_PREFIXES = ("utm_", "ref", "campaign")


def _is_tracking_param(key: str) -> bool:
    lowered = key.lower()
    return lowered in _TRACKING_PARAMS or lowered.startswith(_TRACKING_PREFIXES)


def _normalize_url(match: re.Match[str]) -> str:
    url = match.group(0)
    try:
        # Only validates; the scheme and host are kept exactly as written
        query = parse_qsl(urlsplit(url).query, keep_blank_values=True)
    except ValueError:
        return url

    base = url.split("#", 1)[0].split("?", 1)[0]
    kept = sorted((key, value) for key, value in query if not _is_tracking_param(key))
    if not kept:
        return base
    return f"{base}?{urlencode(kept)}"


def normalize_urls(text: str) -> str:
    """
    Strip fragments and tracking parameters from embedded URLs and sort their remaining query parameters.

    Example:
        "https://ex.org/a?utm_source=x&b=2&a=1#top" -> "https://ex.org/a?a=1&b=2"
    """
    return _URL.sub(_normalize_url, text)


# ============================================================================
# Identifiers
# ============================================================================

_DOI_PREFIX = re.compile(r"(?:https?://(?:dx\.|www\.)?doi\.org/|\bdoi:\s*)", re.IGNORECASE)
_DOI_ONLY = re.compile(r"^\s*10\.\d{4,9}\s*/.+$", re.DOTALL)
_DOI_IN_TEXT = re.compile(r"\b10\.\d{4,9}/\S+")
_DOI_INVALID_CHARS = re.compile(r"[^a-z0-9\-._~:/?#\[\]@!$&'()*+,;=%]")

_ISBN = re.compile(r"\bISBN(?:-1[03])?[:.\s]*([0-9Xx][0-9Xx\-\s]{8,20}[0-9Xx])", re.IGNORECASE)
_ISSN = re.compile(r"\bISSN[:.\s]*(\d{4})[-\s]?(\d{3}[\dXx])\b", re.IGNORECASE)
_PMCID = re.compile(r"\bPMCID[:.\s]*(?:PMC)?(\d+)", re.IGNORECASE)
_PMID = re.compile(r"\bPMID[:.\s]*(?=\d)", re.IGNORECASE)
_ARXIV_LABELLED = re.compile(
    r"(?:\barxiv[:.\s]*|https?://(?:www\.)?arxiv\.org/(?:abs|pdf)/)(\d{4}\.\d{4,5})(?:v\d+)?(?:\.pdf)?",
    re.IGNORECASE,
)
_ARXIV_VERSIONED = re.compile(r"\b(\d{4}\.\d{4,5})v\d+\b")


def _clean_doi(doi: str) -> str:
    return _DOI_INVALID_CHARS.sub("", re.sub(r"\s+", "", doi).lower())


def normalize_doi(text: str) -> str:
    """
    A value that is a DOI (after prefix removal) is cleaned as a whole; DOIs embedded in prose are only
    unprefixed and lowercased.

    Example:
        "https://doi.org/10.1000/ XYZ123" -> "10.1000/xyz123"
    """
    unprefixed = _DOI_PREFIX.sub("", text)
    if _DOI_ONLY.match(unprefixed):
        return _clean_doi(unprefixed)
    return _DOI_IN_TEXT.sub(lambda m: _clean_doi(m.group(0)), unprefixed)


def _normalize_isbn_match(match: re.Match[str]) -> str:
    digits = re.sub(r"[^0-9X]", "", match.group(1).upper())
    if len(digits) not in (10, 13):
        return match.group(0)
    return digits


def normalize_isbn(text: str) -> str:
    return _ISBN.sub(_normalize_isbn_match, text)


def normalize_issn(text: str) -> str:
    return _ISSN.sub(lambda m: f"{m.group(1)}-{m.group(2).upper()}", text)


def normalize_pmid(text: str) -> str:
    return _PMID.sub("", text)


def normalize_pmcid(text: str) -> str:
    return _PMCID.sub(lambda m: f"PMC{m.group(1)}", text)


def normalize_arxiv(text: str) -> str:
    labelled = _ARXIV_LABELLED.sub(lambda m: m.group(1), text)
    return _ARXIV_VERSIONED.sub(lambda m: m.group(1), labelled)


def normalize_identifiers(text: str) -> str:
    """
    Canonical forms of DOI, ISBN, ISSN, PMCID, PMID and arXiv identifiers.

    Examples:
        "doi:10.1000/XYZ" -> "10.1000/xyz"
        "ISBN 0-306-40615-2" -> "0306406152"
        "ISSN 12345678" -> "1234-5678"
        "PMCID: PMC123" -> "PMC123"
        "arXiv:2001.12345v3" -> "2001.12345"
    """
    normalized = normalize_doi(text)
    normalized = normalize_isbn(normalized)
    normalized = normalize_issn(normalized)
    normalized = normalize_pmcid(normalized)
    normalized = normalize_pmid(normalized)
    normalized = normalize_arxiv(normalized)
    return re.sub(r"[^\S\n]+", " ", normalized).strip()


# ============================================================================
# Letters
# ============================================================================

_UMLAUT_TABLE = str.maketrans(
    {
        "ä": "ae",
        "ö": "oe",
        "ü": "ue",
        "ß": "ss",
        "Ä": "Ae",
        "Ö": "Oe",
        "Ü": "Ue",
        "ẞ": "Ss",
        "å": "aa",
        "æ": "ae",
        "ø": "oe",
        "Å": "Aa",
        "Æ": "Ae",
        "Ø": "Oe",
    }
)


def fold_umlauts(text: str) -> str:
    """
    German and Nordic letters to their ASCII spellings.

    Example:
        "Müller Schrödinger Bjørk" -> "Mueller Schroedinger Bjoerk"
    """
    # Decomposed input ("u" + combining diaeresis) must be composed first to be caught
    return unicodedata.normalize("NFC", text).translate(_UMLAUT_TABLE)


def remove_accents(text: str) -> str:
    """
    Example:
        "naïve café résumé" -> "naive cafe resume"
    """
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(char for char in decomposed if not unicodedata.category(char).startswith("M"))
    return unicodedata.normalize("NFC", stripped)


_INVISIBLE = re.compile("[\u200b-\u200d\ufeff\u00ad\u2060]")


def canonicalize_unicode(text: str) -> str:
    """
    Removal of zero-width and other invisible formatting characters, then NFKC.

    Removing first lets a letter and a combining mark that were kept apart by an invisible character compose.
    """
    return unicodedata.normalize("NFKC", _INVISIBLE.sub("", text))


# ============================================================================
# Punctuation, whitespace, case
# ============================================================================

_HORIZONTAL_SPACE = re.compile(r"[^\S\n]+")


def _is_kept(char: str) -> bool:
    return char.isalnum() or char.isspace() or char in '-"'


def strip_punctuation(text: str) -> str:
    """
    Remove all characters except letters, digits, whitespace, '-' and '"'.

    Example:
        "COVID-19: Study, Results & Analysis!" -> "COVID-19 Study Results Analysis"
    """
    spaced = "".join(char if _is_kept(char) else " " for char in text)
    return _HORIZONTAL_SPACE.sub(" ", spaced).strip()


def normalize_whitespace(text: str) -> str:
    """
    Collapse horizontal whitespace, keep paragraph breaks (two newlines), join soft line breaks, trim.

    Example:
        "line  one\\nline two\\n\\n\\n\\npara" -> "line one line two\\n\\npara"
    """
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    normalized = re.sub(r"[^\S\n]*\n[^\S\n]*", "\n", normalized)
    normalized = re.sub(r"\n{3,}", "\n\n", normalized)
    normalized = re.sub(r"(?<=[^\n])\n(?=[^\n])", " ", normalized)
    normalized = _HORIZONTAL_SPACE.sub(" ", normalized)
    return normalized.strip()


_LOWERCASE_SPECIAL_CASES = str.maketrans(
    {
        "ß": "ss",
        "\u1e9e": "ss",
        "\u212a": "k",
        "\u2126": "\u03c9",
        "\u212b": "\u00e5",
        # "İ".lower() leaves a combining dot above behind
        "\u0130": "i",
    }
)


def to_lowercase(text: str) -> str:
    return text.translate(_LOWERCASE_SPECIAL_CASES).lower()
