from enum import Enum


class NormalizationRule(str, Enum):
    """
    Named text transforms applied to field values before comparison.

    Declaration order is the canonical execution order: later rules assume the output of earlier ones
    (typography fixes run before identifier extraction, umlaut folding runs before accent stripping).
    """

    TYPOGRAPHY = "normalize-typography"
    CHARACTERS = "normalize-characters"
    URLS = "normalize-urls"
    IDENTIFIERS = "normalize-identifiers"
    UMLAUTS = "normalize-umlauts"
    ACCENTS = "normalize-accents"
    UNICODE = "normalize-unicode"
    PUNCTUATION = "normalize-punctuation"
    WHITESPACE = "normalize-whitespace"
    LOWERCASE = "normalize-lowercase"


class MatchingMode(str, Enum):
    """
    An enumeration of the matching strategy modes offered to the user.
    """

    STRICT = "strict"
    BALANCED = "balanced"
    CUSTOM = "custom"


class MatchQuality(str, Enum):
    """
    Quality classes of an overall match score.
    """

    EXACT = "exact"
    HIGH = "high"
    NONE = "none"


class VerificationPhase(str, Enum):
    """
    Phases of the per-reference verification state machine.
    """

    IDLE = "idle"
    SEARCHING = "searching"
    MATCHING = "matching"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


class FailurePolicy(str, Enum):
    """
    What a verification run does when a search provider fails for one reference.

    ISOLATE: only the failing reference ends in the error phase, the run goes on.
    ABORT: the whole run stops with one error message.
    """

    ISOLATE = "isolate"
    ABORT = "abort"
