"""
Keyword normalization and expansion.

Turns the raw, comma-separated string found in a keywords tag into
individual keyword tokens, and expands a page's string into
(page_id, keyword) rows.
"""

import unicodedata
from typing import Dict, List, Optional, Tuple

KEYWORD_DELIMITER = ','


def strip_accents(token: str) -> str:
    """
    Remove accents/diacritics.

    Examples:
        >>> strip_accents("República")
        'Republica'
    """
    # NFD splits 'é' into 'e' + combining accent (category Mn)
    return ''.join(
        c for c in unicodedata.normalize('NFD', token)
        if unicodedata.category(c) != 'Mn'
    )


class KeywordNormalizer:
    """
    Splits raw keyword strings into normalized tokens.

    The default configuration only trims whitespace and drops empty
    tokens. Case folding and accent stripping are opt-in and are recorded
    in the dataset footer so queries get normalized the same way.
    """

    def __init__(self, case_fold: bool = False, strip_accents: bool = False):
        self.case_fold = case_fold
        self.strip_accents = strip_accents

    def normalize(self, token: str) -> str:
        """Normalize a single token. May return ''."""
        token = token.strip()
        if not token:
            return token
        if self.strip_accents:
            token = strip_accents(token).strip()
        if self.case_fold:
            token = token.casefold()
        return token

    def split(self, raw_keywords: Optional[str]) -> List[str]:
        """
        Split a raw keyword string into tokens.

        Order and duplicates are preserved; empty tokens are dropped.

        Args:
            raw_keywords: Raw attribute value, e.g. "math, algebra,, forum "

        Returns:
            List of tokens, e.g. ['math', 'algebra', 'forum']
        """
        if not raw_keywords:
            return []

        tokens = []
        for segment in raw_keywords.split(KEYWORD_DELIMITER):
            token = self.normalize(segment)
            if token:
                tokens.append(token)
        return tokens

    def expand(self, page_id: int, raw_keywords: Optional[str]) -> List[Tuple[int, str]]:
        """Expand one page into (page_id, keyword) rows."""
        return [(page_id, keyword) for keyword in self.split(raw_keywords)]

    def metadata(self) -> Dict[str, str]:
        """Configuration as Parquet footer metadata."""
        return {
            'kwmine.case_fold': str(self.case_fold).lower(),
            'kwmine.strip_accents': str(self.strip_accents).lower(),
        }

    @classmethod
    def from_metadata(cls, metadata: Optional[Dict[str, str]]) -> 'KeywordNormalizer':
        """Rebuild the normalizer a dataset was written with. Missing keys mean defaults."""
        metadata = metadata or {}
        return cls(
            case_fold=metadata.get('kwmine.case_fold', 'false') == 'true',
            strip_accents=metadata.get('kwmine.strip_accents', 'false') == 'true',
        )

    def __eq__(self, other):
        if not isinstance(other, KeywordNormalizer):
            return NotImplemented
        return (self.case_fold, self.strip_accents) == (other.case_fold, other.strip_accents)

    def __repr__(self):
        return f"KeywordNormalizer(case_fold={self.case_fold}, strip_accents={self.strip_accents})"


DEFAULT_NORMALIZER = KeywordNormalizer()


def split_keywords(raw_keywords: Optional[str]) -> List[str]:
    """Split with the default (trim-only) normalizer."""
    return DEFAULT_NORMALIZER.split(raw_keywords)


def expand_keywords(page_id: int, raw_keywords: Optional[str]) -> List[Tuple[int, str]]:
    """Expand with the default (trim-only) normalizer."""
    return DEFAULT_NORMALIZER.expand(page_id, raw_keywords)
