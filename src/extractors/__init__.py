"""
Metadata tag extractors.

Every extractor implements extract(content) -> str, returning the value of
the first matching tag attribute, or '' when the record has none.
"""

from .base import BaseExtractor, ExtractionError
from .meta_tags import MetaTagExtractor, SoupMetaTagExtractor, parse_attributes

PARSERS = {
    'regex': MetaTagExtractor,
    'soup': SoupMetaTagExtractor,
}


def load_extractor(parser: str = 'regex', tag: str = 'meta', attribute: str = 'keywords') -> BaseExtractor:
    """
    Build an extractor by parser name.

    Args:
        parser: 'regex' (line-oriented records) or 'soup' (whole documents)
        tag: Tag name to match
        attribute: Value of the tag's name attribute to match

    Returns:
        Extractor instance

    Raises:
        ValueError: If the parser name is unknown
    """
    try:
        extractor_class = PARSERS[parser]
    except KeyError:
        raise ValueError(f"Unknown parser '{parser}' (expected one of: {', '.join(sorted(PARSERS))})")
    return extractor_class(tag=tag, attribute=attribute)


__all__ = ['BaseExtractor', 'ExtractionError', 'MetaTagExtractor', 'SoupMetaTagExtractor',
           'parse_attributes', 'load_extractor', 'PARSERS']
