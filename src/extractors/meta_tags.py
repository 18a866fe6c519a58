"""
Extractors for `<meta name="keywords" content="...">` style tags.

Two flavours share the same contract:

- MetaTagExtractor: regex scanner, works on single archive lines or
  fragments where an HTML parser would be overkill.
- SoupMetaTagExtractor: BeautifulSoup (lxml) for whole documents.
"""

import re
from bs4 import BeautifulSoup

from .base import BaseExtractor, ExtractionError


# name=value pairs inside a tag; value may be "double", 'single' or bare
ATTRIBUTE_PATTERN = re.compile(
    r'''([^\s"'<>/=]+)            # attribute name
        (?:\s*=\s*
            (?:"([^"]*)"          # double-quoted value
            |'([^']*)'            # single-quoted value
            |([^\s"'=<>`]+)       # unquoted value
            )
        )?''',
    re.VERBOSE
)


def parse_attributes(tag_body: str) -> dict:
    """
    Parse the attributes of a single tag.

    Args:
        tag_body: Text between the tag name and the closing '>'

    Returns:
        Dict mapping lowercased attribute name -> value (first occurrence wins)

    Raises:
        ExtractionError: If a quoted value is never closed

    Examples:
        >>> parse_attributes(' name="keywords" content="a, b"')
        {'name': 'keywords', 'content': 'a, b'}
    """
    attrs = {}
    pos = 0
    length = len(tag_body)

    while pos < length:
        # Skip whitespace and stray slashes (self-closing tags)
        while pos < length and (tag_body[pos].isspace() or tag_body[pos] == '/'):
            pos += 1
        if pos >= length:
            break

        match = ATTRIBUTE_PATTERN.match(tag_body, pos)
        if not match or match.end() == pos:
            # Opening quote without a closing one
            if tag_body[pos] in '"\'' or '=' in tag_body[pos:pos + 2]:
                raise ExtractionError(f"Unterminated attribute near: {tag_body[pos:pos + 40]!r}")
            pos += 1
            continue

        name = match.group(1).lower()
        value = next((g for g in match.group(2, 3, 4) if g is not None), '')
        attrs.setdefault(name, value)
        pos = match.end()

    return attrs


class MetaTagExtractor(BaseExtractor):
    """Regex-based extractor for the first matching tag in a record."""

    def __init__(self, tag: str = 'meta', attribute: str = 'keywords', value_attribute: str = 'content'):
        super().__init__(tag, attribute, value_attribute)
        # Quotes may legally contain '>', so the body is matched quote-aware
        self._tag_pattern = re.compile(
            r'<' + re.escape(self.tag) + r'''(?=[\s/>])((?:"[^"]*"|'[^']*'|[^'">])*)(>?)''',
            re.IGNORECASE | re.DOTALL
        )

    def extract_strict(self, content: str) -> str:
        for match in self._tag_pattern.finditer(content):
            body, closed = match.group(1), match.group(2)

            if not closed:
                # Tag runs to end of record: only a problem if it is our tag
                if self._names_target(body):
                    raise ExtractionError(f"Unclosed <{self.tag}> tag")
                continue

            try:
                attrs = parse_attributes(body)
            except ExtractionError:
                # Broken unrelated tags do not hide a later well-formed match
                if self._names_target(body):
                    raise
                continue

            if attrs.get('name', '').strip().lower() == self.attribute:
                # First match only
                return attrs.get(self.value_attribute, '')

        return ''

    def _names_target(self, body: str) -> bool:
        return bool(re.search(
            r'name\s*=\s*["\']?\s*' + re.escape(self.attribute) + r'\b',
            body,
            re.IGNORECASE
        ))


class SoupMetaTagExtractor(BaseExtractor):
    """BeautifulSoup-based extractor for whole HTML documents."""

    def extract_strict(self, content: str) -> str:
        if self.tag not in content.lower():
            return ''

        try:
            soup = BeautifulSoup(content, 'lxml')
        except Exception as e:
            raise ExtractionError(f"Failed to parse markup: {e}")

        name_pattern = re.compile(r'^\s*' + re.escape(self.attribute) + r'\s*$', re.IGNORECASE)
        element = soup.find(self.tag, attrs={'name': name_pattern})
        if element is None:
            return ''

        value = element.get(self.value_attribute, '')
        # Multi-valued attributes come back as lists
        if isinstance(value, list):
            value = ' '.join(value)
        return value
