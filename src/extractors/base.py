"""
Base class for metadata tag extractors.
"""

from abc import ABC, abstractmethod


class ExtractionError(Exception):
    """Malformed markup found while extracting a tag attribute."""
    pass


class BaseExtractor(ABC):
    """Base class for all tag extractors."""

    def __init__(self, tag: str = 'meta', attribute: str = 'keywords', value_attribute: str = 'content'):
        """
        Args:
            tag: Tag name to look for (e.g. 'meta')
            attribute: Value of the tag's `name` attribute that marks a match (e.g. 'keywords')
            value_attribute: Attribute whose value is extracted (e.g. 'content')
        """
        self.tag = tag.lower()
        self.attribute = attribute.lower()
        self.value_attribute = value_attribute.lower()

    @abstractmethod
    def extract_strict(self, content: str) -> str:
        """
        Extract the value of the first matching tag.

        Args:
            content: Raw record text

        Returns:
            Attribute value, or empty string if no tag matches

        Raises:
            ExtractionError: If the matching tag is malformed
        """
        pass

    def extract(self, content) -> str:
        """
        Best-effort extraction: never raises, malformed markup yields ''.

        Args:
            content: Raw record text (str or bytes)

        Returns:
            Attribute value or empty string
        """
        if content is None:
            return ''
        if isinstance(content, bytes):
            content = content.decode('utf-8', errors='replace')
        elif not isinstance(content, str):
            content = str(content)

        try:
            return self.extract_strict(content)
        except ExtractionError:
            return ''

    def __call__(self, content) -> str:
        return self.extract(content)
