import pytest

from extractors import (
    ExtractionError, MetaTagExtractor, SoupMetaTagExtractor, load_extractor, parse_attributes
)


@pytest.fixture
def extractor():
    return MetaTagExtractor()


def test_extracts_double_quoted_content(extractor):
    record = '<head><meta name="keywords" content="math, algebra"></head>'
    assert extractor.extract(record) == 'math, algebra'


def test_extracts_single_quoted_and_reordered_attributes(extractor):
    record = "<meta content='python, data' name='keywords' />"
    assert extractor.extract(record) == 'python, data'


def test_extracts_unquoted_value(extractor):
    assert extractor.extract('<meta name=keywords content=solo>') == 'solo'


def test_tag_and_attribute_names_are_case_insensitive(extractor):
    record = '<META NAME="Keywords" CONTENT="Mixed, Case">'
    assert extractor.extract(record) == 'Mixed, Case'


def test_value_may_contain_angle_brackets(extractor):
    record = '<meta name="keywords" content="a > b, c">'
    assert extractor.extract(record) == 'a > b, c'


def test_only_first_matching_tag_is_used(extractor):
    record = (
        '<meta name="keywords" content="first">'
        '<meta name="keywords" content="second">'
    )
    assert extractor.extract(record) == 'first'


def test_other_meta_tags_are_skipped(extractor):
    record = (
        '<meta name="description" content="not this">'
        '<meta name="keywords" content="this one">'
    )
    assert extractor.extract(record) == 'this one'


def test_first_match_without_content_yields_empty(extractor):
    record = '<meta name="keywords"><meta name="keywords" content="later">'
    assert extractor.extract(record) == ''


def test_missing_tag_yields_empty(extractor):
    assert extractor.extract('<p>nothing to see</p>') == ''
    assert extractor.extract('') == ''
    assert extractor.extract(None) == ''


def test_similar_tag_names_are_not_matched(extractor):
    assert extractor.extract('<metadata name="keywords" content="nope">') == ''


def test_bytes_are_decoded(extractor):
    record = '<meta name="keywords" content="café, niño">'.encode('utf-8')
    assert extractor.extract(record) == 'café, niño'


def test_unclosed_target_tag_raises_in_strict_mode(extractor):
    record = '<meta name="keywords" content="never closed'
    with pytest.raises(ExtractionError):
        extractor.extract_strict(record)


def test_malformed_markup_yields_empty_in_best_effort_mode(extractor):
    assert extractor.extract('<meta name="keywords" content="never closed') == ''
    assert extractor('<meta name="keywords" content="never closed') == ''


def test_unclosed_unrelated_tag_is_ignored(extractor):
    assert extractor.extract('<meta name="robots" content="x') == ''


def test_malformed_unrelated_tag_does_not_hide_later_match(extractor):
    record = '<meta property="og:title" content= ><meta name="keywords" content="math, algebra">'
    assert extractor.extract_strict(record) == 'math, algebra'
    assert extractor.extract('<meta charset= ><meta name="keywords" content="a">') == 'a'


def test_malformed_target_tag_still_raises_in_strict_mode(extractor):
    with pytest.raises(ExtractionError):
        extractor.extract_strict('<meta name="keywords" content= >')


def test_custom_tag_and_attribute():
    extractor = MetaTagExtractor(tag='meta', attribute='news_keywords')
    record = '<meta name="keywords" content="a"><meta name="news_keywords" content="b, c">'
    assert extractor.extract(record) == 'b, c'


def test_parse_attributes_first_occurrence_wins():
    attrs = parse_attributes(' name="keywords" content="a" content="b" ')
    assert attrs == {'name': 'keywords', 'content': 'a'}


def test_parse_attributes_boolean_attribute():
    assert parse_attributes(' async defer') == {'async': '', 'defer': ''}


def test_soup_extractor_reads_whole_document():
    document = """
    <html>
      <head>
        <title>Example</title>
        <meta name="description" content="ignored">
        <meta name="keywords" content="math, algebra">
      </head>
      <body><p>keywords: not a tag</p></body>
    </html>
    """
    assert SoupMetaTagExtractor().extract(document) == 'math, algebra'


def test_soup_extractor_without_tag():
    assert SoupMetaTagExtractor().extract('<html><body>plain</body></html>') == ''


def test_load_extractor():
    assert isinstance(load_extractor('regex'), MetaTagExtractor)
    assert isinstance(load_extractor('soup'), SoupMetaTagExtractor)
    with pytest.raises(ValueError):
        load_extractor('nope')
