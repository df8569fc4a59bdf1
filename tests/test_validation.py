import pytest

from errors import InvalidInput, InvalidUrl
from validation import (
    normalize_csv,
    parse_languages,
    parse_quality_link,
    parse_urls,
    parse_watch_links,
    split_csv,
    validate_url,
)


def test_split_csv_trims_and_drops_empty_parts():
    assert split_csv(" a, b ,,c ") == ["a", "b", "c"]
    assert split_csv("") == []
    assert split_csv(None) == []


def test_normalize_csv_dedupes_case_insensitively():
    assert normalize_csv("Hindi, english, HINDI, Tamil") == ["hindi", "english", "tamil"]


def test_quality_link_splits_on_first_colon_only():
    assert parse_quality_link("1080p:https://x.com/a:b") == ("1080p", "https://x.com/a:b")


@pytest.mark.parametrize("segment", ["1080p", ":https://x.com", "1080p:  "])
def test_quality_link_rejects_malformed_segment(segment):
    with pytest.raises(InvalidInput):
        parse_quality_link(segment)


def test_parse_watch_links():
    links = parse_watch_links("1080p:https://a.com/1, 4k:https://b.com/2")
    assert links == {"1080p": "https://a.com/1", "4k": "https://b.com/2"}


def test_parse_watch_links_requires_at_least_one():
    with pytest.raises(InvalidInput):
        parse_watch_links(" , ")


def test_parse_watch_links_names_the_bad_url():
    with pytest.raises(InvalidUrl) as exc_info:
        parse_watch_links("1080p:https://a.com/1,720p:not a url")
    assert exc_info.value.fragment == "not a url"


def test_validate_url_adds_scheme_when_asked():
    assert validate_url("example.com/x", add_scheme=True) == "https://example.com/x"
    with pytest.raises(InvalidUrl):
        validate_url("example.com/x")


@pytest.mark.parametrize("url", ["", "ftp://example.com", "https://", "javascript:alert(1)"])
def test_validate_url_rejects(url):
    with pytest.raises(InvalidUrl):
        validate_url(url)


def test_parse_languages_checks_allowed_list():
    assert parse_languages("English, hindi", ["hindi", "english"]) == ["english", "hindi"]
    with pytest.raises(InvalidInput, match="klingon"):
        parse_languages("english, klingon", ["hindi", "english"])


def test_parse_languages_rejects_empty():
    with pytest.raises(InvalidInput):
        parse_languages(" ,")


def test_parse_urls_dedupes():
    assert parse_urls("https://a.com/1.png, https://a.com/1.png, https://a.com/2.png") == [
        "https://a.com/1.png",
        "https://a.com/2.png",
    ]
    assert parse_urls(None) == []
