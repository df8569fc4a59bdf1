"""Parsing and validation of the free-text fields admins type into commands."""

from typing import Optional
from urllib.parse import urlparse

from errors import InvalidInput, InvalidUrl


def split_csv(raw: Optional[str]) -> list[str]:
    """Split comma-separated text into trimmed, non-empty parts (order kept)."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def normalize_csv(raw: Optional[str]) -> list[str]:
    """Comma-separated text -> deduplicated, trimmed, lower-cased values.

    First occurrence wins, so the result is stable for a given input.
    """
    seen: dict[str, None] = {}
    for part in split_csv(raw):
        seen.setdefault(part.lower(), None)
    return list(seen)


def validate_url(url: str, add_scheme: bool = False) -> str:
    candidate = url.strip()
    if not candidate:
        raise InvalidUrl(url, "empty")
    if add_scheme and not candidate.startswith(("http://", "https://")):
        candidate = f"https://{candidate}"
    parsed = urlparse(candidate)
    if parsed.scheme not in ("http", "https"):
        raise InvalidUrl(url, "expected an http or https URL")
    if not parsed.netloc or " " in parsed.netloc:
        raise InvalidUrl(url, "missing host")
    return candidate


def parse_quality_link(segment: str) -> tuple[str, str]:
    """Split ``label:url`` on the first colon only; URLs keep their own colons."""
    if ":" not in segment:
        raise InvalidInput(f'Invalid format: "{segment.strip()}". Use "quality:link".')
    label, url = segment.split(":", 1)
    label, url = label.strip(), url.strip()
    if not label:
        raise InvalidInput(f'Missing quality label in "{segment.strip()}"')
    if not url:
        raise InvalidInput(f'Missing link for quality "{label}" in "{segment.strip()}"')
    return label, url


def parse_watch_links(raw: Optional[str], add_scheme: bool = False) -> dict[str, str]:
    """Parse ``1080p:link1,4k:link2`` into a quality -> URL mapping."""
    segments = split_csv(raw)
    if not segments:
        raise InvalidInput("You must provide at least one watch link.")

    links: dict[str, str] = {}
    for segment in segments:
        label, url = parse_quality_link(segment)
        links[label] = validate_url(url, add_scheme=add_scheme)
    return links


def parse_languages(raw: Optional[str], allowed: Optional[list[str]] = None) -> list[str]:
    languages = normalize_csv(raw)
    if not languages:
        raise InvalidInput("You must provide at least one valid language.")
    check_languages(languages, allowed)
    return languages


def check_languages(languages: list[str], allowed: Optional[list[str]]) -> None:
    if allowed is None:
        return
    invalid = [lang for lang in languages if lang not in allowed]
    if invalid:
        raise InvalidInput(
            f"Invalid language(s): {', '.join(invalid)}. "
            f"Available languages are: {', '.join(allowed)}"
        )


def parse_urls(raw: Optional[str]) -> list[str]:
    urls: list[str] = []
    for part in split_csv(raw):
        url = validate_url(part)
        if url not in urls:
            urls.append(url)
    return urls
