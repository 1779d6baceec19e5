"""Turn career page markup into job candidates."""

from __future__ import annotations

import json
from typing import Any, Iterator, Mapping, Protocol, Sequence

import structlog
from selectolax.parser import HTMLParser, Node

from ..config import ExtractionConfig
from ..errors import ExtractionError
from ..models import Candidate

_SKIP_PREFIXES = ("javascript:", "#", "mailto:", "tel:")
_NAV_LABELS = {
    "apply",
    "apply now",
    "careers",
    "jobs",
    "all jobs",
    "view all jobs",
    "open positions",
    "open roles",
    "join us",
}
_CONTAINER_TAGS = {"li", "tr", "article", "div", "section", "dd"}


class Extractor(Protocol):
    """Extraction capability consumed by the scanner."""

    def extract(
        self, source_name: str, raw_content: str
    ) -> Sequence[Candidate | Mapping[str, Any]]: ...


class HtmlExtractor:
    """Extract postings from schema.org JSON-LD, falling back to job-like links."""

    def __init__(self, config: ExtractionConfig | None = None, max_chars: int = 150_000) -> None:
        self.config = config or ExtractionConfig()
        self.max_chars = max_chars
        self.logger = structlog.get_logger("job_sentinel.extractor")

    def extract(self, source_name: str, raw_content: str) -> list[Candidate]:
        if not isinstance(raw_content, str):
            raise ExtractionError(f"Expected markup text for {source_name}, got {type(raw_content).__name__}")
        html = raw_content[: self.max_chars]
        parser = HTMLParser(html)
        if parser.root is None:
            raise ExtractionError(f"Failed to parse jobs from the page content of {source_name}.")

        structured = list(self._from_json_ld(parser))
        if structured:
            self.logger.debug("json_ld_postings", source=source_name, count=len(structured))
            return structured
        return list(self._from_links(parser))

    # ------------------------------------------------------------------
    def _from_json_ld(self, parser: HTMLParser) -> Iterator[Candidate]:
        for node in parser.css('script[type="application/ld+json"]'):
            text = node.text(deep=True, strip=True)
            if not text:
                continue
            try:
                payload = json.loads(text)
            except json.JSONDecodeError:
                self.logger.debug("json_ld_invalid", snippet=text[:80])
                continue
            for posting in _walk_postings(payload):
                title = posting.get("title") or posting.get("name")
                url = posting.get("url")
                if not isinstance(title, str) or not isinstance(url, str):
                    continue
                if not title.strip() or not url.strip():
                    continue
                date = posting.get("datePosted")
                yield Candidate(
                    title=title,
                    url=url,
                    date=date if isinstance(date, str) else None,
                    location=_format_location(posting.get("jobLocation")),
                )

    def _from_links(self, parser: HTMLParser) -> Iterator[Candidate]:
        keywords = self.config.link_keywords
        seen: set[tuple[str, str]] = set()
        for node in parser.css(self.config.item_selector):
            href = (node.attributes.get("href") or "").strip()
            if not href or href.startswith(_SKIP_PREFIXES):
                continue
            title = node.text(separator=" ", strip=True)
            if not title or title.lower() in _NAV_LABELS:
                continue
            haystack = f"{title} {href}".lower()
            if keywords and not any(keyword in haystack for keyword in keywords):
                continue
            key = (title, href)
            if key in seen:
                continue
            seen.add(key)
            container = _container_of(node)
            yield Candidate(
                title=title,
                url=href,
                date=_find_date(container),
                location=_find_text(container, '[class*="location"]'),
            )


def _walk_postings(payload: Any) -> Iterator[Mapping[str, Any]]:
    if isinstance(payload, list):
        for item in payload:
            yield from _walk_postings(item)
        return
    if not isinstance(payload, dict):
        return
    kind = payload.get("@type")
    kinds = kind if isinstance(kind, list) else [kind]
    if "JobPosting" in kinds:
        yield payload
    if "@graph" in payload:
        yield from _walk_postings(payload["@graph"])
    if "itemListElement" in payload:
        for element in payload["itemListElement"] or []:
            if isinstance(element, dict):
                yield from _walk_postings(element.get("item", element))


def _format_location(value: Any) -> str | None:
    if isinstance(value, list):
        parts = [_format_location(item) for item in value]
        joined = "; ".join(part for part in parts if part)
        return joined or None
    if isinstance(value, str):
        return value.strip() or None
    if not isinstance(value, dict):
        return None
    address = value.get("address", value)
    if isinstance(address, str):
        return address.strip() or None
    if not isinstance(address, dict):
        return None
    country = address.get("addressCountry")
    if isinstance(country, dict):
        country = country.get("name")
    parts = [address.get("addressLocality"), address.get("addressRegion"), country]
    joined = ", ".join(str(part).strip() for part in parts if part)
    return joined or None


def _container_of(node: Node) -> Node | None:
    parent = node.parent
    while parent is not None and parent.tag not in _CONTAINER_TAGS:
        if parent.tag in ("body", "html"):
            return None
        parent = parent.parent
    return parent


def _find_text(container: Node | None, selector: str) -> str | None:
    if container is None:
        return None
    found = container.css_first(selector)
    if found is None:
        return None
    return found.text(separator=" ", strip=True) or None


def _find_date(container: Node | None) -> str | None:
    if container is None:
        return None
    node = container.css_first("time")
    if node is not None:
        return node.attributes.get("datetime") or node.text(strip=True) or None
    return _find_text(container, '[class*="date"]')


__all__ = ["Extractor", "HtmlExtractor"]
