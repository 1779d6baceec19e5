"""Engine components: fetch → extract → fingerprint → diff."""

from .extractor import Extractor, HtmlExtractor
from .fetcher import BrowserFetcher, Fetcher, HttpFetcher, build_fetcher
from .fingerprint import FINGERPRINT_VERSION, fingerprint
from .scanner import ScanResult, SourceScanner, resolve_url

__all__ = [
    "BrowserFetcher",
    "Extractor",
    "FINGERPRINT_VERSION",
    "Fetcher",
    "HtmlExtractor",
    "HttpFetcher",
    "ScanResult",
    "SourceScanner",
    "build_fetcher",
    "fingerprint",
    "resolve_url",
]
