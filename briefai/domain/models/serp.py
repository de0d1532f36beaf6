"""Domain models for search engine result pages (SERP)."""

from dataclasses import dataclass, asdict
from typing import Any, Dict
from urllib.parse import urlparse

from .common import Url


def domain_of(url: str) -> str:
    """Hostname of ``url`` with a leading ``www.`` removed."""
    host = urlparse(url).netloc or url
    return host[4:] if host.startswith("www.") else host


@dataclass(frozen=True)
class Competitor:
    """One organic search result, i.e. a page competing for the keyword."""
    url: Url
    title: str
    domain: str
    snippet: str = ""
    position: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
