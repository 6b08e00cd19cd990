from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Protocol

import requests

from .constants import DEFAULT_FETCH_TIMEOUT_S
from .errors import FetchError

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    def fetch(self, resource_name: str) -> bytes: ...


@dataclass(frozen=True, slots=True)
class HttpFetcher:
    """Fetches ``<scheme>://<resource_name>`` with a plain GET."""

    scheme: str = "https"
    timeout_s: float = DEFAULT_FETCH_TIMEOUT_S

    def url_for(self, resource_name: str) -> str:
        if "://" in resource_name:
            return resource_name
        return f"{self.scheme}://{resource_name}"

    def fetch(self, resource_name: str) -> bytes:
        url = self.url_for(resource_name)
        logger.debug("GET %s", url)
        try:
            response = requests.get(url, timeout=self.timeout_s)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(resource_name, str(exc)) from exc
        return response.content


@dataclass(frozen=True, slots=True)
class StaticFetcher:
    """In-memory origin, used for loopback runs and tests."""

    resources: Mapping[str, bytes] = field(default_factory=dict)

    def fetch(self, resource_name: str) -> bytes:
        try:
            return self.resources[resource_name]
        except KeyError:
            raise FetchError(resource_name, "no such resource") from None
