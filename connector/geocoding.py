"""Geocoding client utilities.

This module wraps a Nominatim-compatible search endpoint. The client manages
HTTP session handling with retries, bounded timeouts, and structured error
reporting; callers decide how to degrade when a lookup fails.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

__all__ = ["Coordinate", "GeocodingError", "NominatimClient"]


logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = os.getenv("GEOCODER_BASE_URL", "https://nominatim.openstreetmap.org")
DEFAULT_COUNTRY_CODES = os.getenv("GEOCODER_COUNTRY_CODES", "in")
DEFAULT_COUNTRY_NAME = os.getenv("GEOCODER_COUNTRY_NAME", "India")
DEFAULT_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "practitioner-assignment/1.0")
DEFAULT_TIMEOUT_SECONDS = float(os.getenv("GEOCODER_TIMEOUT_SECONDS", "10"))
DEFAULT_MAX_RETRIES = int(os.getenv("GEOCODER_MAX_RETRIES", "2"))
DEFAULT_BACKOFF_FACTOR = float(os.getenv("GEOCODER_BACKOFF_FACTOR", "0.5"))


class GeocodingError(RuntimeError):
    """Raised when the geocoding service cannot produce a usable answer."""


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


class NominatimClient:
    """Client for a Nominatim ``/search`` endpoint constrained to one country."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        country_codes: str = DEFAULT_COUNTRY_CODES,
        country_name: Optional[str] = DEFAULT_COUNTRY_NAME,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must be provided")
        if not user_agent:
            raise ValueError("user_agent must be provided")

        self.base_url = base_url.rstrip("/")
        self.country_codes = country_codes
        self.country_name = country_name or ""
        self.user_agent = user_agent
        self.timeout = timeout
        self._session = session or self._build_session(
            max_retries=max_retries, backoff_factor=backoff_factor
        )

    def _build_session(self, *, max_retries: int, backoff_factor: float) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            read=max_retries,
            connect=max_retries,
            status=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=("GET",),
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def search(self, address: str) -> Optional[Coordinate]:
        """Return the first match for ``address`` or ``None`` when nothing matched."""

        if not address or not address.strip():
            raise ValueError("address must be provided")

        query = address.strip()
        if self.country_name and not query.lower().endswith(self.country_name.lower()):
            query = f"{query}, {self.country_name}"

        params: Dict[str, Any] = {"q": query, "format": "json", "limit": 1}
        if self.country_codes:
            params["countrycodes"] = self.country_codes

        response = self._request("search", params=params)
        try:
            payload = response.json()
        except ValueError as exc:  # response.json() failure
            logger.error("Invalid JSON received from geocoder for %r", address)
            raise GeocodingError("Geocoder returned invalid JSON") from exc

        if not isinstance(payload, list) or not payload:
            logger.debug("Geocoder found no match for %r", address)
            return None

        first = payload[0]
        try:
            return Coordinate(latitude=float(first["lat"]), longitude=float(first["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Geocoder result missing coordinates: %s", first)
            raise GeocodingError("Geocoder result did not include coordinates") from exc

    def _request(self, path: str, *, params: Dict[str, Any]) -> Response:
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}

        try:
            response = self._session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:  # network-level errors, timeouts included
            logger.error("Request to geocoder failed: %s", exc)
            raise GeocodingError("Failed to execute request to geocoder") from exc

        if response.status_code != 200:
            self._log_error_response(response)
            raise GeocodingError(f"Geocoder responded with unexpected status {response.status_code}")
        return response

    @staticmethod
    def _log_error_response(response: Response) -> None:
        logger.error(
            "Geocoder error response: status=%s body=%s", response.status_code, response.text[:512]
        )
