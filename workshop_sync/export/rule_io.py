"""HTTP client for the Rule.io subscriber API."""
from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from workshop_sync.core.config import Settings
from workshop_sync.core.errors import ConfigurationError
from workshop_sync.core.models import SubscriberRequest, SubscriberResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class RuleIoClient:
    """Posts subscriber batches; failures come back as unsuccessful responses."""

    def __init__(
        self,
        base_url: str,
        token: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(
        cls, settings: Settings, session: Optional[requests.Session] = None
    ) -> "RuleIoClient":
        if not settings.rule_io_base_url:
            raise ConfigurationError("RULE_IO_BASE_URL is not configured")
        if not settings.rule_io_token:
            raise ConfigurationError("RULE_IO_TOKEN is not configured")
        return cls(settings.rule_io_base_url, settings.rule_io_token, session=session)

    def create_subscribers(self, request: SubscriberRequest) -> SubscriberResponse:
        payload = request.to_payload()
        logger.info("Creating %d subscribers in Rule.io", len(request.subscribers))
        logger.debug("Rule.io request payload: %s", payload)

        try:
            response = self.session.post(
                f"{self.base_url}/subscribers",
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            logger.error("Rule.io request timed out: %s", exc)
            return SubscriberResponse(success=False, message="Request timeout")
        except requests.RequestException as exc:
            logger.exception("HTTP request to Rule.io failed")
            return SubscriberResponse(success=False, message=f"HTTP error: {exc}")

        logger.info("Rule.io API response: %s", response.status_code)
        if not response.ok:
            logger.error("Rule.io API error: %s - %s", response.status_code, response.text)
            return SubscriberResponse(
                success=False, message=f"API error: {response.status_code} - {response.text}"
            )

        return self._parse(response)

    @staticmethod
    def _parse(response: requests.Response) -> SubscriberResponse:
        try:
            body: Any = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            return SubscriberResponse(success=True, message="Subscribers created successfully")

        results = body.get("results") or body.get("subscribers") or []
        return SubscriberResponse(
            success=bool(body.get("success", True)),
            message=body.get("message") or "Subscribers created successfully",
            results=[item for item in results if isinstance(item, dict)],
        )
