"""Cloudflare Turnstile verification for code requests."""

from typing import Callable, Optional

import httpx

from contentgate.app.core.logging import get_logger

logger = get_logger(__name__)


class CaptchaVerifier:
    """Validates Turnstile tokens.

    Without a secret the check is disabled and every request passes. With a
    secret, a missing token or any verification failure (network error,
    malformed reply) fails the check.
    """

    def __init__(
        self,
        secret_key: str,
        verify_url: str,
        client_factory: Callable[[], httpx.AsyncClient],
    ) -> None:
        self._secret = secret_key
        self._verify_url = verify_url
        self._client_factory = client_factory

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    async def validate(self, token: Optional[str], remote_ip: Optional[str] = None) -> bool:
        if not self.enabled:
            return True
        if not token:
            return False

        try:
            response = await self._client_factory().post(
                self._verify_url,
                data={
                    "secret": self._secret,
                    "response": token,
                    "remoteip": remote_ip or "",
                },
            )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Captcha verification failed: {e}")
            return False

        return bool(isinstance(payload, dict) and payload.get("success"))
