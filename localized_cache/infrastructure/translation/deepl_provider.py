"""
DeepL Translation Provider

httpx client for the DeepL REST API implementing the TranslationProvider
port. Transient failures (timeouts, 429, 5xx) are retried with
exponential backoff; anything else surfaces as TranslationUnavailableError.
"""

import logging
from typing import Callable, Dict, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...core.config import Settings
from ...core.exceptions import TranslationUnavailableError
from ...domain.localization.ports import TranslationProvider

logger = logging.getLogger(__name__)

# DeepL distinguishes regional English only as a target language
TARGET_LANGUAGE_CODES: Dict[str, str] = {"en": "EN-US", "pt": "PT-PT"}
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504, 529}


class TransientTranslationError(TranslationUnavailableError):
    """Failure worth retrying."""


def deepl_source_code(lang: str) -> str:
    return lang.split("-")[0].upper()


def deepl_target_code(lang: str) -> str:
    return TARGET_LANGUAGE_CODES.get(lang.lower(), lang.upper())


def with_retries(max_attempts: int, wait_multiplier: float):
    """Retry decorator for transient provider failures."""
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=wait_multiplier, max=10),
        retry=retry_if_exception_type(TransientTranslationError),
        reraise=True,
    )


class DeepLTranslationProvider(TranslationProvider):
    """
    DeepL-backed translation provider.

    The HTTP client is opened by initialize() and closed by close(); an
    injected client (e.g. with a mock transport) is used as given.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
        retry_wait_multiplier: float = 0.5,
    ):
        self.settings = settings
        self.api_url = settings.DEEPL_API_URL
        self._auth_key = settings.DEEPL_AUTH_KEY
        self._enabled = settings.translation_enabled
        self._client = client
        self._owns_client = client is None
        self._post_with_retries: Callable = with_retries(
            settings.TRANSLATION_MAX_RETRIES, retry_wait_multiplier
        )(self._post)

    @property
    def enabled(self) -> bool:
        return self._enabled and self._client is not None

    async def initialize(self) -> None:
        if not self._enabled:
            logger.warning("DeepL auth key not configured; translation disabled")
            return
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.TRANSLATION_TIMEOUT)
            )
            self._owns_client = True
        logger.info("DeepL translation provider initialized")

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def translate(self, text: str, target_lang: str, source_lang: str) -> str:
        """
        Translate one string.

        Args:
            text: Non-empty source text
            target_lang: Target language code, e.g. "ar"
            source_lang: Source language code, e.g. "en"

        Returns:
            Translated text

        Raises:
            TranslationUnavailableError: Provider disabled or call failed
        """
        if not self.enabled:
            raise TranslationUnavailableError("DeepL translation is disabled")
        if not isinstance(text, str) or not text.strip():
            raise ValueError("Translation input must be a non-empty string")

        payload = {
            "text": text,
            "target_lang": deepl_target_code(target_lang),
            "source_lang": deepl_source_code(source_lang),
        }
        return await self._post_with_retries(payload)

    async def _post(self, payload: Dict[str, str]) -> str:
        try:
            response = await self._client.post(
                self.api_url,
                data=payload,
                headers={"Authorization": f"DeepL-Auth-Key {self._auth_key}"},
            )
        except httpx.TimeoutException as e:
            raise TransientTranslationError(
                "DeepL request timed out", original_error=e
            )
        except httpx.TransportError as e:
            raise TransientTranslationError(
                "DeepL transport error", original_error=e
            )

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientTranslationError(
                "DeepL temporarily unavailable", status_code=response.status_code
            )
        if response.status_code != 200:
            # 403 bad key, 456 quota exceeded, 400 bad request
            raise TranslationUnavailableError(
                f"DeepL rejected request with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            translations = response.json()["translations"]
            return translations[0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise TranslationUnavailableError(
                "Malformed DeepL response", original_error=e
            )


class NullTranslationProvider(TranslationProvider):
    """Explicitly disabled provider."""

    @property
    def enabled(self) -> bool:
        return False

    async def translate(self, text: str, target_lang: str, source_lang: str) -> str:
        raise TranslationUnavailableError("No translation provider configured")
