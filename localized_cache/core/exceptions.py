"""
Localization Cache Exceptions

Typed error taxonomy for the localization cache. Cache and translation
errors are raised inside their adapters and converted into typed results
at the adapter boundary; only WriteFailureError reaches callers.
"""

from typing import Any, Dict, Optional


class LocalizationError(Exception):
    """Base exception for localization cache errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        if original_error is not None:
            self.details.setdefault("original_error", str(original_error))
            self.details.setdefault(
                "original_error_type", type(original_error).__name__
            )
        super().__init__(self.message)
        # Preserve exception context for debugging (exception chaining)
        if original_error is not None:
            self.__cause__ = original_error


class CacheUnavailableError(LocalizationError):
    """Raised when the cache store cannot serve an operation."""

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        message: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        details: Dict[str, Any] = {"operation": operation}
        if key:
            details["key"] = key
        super().__init__(
            message=message or f"Cache store unavailable for '{operation}'",
            error_code="CACHE_UNAVAILABLE",
            details=details,
            original_error=original_error,
        )


class CircuitOpenError(CacheUnavailableError):
    """Raised when the cache store circuit breaker rejects a call."""

    def __init__(self, operation: str = "call"):
        super().__init__(
            operation=operation,
            message="Cache store circuit breaker is open - service unavailable",
        )
        self.error_code = "CACHE_CIRCUIT_OPEN"


class TranslationUnavailableError(LocalizationError):
    """Raised when the translation provider is disabled or a call failed."""

    def __init__(
        self,
        message: str = "Translation provider unavailable",
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ):
        details: Dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=message,
            error_code="TRANSLATION_UNAVAILABLE",
            details=details,
            original_error=original_error,
        )


class WriteFailureError(LocalizationError):
    """Raised when the canonical mutation itself failed."""

    def __init__(
        self,
        operation: str,
        entity_type: str,
        entity_id: Optional[Any] = None,
        original_error: Optional[BaseException] = None,
    ):
        details: Dict[str, Any] = {"operation": operation, "entity_type": entity_type}
        if entity_id is not None:
            details["entity_id"] = entity_id
        super().__init__(
            message=f"Failed to {operation} {entity_type}",
            error_code="WRITE_FAILURE",
            details=details,
            original_error=original_error,
        )


class UnsupportedLanguageError(LocalizationError, ValueError):
    """Raised when a read asks for a language that is neither source nor target."""

    def __init__(self, language: str, supported: tuple):
        super().__init__(
            message=f"Unsupported language: {language}",
            error_code="UNSUPPORTED_LANGUAGE",
            details={"language": language, "supported": list(supported)},
        )
