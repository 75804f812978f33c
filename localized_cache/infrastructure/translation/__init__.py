"""Translation provider adapters."""

from .deepl_provider import DeepLTranslationProvider, NullTranslationProvider

__all__ = ["DeepLTranslationProvider", "NullTranslationProvider"]
