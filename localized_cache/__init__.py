"""
Localized Cache

Localization-aware caching layer between a canonical single-language
entity store and consumers reading in a second language.
"""

__version__ = "0.1.0"
