"""
Materializer

One generic routine turning a canonical record into a localized view by
walking the entity's field-descriptor table. Each translatable string is
translated independently; a failed field keeps its source text and is
reported as degraded without affecting the others.
"""

import asyncio
import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from opentelemetry import trace

from ...domain.localization.field_descriptors import (
    PERSONAL_NAME_FIELDS,
    FieldDescriptor,
    FieldKind,
    descriptor_for,
)
from ...domain.localization.ports import TranslationProvider
from ...domain.localization.results import FieldTranslation, Materialized
from ...domain.localization.value_objects import EntityType

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# (container, key or index, source text, dotted path)
_Slot = Tuple[Any, Any, str, str]


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def display_name(user: Mapping[str, Any]) -> Optional[str]:
    """Join raw first and last name; None when both are missing."""
    parts = [str(user.get(name) or "").strip() for name in PERSONAL_NAME_FIELDS]
    joined = " ".join(part for part in parts if part)
    return joined or None


class Materializer:
    """
    Builds localized views from canonical records.

    Pure transformation: no cache access. Translation calls for one view
    run concurrently, bounded by max_concurrency.
    """

    def __init__(self, translator: TranslationProvider, max_concurrency: int = 8):
        self.translator = translator
        self._semaphore = asyncio.Semaphore(max_concurrency)

    @property
    def provider_available(self) -> bool:
        return self.translator is not None and self.translator.enabled

    async def translate_text(
        self, text: str, target_lang: str, source_lang: str, path: str = "text"
    ) -> FieldTranslation:
        """
        Translate one string, falling back to the source text.

        Never raises; a provider error is logged and returned as degraded.
        """
        if not _is_text(text) or target_lang == source_lang:
            return FieldTranslation(text)
        if not self.provider_available:
            return FieldTranslation(text, degraded=True)

        try:
            async with self._semaphore:
                translated = await self.translator.translate(
                    text, target_lang, source_lang
                )
        except Exception as e:
            logger.warning(
                f"Translation failed for field '{path}', keeping source text",
                extra={
                    "field": path,
                    "target_lang": target_lang,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            return FieldTranslation(text, degraded=True)

        if not isinstance(translated, str):
            return FieldTranslation(text, degraded=True)
        return FieldTranslation(translated)

    async def materialize(
        self,
        entity: Mapping[str, Any],
        entity_type: EntityType,
        target_lang: str,
        source_lang: str,
    ) -> Materialized:
        """
        Produce the localized view of one canonical record.

        Args:
            entity: Canonical record (not modified)
            entity_type: Selects the field-descriptor table
            target_lang: Language of the view
            source_lang: Language of the canonical record

        Returns:
            Materialized view; when the provider is unavailable the view
            carries every translatable field unchanged
        """
        descriptor = descriptor_for(entity_type)
        with tracer.start_as_current_span("materializer.materialize") as span:
            span.set_attribute("entity_type", entity_type.value)
            span.set_attribute("entity_id", str(entity.get("id")))
            span.set_attribute("target_lang", target_lang)

            view = copy.deepcopy(dict(entity))
            for hidden in descriptor.hidden_fields:
                view.pop(hidden, None)

            slots: List[_Slot] = []
            self._collect(view, descriptor.fields, "", slots)

            result = await self._translate_slots(
                view, slots, entity_type, target_lang, source_lang
            )
            span.set_attribute("degraded_fields", len(result.degraded_fields))
            return result

    async def canonicalize(
        self,
        payload: Mapping[str, Any],
        entity_type: EntityType,
        input_lang: str,
        source_lang: str,
    ) -> Materialized:
        """
        Translate an inbound write payload into the canonical language.

        Only top-level translatable scalar and array fields are touched;
        the rest of the payload is copied as given.
        """
        descriptor = descriptor_for(entity_type)
        payload_copy = copy.deepcopy(dict(payload))
        slots: List[_Slot] = []
        self._collect(payload_copy, descriptor.top_level_text_fields(), "", slots)
        return await self._translate_slots(
            payload_copy, slots, entity_type, source_lang, input_lang
        )

    def _collect(
        self,
        obj: Dict[str, Any],
        fields: Sequence[FieldDescriptor],
        prefix: str,
        slots: List[_Slot],
    ) -> None:
        for fd in fields:
            if fd.name not in obj:
                continue
            value = obj[fd.name]
            path = f"{prefix}{fd.name}"

            if fd.kind is FieldKind.SCALAR:
                if fd.translatable and _is_text(value):
                    slots.append((obj, fd.name, value, path))

            elif fd.kind is FieldKind.ARRAY:
                if fd.translatable and isinstance(value, list):
                    for index, item in enumerate(value):
                        if _is_text(item):
                            slots.append((value, index, item, f"{path}[{index}]"))

            elif fd.kind is FieldKind.RELATION:
                if fd.display_name_key and isinstance(value, dict):
                    name = display_name(value)
                    if name is not None:
                        obj[fd.display_name_key] = name
                if not fd.translatable:
                    continue
                if isinstance(value, dict):
                    self._collect(value, fd.fields, f"{path}.", slots)
                elif isinstance(value, list):
                    for index, child in enumerate(value):
                        if isinstance(child, dict):
                            self._collect(child, fd.fields, f"{path}[{index}].", slots)

    async def _translate_slots(
        self,
        view: Dict[str, Any],
        slots: List[_Slot],
        entity_type: EntityType,
        target_lang: str,
        source_lang: str,
    ) -> Materialized:
        if not slots or target_lang == source_lang:
            return Materialized(view)

        if not self.provider_available:
            logger.warning(
                "Translation provider unavailable; serving source-language view",
                extra={
                    "entity_type": entity_type.value,
                    "entity_id": view.get("id"),
                    "fields": len(slots),
                },
            )
            return Materialized(view, provider_available=False)

        translations = await asyncio.gather(
            *(
                self.translate_text(text, target_lang, source_lang, path)
                for _, _, text, path in slots
            )
        )

        degraded: List[str] = []
        for (container, key, _, path), translation in zip(slots, translations):
            container[key] = translation.value
            if translation.degraded:
                degraded.append(path)

        if degraded:
            logger.warning(
                f"Materialized {entity_type.value} with {len(degraded)} degraded field(s)",
                extra={
                    "entity_type": entity_type.value,
                    "entity_id": view.get("id"),
                    "degraded_fields": degraded,
                },
            )
        return Materialized(view, degraded_fields=tuple(degraded))
