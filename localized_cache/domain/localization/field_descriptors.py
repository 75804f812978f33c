"""
Field Descriptors

Declarative per-entity tables describing which fields of a canonical
record are translatable and how. One generic materializer consumes these
tables; fields that are not declared are opaque and pass through as-is.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from .value_objects import EntityType


class FieldKind(str, Enum):
    """Shape of a declared field."""

    SCALAR = "scalar"  # single free-text string
    ARRAY = "array"  # list of strings, translated element-wise
    RELATION = "relation"  # nested object or list of objects


# Name parts of embedded user references; never translated
PERSONAL_NAME_FIELDS = ("fname", "lname")


@dataclass(frozen=True)
class FieldDescriptor:
    """
    One declared field of an entity.

    Attributes:
        name: Field name in the canonical record
        kind: scalar, array or relation
        translatable: False keeps the field verbatim (e.g. user references)
        fields: Sub-field descriptors of a relation
        display_name_key: For user relations, key set on the containing
            object to the raw "fname lname" join
    """

    name: str
    kind: FieldKind
    translatable: bool = True
    fields: Tuple["FieldDescriptor", ...] = ()
    display_name_key: Optional[str] = None

    def __post_init__(self) -> None:
        if self.fields and self.kind is not FieldKind.RELATION:
            raise ValueError(f"Only relation fields declare sub-fields: {self.name}")
        if self.display_name_key and self.kind is not FieldKind.RELATION:
            raise ValueError(f"Display names come from relations: {self.name}")


@dataclass(frozen=True)
class EntityDescriptor:
    """
    Field table for one entity type.

    Attributes:
        entity_type: Entity type described
        fields: Declared fields; everything else is opaque
        hidden_fields: Removed from every view (e.g. password)
        owner_field: Field holding the owning user id
        parent_fields: Parent entity type -> field holding its id
        dependent_types: Entity types whose views embed this entity
    """

    entity_type: EntityType
    fields: Tuple[FieldDescriptor, ...]
    hidden_fields: Tuple[str, ...] = ()
    owner_field: Optional[str] = None
    parent_fields: Dict[EntityType, str] = field(default_factory=dict)
    dependent_types: Tuple[EntityType, ...] = ()

    @property
    def translatable_fields(self) -> Tuple[FieldDescriptor, ...]:
        return tuple(f for f in self.fields if f.translatable)

    def top_level_text_fields(self) -> Tuple[FieldDescriptor, ...]:
        """Translatable scalar/array fields a caller can submit directly."""
        return tuple(
            f
            for f in self.fields
            if f.translatable and f.kind in (FieldKind.SCALAR, FieldKind.ARRAY)
        )


def scalar(name: str) -> FieldDescriptor:
    return FieldDescriptor(name, FieldKind.SCALAR)


def array(name: str) -> FieldDescriptor:
    return FieldDescriptor(name, FieldKind.ARRAY)


def relation(name: str, *fields: FieldDescriptor) -> FieldDescriptor:
    return FieldDescriptor(name, FieldKind.RELATION, fields=tuple(fields))


def user_reference(name: str = "user", display_name_key: str = "userName"):
    """Embedded user reference: personal names echo untranslated."""
    return FieldDescriptor(
        name,
        FieldKind.RELATION,
        translatable=False,
        display_name_key=display_name_key,
    )


LISTING_DESCRIPTOR = EntityDescriptor(
    entity_type=EntityType.LISTING,
    fields=(
        scalar("name"),
        scalar("description"),
        array("agegroup"),
        array("location"),
        array("facilities"),
        array("operatingHours"),
        relation("selectedMainCategories", scalar("name")),
        relation("selectedSubCategories", scalar("name")),
        relation("selectedSpecificItems", scalar("name")),
        relation(
            "reviews",
            scalar("comment"),
            scalar("status"),
            user_reference(),
        ),
        relation(
            "bookings",
            scalar("additionalNote"),
            scalar("ageGroup"),
            scalar("status"),
            scalar("booking_hours"),
            scalar("paymentMethod"),
            user_reference(),
        ),
    ),
    dependent_types=(EntityType.BOOKING, EntityType.REVIEW),
)

REVIEW_DESCRIPTOR = EntityDescriptor(
    entity_type=EntityType.REVIEW,
    fields=(
        scalar("comment"),
        scalar("status"),
        relation("listing", scalar("name")),
        user_reference(),
    ),
    owner_field="userId",
    parent_fields={
        EntityType.LISTING: "listingId",
        EntityType.BOOKING: "bookingId",
    },
)

BOOKING_DESCRIPTOR = EntityDescriptor(
    entity_type=EntityType.BOOKING,
    fields=(
        scalar("additionalNote"),
        scalar("status"),
        relation("listing", scalar("name"), scalar("description")),
        relation("review", scalar("comment")),
        user_reference(),
    ),
    owner_field="userId",
    parent_fields={EntityType.LISTING: "listingId"},
)

USER_DESCRIPTOR = EntityDescriptor(
    entity_type=EntityType.USER,
    fields=(scalar("highestRewardCategory"),),
    hidden_fields=("password",),
)

CATEGORY_DESCRIPTOR = EntityDescriptor(
    entity_type=EntityType.CATEGORY,
    fields=(
        scalar("name"),
        relation(
            "subCategories",
            scalar("name"),
            relation("specificItems", scalar("name")),
        ),
    ),
    dependent_types=(EntityType.LISTING,),
)

NOTIFICATION_DESCRIPTOR = EntityDescriptor(
    entity_type=EntityType.NOTIFICATION,
    fields=(scalar("title"), scalar("message")),
    owner_field="userId",
)

DESCRIPTORS: Dict[EntityType, EntityDescriptor] = {
    d.entity_type: d
    for d in (
        LISTING_DESCRIPTOR,
        REVIEW_DESCRIPTOR,
        BOOKING_DESCRIPTOR,
        USER_DESCRIPTOR,
        CATEGORY_DESCRIPTOR,
        NOTIFICATION_DESCRIPTOR,
    )
}


def descriptor_for(entity_type: EntityType) -> EntityDescriptor:
    """Look up the field table of an entity type."""
    try:
        return DESCRIPTORS[entity_type]
    except KeyError:
        raise ValueError(f"No field descriptor for entity type: {entity_type}")
