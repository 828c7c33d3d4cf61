from enum import Enum
from typing import Tuple


class RelationKind(str, Enum):
    HAS_MANY = "hasMany"
    BELONGS_TO = "belongsTo"
    HAS_AND_BELONGS_TO_MANY = "hasAndBelongsToMany"
    HAS_ONE = "hasOne"
    REFERENCES_MANY = "referencesMany"
    EMBEDS_ONE = "embedsOne"
    EMBEDS_MANY = "embedsMany"

    @property
    def is_plural(self) -> bool:
        return self in PLURAL_RELATION_KINDS


PLURAL_RELATION_KINDS = frozenset(
    {
        RelationKind.HAS_MANY,
        RelationKind.HAS_AND_BELONGS_TO_MANY,
        RelationKind.REFERENCES_MANY,
        RelationKind.EMBEDS_MANY,
    }
)


class RelationOperation(str, Enum):
    """Remote operations backing a relation scope, keyed by the prefix the
    server uses for the synthesized instance method name."""

    GET = "__get__"
    COUNT = "__count__"
    CREATE = "__create__"
    DESTROY_BY_ID = "__destroyById__"
    EXISTS = "__exists__"
    FIND_BY_ID = "__findById__"

    def method_name(self, relation_name: str) -> str:
        return f"{self.value}{relation_name}"


# Error code the server attaches to "record not found" failures.
NOT_FOUND_CODE = "MODEL_NOT_FOUND"

# Single-record finders: a not-found error completes with a null result.
FIND_METHOD_NAMES: Tuple[str, ...] = ("findById", "findOne")

# Replication bookkeeping methods, never proxied.
EXCLUDED_METHOD_NAMES: Tuple[str, ...] = ("Change", "Checkpoint")
