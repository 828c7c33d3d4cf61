"""
Relation accessors for remote models.

Reading a relation attribute on an instance yields a ``RelationScope``. Called
with no arguments it serves eagerly loaded data from the instance's relation
cache; otherwise it goes to the server through the relation's proxied
``__get__<name>`` method. The scope also exposes the remote sub-operations
``count``, ``create``, ``deleteById``/``destroyById``, ``exists`` and
``findById``.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from remotezero.core.classes import MethodDescriptor, ModelDescriptor, RelationDescriptor
from remotezero.core.config import ModelEntry, Registry
from remotezero.core.exceptions import ConfigError, UnsupportedRelationError
from remotezero.core.types import RelationKind, RelationOperation

logger = logging.getLogger(__name__)


class RelationAccessor:
    """Per-model, per-relation data shared by every scope built for it."""

    def __init__(
        self,
        descriptor: RelationDescriptor,
        operations: Dict[RelationOperation, Callable],
        registry: Registry,
    ):
        self.descriptor = descriptor
        self.operations = operations
        self._registry = registry

    @property
    def name(self) -> str:
        return self.descriptor.name

    def target_model(self) -> type:
        return self._registry.resolve_model(self.descriptor.model_to)

    def materialize(self, cached: Any) -> Any:
        target = self.target_model()
        if isinstance(cached, list):
            return [target(data) for data in cached]
        return target(cached)

    def scope_for(self, instance: Any) -> "RelationScope":
        return RelationScope(instance, self)


class RelationScope:
    """
    Callable view of one relation on one instance.

    A new scope is built on every attribute read; all of them share the same
    instance and the same cache, and none of them writes to the cache.
    """

    __slots__ = ("_instance", "_accessor")

    def __init__(self, instance: Any, accessor: RelationAccessor):
        self._instance = instance
        self._accessor = accessor

    def __call__(self, *args: Any) -> Any:
        cached = self._instance._state.cached_relations.get(self._accessor.name)
        if args or cached is None:
            return self._invoke(RelationOperation.GET, args)
        return self._accessor.materialize(cached)

    def _invoke(self, operation: RelationOperation, args: Tuple[Any, ...]) -> Any:
        return self._accessor.operations[operation](self._instance, *args)

    def count(self, *args: Any) -> Any:
        return self._invoke(RelationOperation.COUNT, args)

    def create(self, *args: Any) -> Any:
        return self._invoke(RelationOperation.CREATE, args)

    def destroyById(self, *args: Any) -> Any:
        return self._invoke(RelationOperation.DESTROY_BY_ID, args)

    deleteById = destroyById

    def exists(self, *args: Any) -> Any:
        return self._invoke(RelationOperation.EXISTS, args)

    def findById(self, *args: Any) -> Any:
        return self._invoke(RelationOperation.FIND_BY_ID, args)

    def __repr__(self) -> str:
        return f"<RelationScope {self._accessor.name} of {self._instance!r}>"


def _relation_returns(relation: RelationDescriptor, operation: RelationOperation) -> Optional[str]:
    target = relation.target_name
    if operation is RelationOperation.GET:
        return f"[{target}]" if relation.is_plural else target
    if operation in (RelationOperation.CREATE, RelationOperation.FIND_BY_ID):
        return target
    return None


def synthesize_relation_methods(descriptor: ModelDescriptor) -> ModelDescriptor:
    """
    Add instance method descriptors for relation operations the server did
    not describe, so every relation scope is backed by a proxy.
    """
    known = {name for method in descriptor.methods for name in method.names}
    extra: List[MethodDescriptor] = []
    for relation in descriptor.relations:
        for operation in RelationOperation:
            method_name = operation.method_name(relation.name)
            if method_name in known:
                continue
            extra.append(
                MethodDescriptor(
                    name=method_name,
                    is_static=False,
                    returns=_relation_returns(relation, operation),
                ).with_owner(descriptor.name)
            )
            known.add(method_name)
    if not extra:
        return descriptor
    return descriptor.model_copy(update={"methods": tuple(descriptor.methods) + tuple(extra)})


def _build_accessor(entry: ModelEntry, relation: RelationDescriptor, registry: Registry) -> RelationAccessor:
    operations: Dict[RelationOperation, Callable] = {}
    for operation in RelationOperation:
        method_name = operation.method_name(relation.name)
        proxy = entry.instance_methods.get(method_name)
        if proxy is None:
            raise ConfigError(
                f"Relation {entry.name}.{relation.name} has no remote method {method_name}"
            )
        operations[operation] = proxy
    return RelationAccessor(relation, operations, registry)


RELATION_BUILDERS: Dict[RelationKind, Callable[[ModelEntry, RelationDescriptor, Registry], RelationAccessor]] = {
    kind: _build_accessor for kind in RelationKind
}


def check_relation_kind(relation: RelationDescriptor) -> RelationKind:
    try:
        kind = RelationKind(relation.kind)
    except ValueError:
        kind = None
    if kind is None or kind not in RELATION_BUILDERS:
        raise UnsupportedRelationError(
            f"Relation {relation.name} has unsupported kind {relation.kind!r}"
        )
    return kind


def define_relation_property(entry: ModelEntry, relation: RelationDescriptor, registry: Registry) -> RelationAccessor:
    """Build the accessor for ``relation`` and add it to the model's relation table."""
    kind = check_relation_kind(relation)
    accessor = RELATION_BUILDERS[kind](entry, relation, registry)
    entry.add_relation(relation.name, accessor)
    logger.debug("Defined relation %s.%s (%s -> %s)", entry.name, relation.name, kind.value, relation.target_name)
    return accessor


def _lower_first(name: str) -> str:
    return name[:1].lower() + name[1:]


class RelationMixin:
    """
    Relation vocabulary for remote models. Use to declare relationships
    between models before they are attached to a connector.

    Examples::

        Author.hasMany(Post, as_="posts", foreign_key="authorId")
        Post.belongsTo("Author", as_="author")

    The related data is fetched remotely through the relation scope::

        posts = await author.posts()
        post = await author.posts.create({"title": "Chapter 1"})
    """

    @classmethod
    def _declare_relation(
        cls,
        kind: RelationKind,
        model_to: Any,
        as_: Optional[str] = None,
        foreign_key: Optional[str] = None,
    ) -> RelationDescriptor:
        entry = cls.__dict__.get("_entry")
        if entry is not None and entry.frozen:
            raise ConfigError(
                f"cannot declare relation on {cls._model_name}: the model is already attached"
            )
        target_name = model_to if isinstance(model_to, str) else (
            getattr(model_to, "_model_name", None) or model_to.__name__
        )
        name = as_ or _lower_first(target_name) + ("s" if kind.is_plural else "")
        if foreign_key is None:
            if kind is RelationKind.BELONGS_TO:
                foreign_key = f"{name}Id"
            elif kind in (RelationKind.HAS_MANY, RelationKind.HAS_ONE):
                foreign_key = f"{_lower_first(cls._model_name)}Id"
        relation = RelationDescriptor(name=name, kind=kind.value, model_to=model_to, foreign_key=foreign_key)
        cls._declared_relations = [
            r for r in cls.__dict__.get("_declared_relations", []) if r.name != name
        ] + [relation]
        return relation

    @classmethod
    def hasMany(cls, model_to: Any, as_: Optional[str] = None, foreign_key: Optional[str] = None) -> RelationDescriptor:
        return cls._declare_relation(RelationKind.HAS_MANY, model_to, as_, foreign_key)

    @classmethod
    def belongsTo(cls, model_to: Any, as_: Optional[str] = None, foreign_key: Optional[str] = None) -> RelationDescriptor:
        return cls._declare_relation(RelationKind.BELONGS_TO, model_to, as_, foreign_key)

    @classmethod
    def hasAndBelongsToMany(cls, model_to: Any, as_: Optional[str] = None, foreign_key: Optional[str] = None) -> RelationDescriptor:
        return cls._declare_relation(RelationKind.HAS_AND_BELONGS_TO_MANY, model_to, as_, foreign_key)

    @classmethod
    def hasOne(cls, model_to: Any, as_: Optional[str] = None, foreign_key: Optional[str] = None) -> RelationDescriptor:
        return cls._declare_relation(RelationKind.HAS_ONE, model_to, as_, foreign_key)

    @classmethod
    def referencesMany(cls, model_to: Any, as_: Optional[str] = None, foreign_key: Optional[str] = None) -> RelationDescriptor:
        return cls._declare_relation(RelationKind.REFERENCES_MANY, model_to, as_, foreign_key)

    @classmethod
    def embedsOne(cls, model_to: Any, as_: Optional[str] = None, foreign_key: Optional[str] = None) -> RelationDescriptor:
        return cls._declare_relation(RelationKind.EMBEDS_ONE, model_to, as_, foreign_key)

    @classmethod
    def embedsMany(cls, model_to: Any, as_: Optional[str] = None, foreign_key: Optional[str] = None) -> RelationDescriptor:
        return cls._declare_relation(RelationKind.EMBEDS_MANY, model_to, as_, foreign_key)

    has_many = hasMany
    belongs_to = belongsTo
    has_and_belongs_to_many = hasAndBelongsToMany
    has_one = hasOne
    references_many = referencesMany
    embeds_one = embedsOne
    embeds_many = embedsMany
