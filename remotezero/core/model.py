from __future__ import annotations

from dataclasses import dataclass, field
from types import MethodType
from typing import Any, ClassVar, Dict, List, Mapping, Optional

from cytoolz import itemfilter, keyfilter

from remotezero.core.classes import ModelDescriptor, RelationDescriptor
from remotezero.core.config import ModelEntry
from remotezero.core.relations import RelationMixin


@dataclass
class InstanceState:
    """
    Per-instance storage.

    data: backing store of field values
    cached_relations: eagerly loaded relation payloads keyed by relation name,
        a mapping for singular relations and a list for plural ones
    """

    data: Dict[str, Any] = field(default_factory=dict)
    cached_relations: Dict[str, Any] = field(default_factory=dict)


class StaticSurface:
    """
    Model-level facade over the frozen static method table.

    Names missing from the table fall back to the model class itself, which is
    how locally implemented methods excluded from proxying stay reachable.
    """

    def __init__(self, model: type):
        self._model = model

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        entry = self._model._get_entry()
        if entry is not None and name in entry.static_methods:
            return entry.static_methods[name]
        try:
            return getattr(self._model, name)
        except AttributeError:
            raise AttributeError(
                f"'{self._model._model_name}' has no remote method '{name}'"
            ) from None

    def __dir__(self) -> List[str]:
        entry = self._model._get_entry()
        return sorted(entry.static_methods) if entry is not None else []

    def __repr__(self) -> str:
        return f"<StaticSurface {self._model._model_name}>"


class Model(RelationMixin):
    """
    Base class for models whose data lives behind a remote endpoint.

    Subclasses name themselves with ``_model_name`` and declare their remote
    methods through ``_descriptor``. Once attached to a connector, static
    methods are reachable on ``Model.objects`` and instance methods, relation
    scopes and fields on the instances.
    """

    _model_name: ClassVar[str] = ""
    _descriptor: ClassVar[Optional[ModelDescriptor]] = None
    _declared_relations: ClassVar[List[RelationDescriptor]] = []

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if not cls.__dict__.get("_model_name"):
            cls._model_name = cls.__name__
        cls._declared_relations = []
        cls.objects = StaticSurface(cls)

    @classmethod
    def _get_entry(cls) -> Optional[ModelEntry]:
        return cls.__dict__.get("_entry")

    def __init__(self, data: Optional[Mapping[str, Any]] = None, **fields: Any):
        values = {**(data or {}), **fields}
        entry = type(self)._get_entry()
        relation_names = entry.relations if entry is not None else {}
        cached = itemfilter(
            lambda item: item[0] in relation_names and isinstance(item[1], (dict, list)),
            values,
        )
        object.__setattr__(
            self,
            "_state",
            InstanceState(
                data=keyfilter(lambda key: key not in cached, values),
                cached_relations=cached,
            ),
        )

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") and name != type(self)._pk_name():
            raise AttributeError(name)
        entry = type(self)._get_entry()
        if entry is not None:
            method = entry.instance_methods.get(name)
            if method is not None:
                return MethodType(method, self)
            accessor = entry.relations.get(name)
            if accessor is not None:
                return accessor.scope_for(self)
        data = object.__getattribute__(self, "_state").data
        if name in data:
            return data[name]
        raise AttributeError(f"'{type(self).__name__}' has no field '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") and name != type(self)._pk_name():
            object.__setattr__(self, name, value)
        else:
            self._state.data[name] = value

    def __getitem__(self, name: str) -> Any:
        return self._state.data[name]

    def __contains__(self, name: str) -> bool:
        return name in self._state.data

    @classmethod
    def _pk_name(cls) -> str:
        entry = cls._get_entry()
        descriptor = entry.descriptor if entry is not None else cls._descriptor
        return descriptor.pk_field if descriptor is not None else "id"

    @property
    def pk(self) -> Any:
        return self._state.data.get(self._pk_name())

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._state.data)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Model) or type(other) is not type(self):
            return NotImplemented
        if self.pk is None:
            return self is other
        return self.pk == other.pk

    def __hash__(self) -> int:
        return hash((type(self), self.pk)) if self.pk is not None else id(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(pk={self.pk!r})"
