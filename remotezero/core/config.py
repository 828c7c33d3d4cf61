from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Type

import networkx as nx

from remotezero.core.classes import ModelDescriptor
from remotezero.core.exceptions import ConfigError
from remotezero.core.types import (EXCLUDED_METHOD_NAMES, FIND_METHOD_NAMES,
                                   NOT_FOUND_CODE)

logger = logging.getLogger(__name__)


class AppConfig:
    """
    Global policy tables for the proxy generator.

    find_method_names:
        Single-record finders; a not-found error from these completes with ``None``.
    excluded_method_names:
        Methods that are never proxied and keep their local implementation.
    not_found_code:
        Error code treated as "record not found".
    """

    find_method_names: Tuple[str, ...] = FIND_METHOD_NAMES
    excluded_method_names: Tuple[str, ...] = EXCLUDED_METHOD_NAMES
    not_found_code: str = NOT_FOUND_CODE

    def configure(self, **kwargs) -> None:
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise AttributeError(f"Invalid configuration key: {key}")


class ModelEntry:
    """
    Method and relation tables of one attached model.

    Tables are filled while the model is being attached and frozen into
    read-only mappings once setup completes.
    """

    def __init__(self, model: Type, descriptor: ModelDescriptor):
        self.model = model
        self.descriptor = descriptor
        self._static_methods: Dict[str, Callable] = {}
        self._instance_methods: Dict[str, Callable] = {}
        self._relations: Dict[str, Any] = {}
        self.frozen = False

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def static_methods(self) -> Mapping[str, Callable]:
        return self._static_methods

    @property
    def instance_methods(self) -> Mapping[str, Callable]:
        return self._instance_methods

    @property
    def relations(self) -> Mapping[str, Any]:
        return self._relations

    def _check_mutable(self) -> None:
        if self.frozen:
            raise ConfigError(f"Model {self.name} is already attached and cannot be changed.")

    def add_method(self, name: str, func: Callable, is_static: bool) -> None:
        self._check_mutable()
        table = self._static_methods if is_static else self._instance_methods
        existing = table.get(name)
        if existing is not None and existing is not func:
            logger.warning("Remote method %s.%s is defined twice; the last one wins", self.name, name)
        table[name] = func

    def add_relation(self, name: str, accessor: Any) -> None:
        self._check_mutable()
        self._relations[name] = accessor

    def freeze(self) -> None:
        if self.frozen:
            return
        self._static_methods = MappingProxyType(dict(self._static_methods))
        self._instance_methods = MappingProxyType(dict(self._instance_methods))
        self._relations = MappingProxyType(dict(self._relations))
        self.frozen = True


class Registry:
    """
    Registry of attached models and their frozen tables.
    """

    def __init__(self) -> None:
        self._entries: Dict[Type, ModelEntry] = {}
        self._by_name: Dict[str, Type] = {}

    def register(self, model: Type, descriptor: ModelDescriptor) -> ModelEntry:
        if model in self._entries:
            raise ConfigError(f"Model {descriptor.name} is already registered.")
        if descriptor.name in self._by_name:
            raise ConfigError(
                f"Model name {descriptor.name} is already used by "
                f"{self._by_name[descriptor.name].__name__}."
            )
        entry = ModelEntry(model, descriptor)
        self._entries[model] = entry
        self._by_name[descriptor.name] = model
        return entry

    def unregister(self, model: Type) -> None:
        entry = self._entries.pop(model, None)
        if entry is not None:
            self._by_name.pop(entry.name, None)

    def get_entry(self, model: Type) -> ModelEntry:
        entry = self._entries.get(model)
        if entry is None:
            raise ConfigError(f"Model {model.__name__} is not registered.")
        return entry

    def freeze(self, model: Type) -> ModelEntry:
        entry = self.get_entry(model)
        entry.freeze()
        return entry

    def get_model(self, name: str) -> Type:
        model = self._by_name.get(name)
        if model is None:
            raise ConfigError(f"Model {name} is not registered.")
        return model

    def resolve_model(self, ref: Any) -> Type:
        """Resolve a model reference (class or model name) to a registered class."""
        if isinstance(ref, str):
            return self.get_model(ref)
        return ref

    def __contains__(self, model: Type) -> bool:
        return model in self._entries

    def models(self) -> Iterable[Type]:
        return list(self._entries)

    def build_relation_graph(self, models: Optional[Iterable[Type]] = None) -> nx.DiGraph:
        graph = nx.DiGraph()
        for model in models if models is not None else self._entries:
            entry = self.get_entry(model)
            graph.add_node(entry.name, model=model)
            for relation in entry.descriptor.relations:
                graph.add_edge(entry.name, relation.target_name, relation=relation.name)
        return graph

    def validate_relations(self, models: Optional[Iterable[Type]] = None) -> bool:
        """
        Validate that every relation of the given models (all models by default)
        points at a registered model.

        Raises:
            ConfigError: If a relation targets an unregistered model
        """
        graph = self.build_relation_graph(models)
        for source, target, data in graph.edges(data=True):
            if target not in self._by_name:
                raise ConfigError(
                    f"Model '{source}' declares relation '{data['relation']}' "
                    f"to unregistered model '{target}'. Attach '{target}' to a "
                    f"connector before using this relation."
                )
        return True


app_config = AppConfig()
global_registry = Registry()
