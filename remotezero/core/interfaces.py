from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

from remotezero.core.classes import MethodDescriptor, ModelDescriptor


class AbstractInvoker(ABC):
    """
    Transport capability performing the actual remote call.

    Implementations own connection handling and the wire protocol; the core
    only hands over a path identifier, an optional instance identity and the
    positional arguments. Failures are raised as exceptions carrying a
    ``code`` attribute (see ``remotezero.core.exceptions``).

    The base class keeps the per-model method index and the type converters
    registered by the connector, so every implementation converts results the
    same way.
    """

    def __init__(self) -> None:
        self._methods: Dict[str, MethodDescriptor] = {}
        self._types: Dict[str, Callable[[Dict[str, Any]], Any]] = {}

    @abstractmethod
    def connect(self, url: str, adapter: str) -> None:
        """Bind the invoker to the remote endpoint."""
        pass

    @abstractmethod
    async def invoke_static(self, string_name: str, args: Sequence[Any]) -> Any:
        """Invoke a static remote method and return its (converted) result."""
        pass

    @abstractmethod
    async def invoke_instance(
        self, string_name: str, instance_id: Any, args: Sequence[Any]
    ) -> Any:
        """Invoke an instance remote method on the instance with ``instance_id``."""
        pass

    def add_class(self, descriptor: ModelDescriptor) -> None:
        for method in descriptor.methods:
            self._methods[method.string_name] = method

    def define_object_type(
        self, name: str, converter: Callable[[Dict[str, Any]], Any]
    ) -> None:
        self._types[name] = converter

    def get_method(self, string_name: str) -> Optional[MethodDescriptor]:
        return self._methods.get(string_name)

    def returns_for(self, string_name: str) -> Optional[str]:
        method = self._methods.get(string_name)
        return method.returns if method else None

    def convert(self, type_name: Optional[str], data: Any) -> Any:
        """
        Run the converter registered for ``type_name`` over raw result data.

        ``"[Name]"`` converts element-wise and keeps the order of the payload.
        Unknown types and non-object payloads pass through untouched.
        """
        if not type_name or data is None:
            return data
        if type_name.startswith("[") and type_name.endswith("]"):
            if not isinstance(data, list):
                return data
            item_type = type_name[1:-1]
            return [self.convert(item_type, item) for item in data]
        converter = self._types.get(type_name)
        if converter is None or not isinstance(data, dict):
            return data
        return converter(data)


class AbstractDescriptorSource(ABC):
    """Supplies the method and relation descriptors of a model."""

    @abstractmethod
    def describe(self, model: type) -> ModelDescriptor:
        pass


class DeclaredDescriptorSource(AbstractDescriptorSource):
    """
    Reads the descriptor a model class declares on itself (``_descriptor``)
    together with the relations declared through the relation vocabulary.
    """

    def describe(self, model: type) -> ModelDescriptor:
        from remotezero.core.exceptions import ConfigError

        declared: Optional[ModelDescriptor] = getattr(model, "_descriptor", None)
        model_name = getattr(model, "_model_name", None) or model.__name__
        if declared is None:
            raise ConfigError(
                f"cannot attach {model_name} to a remote connector "
                f"without a method descriptor"
            )
        extra: List = list(getattr(model, "_declared_relations", ()))
        if not extra:
            return declared
        return declared.model_copy(
            update={"relations": tuple(declared.relations) + tuple(extra)}
        )
