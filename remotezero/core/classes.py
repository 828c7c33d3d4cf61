from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from remotezero.core.types import PLURAL_RELATION_KINDS, RelationKind


class MethodDescriptor(BaseModel):
    """
    One remotely callable operation on a model.

    Attributes:
        name: Canonical method name installed on the model surface
        string_name: Path identifier handed to the invoker (e.g. ``Author.findById``)
        is_static: Whether the method lives on the model or on its instances
        aliases: Extra names sharing the same proxy function
        returns: Model name the transport converts the result into.
            ``"[Name]"`` denotes a list of that model.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    string_name: str = ""
    is_static: bool = True
    aliases: Tuple[str, ...] = ()
    returns: Optional[str] = None

    def with_owner(self, model_name: str) -> "MethodDescriptor":
        """Fill in the path identifier for a descriptor declared without one."""
        if self.string_name:
            return self
        prefix = model_name if self.is_static else f"{model_name}.prototype"
        return self.model_copy(update={"string_name": f"{prefix}.{self.name}"})

    @property
    def names(self) -> Tuple[str, ...]:
        return (self.name,) + tuple(a for a in self.aliases if a != self.name)


class RelationDescriptor(BaseModel):
    """
    One declared relationship between two models.

    ``kind`` is kept as produced by the schema layer and checked against the
    available accessor builders when the model is attached.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    kind: str
    model_to: Any
    foreign_key: Optional[str] = None

    @property
    def target_name(self) -> str:
        if isinstance(self.model_to, str):
            return self.model_to
        return getattr(self.model_to, "_model_name", None) or self.model_to.__name__

    @property
    def is_plural(self) -> bool:
        try:
            return RelationKind(self.kind) in PLURAL_RELATION_KINDS
        except ValueError:
            return False


class ModelDescriptor(BaseModel):
    """Identity, remote methods and relations of one model, read once at attach time."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    methods: Tuple[MethodDescriptor, ...] = ()
    relations: Tuple[RelationDescriptor, ...] = ()
    pk_field: str = "id"

    @model_validator(mode="after")
    def _fill_string_names(self) -> "ModelDescriptor":
        self.methods = tuple(m.with_owner(self.name) for m in self.methods)
        return self

    def get_method(self, name: str) -> Optional[MethodDescriptor]:
        for method in self.methods:
            if name in method.names:
                return method
        return None
