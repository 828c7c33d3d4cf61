from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Type

logger = logging.getLogger(__name__)


def make_type_converter(model: Type) -> Callable[[Dict[str, Any]], Any]:
    """
    Build the converter turning a raw remote payload into a ``model`` instance.

    Relation payloads embedded in the data end up in the instance's relation
    cache; the converter copies each of them into the backing store under the
    relation name so field-level reads see the eagerly loaded value. The copy
    is shallow and happens once, at construction.
    """

    def convert(data: Dict[str, Any]) -> Any:
        instance = model(data)
        state = instance._state
        for relation, payload in state.cached_relations.items():
            state.data[relation] = payload
        if state.cached_relations:
            logger.debug(
                "Materialized %s with cached relations %s",
                model._model_name,
                ", ".join(state.cached_relations),
            )
        return instance

    convert.__name__ = f"convert_{model._model_name}"
    return convert
