"""
remotezero.core: proxy generation and relation materialization for remote models.
"""

from remotezero.core.classes import MethodDescriptor, ModelDescriptor, RelationDescriptor
from remotezero.core.config import AppConfig, ModelEntry, Registry, app_config, global_registry
from remotezero.core.connector import ConnectorSettings, DataSource, RemoteConnector
from remotezero.core.exceptions import (ConfigError, NotFound, PermissionDenied,
                                        RemoteInvocationError, RemoteZeroError,
                                        UnsupportedRelationError, ValidationError)
from remotezero.core.interfaces import AbstractDescriptorSource, AbstractInvoker
from remotezero.core.model import InstanceState, Model
from remotezero.core.relations import RelationMixin, RelationScope
from remotezero.core.types import RelationKind

__all__ = [
    # Types
    "RelationKind",
    "MethodDescriptor",
    "ModelDescriptor",
    "RelationDescriptor",
    # Configuration
    "AppConfig",
    "ModelEntry",
    "Registry",
    "app_config",
    "global_registry",
    "ConnectorSettings",
    # Models
    "Model",
    "InstanceState",
    "RelationMixin",
    "RelationScope",
    # Connector
    "RemoteConnector",
    "DataSource",
    # Abstract Base Classes
    "AbstractInvoker",
    "AbstractDescriptorSource",
    # Errors
    "RemoteZeroError",
    "RemoteInvocationError",
    "NotFound",
    "ValidationError",
    "PermissionDenied",
    "ConfigError",
    "UnsupportedRelationError",
]
