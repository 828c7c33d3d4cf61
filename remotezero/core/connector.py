from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from remotezero.core.config import AppConfig, ModelEntry, Registry, app_config, global_registry
from remotezero.core.exceptions import ConfigError
from remotezero.core.interfaces import (AbstractDescriptorSource, AbstractInvoker,
                                        DeclaredDescriptorSource)
from remotezero.core.materializer import make_type_converter
from remotezero.core.proxy import install_proxy_methods
from remotezero.core.relations import (RelationMixin, check_relation_kind,
                                       define_relation_property,
                                       synthesize_relation_methods)

logger = logging.getLogger(__name__)


class ConnectorSettings(BaseModel):
    """
    Connection settings of a remote connector.

    The endpoint is ``url`` when given, otherwise ``protocol://host:port`` followed
    by ``root``. The default HTTP invoker only speaks the ``"jsonrpc"`` adapter;
    any other value is rejected with ``ConfigError`` when it connects.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    url: Optional[str] = None
    protocol: str = "http"
    host: str = "localhost"
    port: int = 3000
    root: str = ""
    adapter: str = "jsonrpc"
    timeout: float = 30.0
    headers: Dict[str, str] = Field(default_factory=dict)
    invoker: Optional[AbstractInvoker] = None
    client: Optional[Any] = None

    @property
    def resolved_url(self) -> str:
        if self.url:
            return self.url
        root = self.root
        if root and not root.startswith("/"):
            root = "/" + root
        return f"{self.protocol}://{self.host}:{self.port}{root}"


class RemoteConnector:
    """
    Composition root attaching models to a remote endpoint.

    For every attached model the connector installs proxies for its remote
    methods, builds its relation accessors and registers its type converter
    with the invoker, then freezes the model's tables.
    """

    name = "remote-connector"

    def __init__(
        self,
        settings: Union[ConnectorSettings, Mapping[str, Any], None],
        registry: Optional[Registry] = None,
        config: Optional[AppConfig] = None,
        descriptor_source: Optional[AbstractDescriptorSource] = None,
    ):
        if isinstance(settings, Mapping):
            settings = ConnectorSettings(**settings)
        if not isinstance(settings, ConnectorSettings):
            raise ConfigError("cannot initialize RemoteConnector without a settings object")
        self.settings = settings
        self.url = settings.resolved_url
        self.adapter = settings.adapter
        self.registry = registry if registry is not None else global_registry
        self.config = config if config is not None else app_config
        self.descriptor_source = descriptor_source or DeclaredDescriptorSource()

        if settings.invoker is not None:
            self.invoker = settings.invoker
        else:
            from remotezero.client.http import HttpInvoker

            self.invoker = HttpInvoker(
                timeout=settings.timeout, headers=settings.headers, client=settings.client
            )

    def connect(self) -> None:
        self.invoker.connect(self.url, self.adapter)
        logger.info("Remote connector bound to %s (%s)", self.url, self.adapter)

    @classmethod
    def initialize(cls, data_source: Any, callback: Optional[Callable[[], Any]] = None) -> "RemoteConnector":
        """
        Create the connector for ``data_source`` and connect it.

        Setup is synchronous; the readiness ``callback`` runs on the next tick
        of the running event loop.
        """
        connector = data_source.connector = cls(
            data_source.settings, registry=getattr(data_source, "registry", None)
        )
        connector.connect()
        if callback is not None:
            asyncio.get_running_loop().call_soon(callback)
        return connector

    def define(self, model: Type) -> ModelEntry:
        """
        Attach ``model``: register it, proxy its remote methods, build its
        relation accessors and register its type converter.

        Raises:
            ConfigError: If the model lacks a method descriptor or is already attached
            UnsupportedRelationError: If a relation kind has no accessor builder
        """
        if not (isinstance(model, type) and issubclass(model, RelationMixin)):
            raise ConfigError(f"cannot attach {model!r}: relation capabilities are missing")
        if model.__dict__.get("_entry") is not None:
            raise ConfigError(f"Model {model._model_name} is already attached.")

        descriptor = self.descriptor_source.describe(model)
        for relation in descriptor.relations:
            check_relation_kind(relation)
        descriptor = synthesize_relation_methods(descriptor)

        entry = self.registry.register(model, descriptor)
        try:
            self.invoker.add_class(descriptor)
            self.resolve(entry)
            for relation in descriptor.relations:
                define_relation_property(entry, relation, self.registry)
            self.setup_remoting_type_for(entry)
        except Exception:
            self.registry.unregister(model)
            raise

        model._entry = self.registry.freeze(model)
        logger.debug(
            "Attached %s with %d remote methods and %d relations",
            entry.name,
            len(descriptor.methods),
            len(descriptor.relations),
        )
        return entry

    def undefine(self, model: Type) -> None:
        """Detach ``model`` so it can be attached again."""
        self.registry.unregister(model)
        if "_entry" in model.__dict__:
            delattr(model, "_entry")
        logger.debug("Detached %s", model._model_name)

    def resolve(self, entry: ModelEntry) -> None:
        install_proxy_methods(entry, self.invoker, self.config)

    def setup_remoting_type_for(self, entry: ModelEntry) -> None:
        self.invoker.define_object_type(entry.name, make_type_converter(entry.model))


class DataSource:
    """
    Minimal data source wiring settings, registry and connector together.

    Usage:
        ds = DataSource({"host": "api.local", "port": 8080, "root": "/api"})
        ds.setup()
        ds.attach(Author, Post)
    """

    def __init__(
        self,
        settings: Union[ConnectorSettings, Mapping[str, Any], None] = None,
        registry: Optional[Registry] = None,
        connector_class: Type[RemoteConnector] = RemoteConnector,
    ):
        self.settings = settings if settings is not None else ConnectorSettings()
        self.registry = registry if registry is not None else global_registry
        self.connector_class = connector_class
        self.connector: Optional[RemoteConnector] = None

    def setup(self, callback: Optional[Callable[[], Any]] = None) -> RemoteConnector:
        return self.connector_class.initialize(self, callback)

    def attach(self, *models: Type) -> None:
        """
        Attach models, then check that their relations point at attached models.

        The batch is all or nothing: if any model fails to attach or a relation
        points at an unregistered model, every model of the batch is detached
        again and can be attached in a later call.
        """
        if self.connector is None:
            raise ConfigError("DataSource.setup() must run before models are attached")
        attached = []
        try:
            for model in models:
                self.connector.define(model)
                attached.append(model)
            self.registry.validate_relations(models)
        except Exception:
            for model in attached:
                self.connector.undefine(model)
            raise
