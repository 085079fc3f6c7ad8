import logging
from typing import Callable, Dict, List, Optional, Tuple, Type, TypeVar

from prometheus_client import Counter, Summary

from tflib.diagnostics import Diagnostics
from tflib.errors import ProviderError
from tflib.resource_data import ResourceData
from tflib.schema import Schema
from tflib.types import Json
from .aws_client import AwsClient
from .configuration import AwsConfig
from .resource import efs, s3, sagemaker
from .resource.base import AwsApiSpec, AwsDataSource, AwsKind, AwsResource

log = logging.getLogger("tf.providers.aws")
logging.getLogger("boto").setLevel(logging.CRITICAL)

metrics_operation = Summary(
    "tf_provider_aws_operation_seconds",
    "Time it took to run a provider operation",
    ["kind", "operation"],
)
metrics_operation_failures = Counter(
    "tf_provider_aws_operation_failures_total",
    "Provider operations that ended with an error diagnostic",
    ["kind", "operation"],
)

all_resources: List[Type[AwsResource]] = sagemaker.resources + s3.resources + efs.resources
all_data_sources: List[Type[AwsDataSource]] = sagemaker.data_sources + s3.data_sources + efs.data_sources

KindT = TypeVar("KindT", bound=AwsKind)


class AwsProvider:
    """
    Entry point of the host: holds the configuration and dispatches all operations to the registered kinds.
    No operation raises: every failure is reported as error diagnostic.
    """

    def __init__(self, config: Optional[AwsConfig] = None) -> None:
        self.config = config or AwsConfig()
        self.resources: Dict[str, Type[AwsResource]] = {r.kind: r for r in all_resources}
        self.data_sources: Dict[str, Type[AwsDataSource]] = {d.kind: d for d in all_data_sources}

    @staticmethod
    def from_config(js: Json) -> "AwsProvider":
        return AwsProvider(AwsConfig.from_json(dict(js)))

    def client(self, region: Optional[str] = None) -> AwsClient:
        return AwsClient(
            self.config,
            self.config.account,
            role=self.config.role,
            profile=self.config.profile,
            region=region or self.config.region,
            partition=self.config.partition,
        )

    def resource_schema(self, kind: str) -> Optional[Schema]:
        clazz = self.resources.get(kind)
        return clazz.schema if clazz else None

    def data_source_schema(self, kind: str) -> Optional[Schema]:
        clazz = self.data_sources.get(kind)
        return clazz.schema if clazz else None

    def called_apis(self) -> List[AwsApiSpec]:
        kinds: List[Type[AwsKind]] = [*all_resources, *all_data_sources]
        return [spec for kind in kinds for spec in kind.called_apis() + kind.called_mutator_apis()]

    def required_permissions(self) -> List[str]:
        return sorted({spec.iam_permission() for spec in self.called_apis()})

    # ------------------------------------- validation -------------------------------------

    def validate_resource(self, kind: str, config: Optional[Json]) -> Diagnostics:
        return self.__validate(self.resources, kind, config)

    def validate_data_source(self, kind: str, config: Optional[Json]) -> Diagnostics:
        return self.__validate(self.data_sources, kind, config)

    # ------------------------------------- resources -------------------------------------

    def create(self, kind: str, data: ResourceData) -> Diagnostics:
        data.mark_new_resource()
        return self.__run(self.resources, kind, "create", lambda clazz, client: clazz.create(client, data))

    def read(self, kind: str, data: ResourceData) -> Diagnostics:
        return self.__run(self.resources, kind, "read", lambda clazz, client: clazz.read(client, data))

    def update(self, kind: str, data: ResourceData) -> Diagnostics:
        return self.__run(self.resources, kind, "update", lambda clazz, client: clazz.update(client, data))

    def delete(self, kind: str, data: ResourceData) -> Diagnostics:
        return self.__run(self.resources, kind, "delete", lambda clazz, client: clazz.delete(client, data))

    def import_resource(self, kind: str, import_id: str) -> Tuple[Optional[ResourceData], Diagnostics]:
        imported: List[ResourceData] = []

        def import_and_read(clazz: Type[AwsResource], client: AwsClient) -> None:
            if not clazz.importable:
                raise ProviderError(f"resource {kind} does not support import")
            data = clazz.import_state(client, import_id)
            clazz.read(client, data)
            if not data.id:
                raise ProviderError(f"Cannot import non-existent remote object: {import_id}")
            imported.append(data)

        diagnostics = self.__run(self.resources, kind, "import", import_and_read)
        return (imported[0] if imported else None), diagnostics

    # ------------------------------------- data sources -------------------------------------

    def read_data_source(self, kind: str, data: ResourceData) -> Diagnostics:
        return self.__run(self.data_sources, kind, "read_data_source", lambda clazz, client: clazz.read(client, data))

    def __validate(self, registry: Dict[str, Type[KindT]], kind: str, config: Optional[Json]) -> Diagnostics:
        clazz = registry.get(kind)
        if clazz is None:
            diagnostics = Diagnostics()
            diagnostics.append_error(f"Unknown kind: {kind}")
            return diagnostics
        return clazz.validate(config)

    def __run(
        self,
        registry: Dict[str, Type[KindT]],
        kind: str,
        operation: str,
        fn: Callable[[Type[KindT], AwsClient], None],
    ) -> Diagnostics:
        diagnostics = Diagnostics()
        clazz = registry.get(kind)
        if clazz is None:
            diagnostics.append_error(f"Unknown kind: {kind}")
            return diagnostics
        log.debug(f"Run {operation} on {kind}")
        with metrics_operation.labels(kind=kind, operation=operation).time():
            with diagnostics.suppress(f"{operation} {kind}", log):
                fn(clazz, self.client())
        if diagnostics.has_error():
            metrics_operation_failures.labels(kind=kind, operation=operation).inc()
        return diagnostics


__all__ = ["AwsProvider", "AwsConfig", "AwsClient", "all_resources", "all_data_sources"]
