from __future__ import annotations

import logging
from abc import ABC
from typing import Any, ClassVar, Dict, List, Optional

from attrs import define

from tf_provider_aws.aws_client import AwsClient
from tflib.diagnostics import Diagnostics
from tflib.resource_data import ResourceData
from tflib.schema import Schema, validate_config
from tflib.types import Json

log = logging.getLogger("tf.providers.aws")


@define
class AwsApiSpec:
    """
    Specifications for the AWS API to call and the expected response.
    """

    service: str
    api_action: str
    result_property: Optional[str] = None
    parameter: Optional[Dict[str, Any]] = None
    expected_errors: Optional[List[str]] = None
    override_iam_permission: Optional[str] = None  # only set if the permission can not be derived

    def iam_permission(self) -> str:
        if self.override_iam_permission:
            return self.override_iam_permission
        else:
            action = "".join(word.title() for word in self.api_action.split("-"))
            return f"{self.service}:{action}"


class AwsKind(ABC):
    """
    Common base of resources and data sources.
    Override kind, schema and the callbacks for every kind that is exposed by the provider.
    """

    # The kind of this resource. Needs to be globally unique.
    kind: ClassVar[str] = "aws_kind"
    # The display name of the kind.
    _kind_display: ClassVar[str] = "AWS Kind"
    # The description of the kind.
    _kind_description: ClassVar[str] = ""
    # The URL to the documentation of this kind.
    _docs_url: ClassVar[str] = "https://docs.aws.amazon.com/"
    # The attributes of this kind.
    schema: ClassVar[Schema] = {}

    @classmethod
    def validate(cls, config: Optional[Json]) -> Diagnostics:
        return validate_config(cls.schema, config)

    @classmethod
    def called_apis(cls) -> List[AwsApiSpec]:
        """Read only APIs, that are called by this kind."""
        return []

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        """APIs that change the state of the resource."""
        return []


class AwsResource(AwsKind):
    """
    A resource managed by the provider.
    All callbacks operate on the given ResourceData and raise a ProviderError on failure.
    """

    kind: ClassVar[str] = "aws_resource"
    _kind_display: ClassVar[str] = "AWS Resource"
    # Resources that can be adopted by id.
    importable: ClassVar[bool] = False

    @classmethod
    def create(cls, client: AwsClient, data: ResourceData) -> None:
        raise NotImplementedError(f"Create is not supported by {cls.kind}")

    @classmethod
    def read(cls, client: AwsClient, data: ResourceData) -> None:
        raise NotImplementedError(f"Read is not supported by {cls.kind}")

    @classmethod
    def update(cls, client: AwsClient, data: ResourceData) -> None:
        raise NotImplementedError(f"Update is not supported by {cls.kind}")

    @classmethod
    def delete(cls, client: AwsClient, data: ResourceData) -> None:
        raise NotImplementedError(f"Delete is not supported by {cls.kind}")

    @classmethod
    def import_state(cls, client: AwsClient, import_id: str) -> ResourceData:
        """
        Default import: the import id is the resource id.
        The host reads the resource afterwards.
        """
        return ResourceData(cls.schema, id=import_id)


class AwsDataSource(AwsKind):
    kind: ClassVar[str] = "aws_data_source"
    _kind_display: ClassVar[str] = "AWS Data Source"

    @classmethod
    def read(cls, client: AwsClient, data: ResourceData) -> None:
        raise NotImplementedError(f"Read is not supported by {cls.kind}")
