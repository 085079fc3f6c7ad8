from typing import ClassVar

from prometheus_client import REGISTRY

from test.resources import BotoErrorSession, BotoFileBasedSession
from tf_provider_aws import AwsProvider, all_data_sources, all_resources
from tf_provider_aws.configuration import AwsConfig
from tf_provider_aws.resource.base import AwsResource
from tflib.resource_data import ResourceData


def file_based_provider() -> AwsProvider:
    provider = AwsProvider(AwsConfig(access_key_id="foo", secret_access_key="bar"))
    provider.config.sessions().session_class_factory = BotoFileBasedSession
    return provider


def failures(kind: str, operation: str) -> float:
    labels = {"kind": kind, "operation": operation}
    return REGISTRY.get_sample_value("tf_provider_aws_operation_failures_total", labels) or 0


def test_registry() -> None:
    assert [r.kind for r in all_resources] == ["aws_sagemaker_workforce"]
    assert {d.kind for d in all_data_sources} == {"aws_s3_object", "aws_efs_file_system"}
    provider = AwsProvider()
    assert provider.resource_schema("aws_sagemaker_workforce") is not None
    assert provider.data_source_schema("aws_s3_object") is not None
    assert provider.resource_schema("aws_s3_object") is None


def test_from_config() -> None:
    provider = AwsProvider.from_config({"region": "eu-west-1", "profile": "dev", "unknown": True})
    assert provider.config.region == "eu-west-1"
    assert provider.client().region == "eu-west-1"
    assert provider.client("eu-central-1").region == "eu-central-1"
    assert provider.client().profile == "dev"


def test_required_permissions() -> None:
    permissions = AwsProvider().required_permissions()
    assert permissions == [
        "elasticfilesystem:DescribeFileSystems",
        "elasticfilesystem:DescribeLifecycleConfiguration",
        "s3:DeleteObjectTagging",
        "s3:GetBucketTagging",
        "s3:GetObject",
        "s3:GetObjectTagging",
        "s3:PutBucketTagging",
        "s3:PutObjectTagging",
        "sagemaker:CreateWorkforce",
        "sagemaker:DeleteWorkforce",
        "sagemaker:DescribeWorkforce",
        "sagemaker:UpdateWorkforce",
    ]


def test_unknown_kind() -> None:
    provider = AwsProvider()
    data = ResourceData({})
    assert [d.summary for d in provider.read("aws_foo", data)] == ["Unknown kind: aws_foo"]
    # resources and data sources are separate registries
    diagnostics = provider.read_data_source("aws_sagemaker_workforce", data)
    assert [d.summary for d in diagnostics] == ["Unknown kind: aws_sagemaker_workforce"]
    diagnostics = provider.validate_resource("aws_s3_object", {})
    assert [d.summary for d in diagnostics] == ["Unknown kind: aws_s3_object"]


def test_validate() -> None:
    provider = AwsProvider()
    assert provider.validate_data_source("aws_s3_object", {"bucket": "b", "key": "k"}) == []
    result = provider.validate_data_source("aws_s3_object", {"bucket": "b", "body": "x"})
    assert {d.attribute for d in result} == {"key", "body"}


def test_read_data_source() -> None:
    provider = file_based_provider()
    data = ResourceData(provider.data_source_schema("aws_s3_object"), {"bucket": "test-bucket", "key": "hello.txt"})
    assert provider.read_data_source("aws_s3_object", data) == []
    assert data.get("body") == "hello world"


def test_errors_become_diagnostics() -> None:
    provider = file_based_provider()
    before = failures("aws_efs_file_system", "read_data_source")
    data = ResourceData(provider.data_source_schema("aws_efs_file_system"), {"tags": {"team": "ml"}})
    diagnostics = provider.read_data_source("aws_efs_file_system", data)
    assert [d.summary for d in diagnostics] == ["Search returned 2 results, please revise so only one is returned"]
    assert failures("aws_efs_file_system", "read_data_source") == before + 1

    # unexpected errors carry the operation
    provider = AwsProvider(AwsConfig(access_key_id="foo", secret_access_key="bar"))
    provider.config.sessions().session_class_factory = BotoErrorSession(ValueError("boom"))  # type: ignore
    data = ResourceData(provider.data_source_schema("aws_s3_object"), {"bucket": "b", "key": "k"})
    diagnostics = provider.read_data_source("aws_s3_object", data)
    assert [d.summary for d in diagnostics] == ["read_data_source aws_s3_object: boom"]


def test_read_resource() -> None:
    provider = file_based_provider()
    data = ResourceData(provider.resource_schema("aws_sagemaker_workforce"), None, {"id": "test-workforce"})
    assert provider.read("aws_sagemaker_workforce", data) == []
    assert data.get("workforce_name") == "test-workforce"
    # gone: removed from state without error
    data = ResourceData(provider.resource_schema("aws_sagemaker_workforce"), None, {"id": "other"})
    assert provider.read("aws_sagemaker_workforce", data) == []
    assert data.state() is None


def test_import() -> None:
    provider = file_based_provider()
    data, diagnostics = provider.import_resource("aws_sagemaker_workforce", "test-workforce")
    assert diagnostics == []
    assert data is not None
    assert data.id == "test-workforce"
    assert data.get("arn") == "arn:aws:sagemaker:us-east-1:123456789012:workforce/test-workforce"

    data, diagnostics = provider.import_resource("aws_sagemaker_workforce", "nope")
    assert data is None
    assert [d.summary for d in diagnostics] == ["Cannot import non-existent remote object: nope"]


class NotImportable(AwsResource):
    kind: ClassVar[str] = "aws_not_importable"


def test_import_not_supported() -> None:
    provider = AwsProvider()
    provider.resources[NotImportable.kind] = NotImportable
    data, diagnostics = provider.import_resource(NotImportable.kind, "foo")
    assert data is None
    assert [d.summary for d in diagnostics] == ["resource aws_not_importable does not support import"]
    # the default callbacks are not implemented
    diagnostics = provider.delete(NotImportable.kind, ResourceData({}, id="foo"))
    message = "delete aws_not_importable: Delete is not supported by aws_not_importable"
    assert [d.summary for d in diagnostics] == [message]
