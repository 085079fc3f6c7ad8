from typing import Any

import pytest

from test.resources import CallRecorder, client_error, file_based_client
from tf_provider_aws.resource.efs import AwsEfsFileSystemDataSource
from tflib.errors import ProviderError
from tflib.resource_data import ResourceData


def fs_data(**config: Any) -> ResourceData:
    return ResourceData(AwsEfsFileSystemDataSource.schema, config)


def test_read_by_id() -> None:
    data = fs_data(file_system_id="fs-1234")
    AwsEfsFileSystemDataSource.read(file_based_client(), data)
    assert data.id == "fs-1234"
    assert data.get("arn") == "arn:aws:elasticfilesystem:us-east-1:123456789012:file-system/fs-1234"
    assert data.get("creation_token") == "my-token"
    assert data.get("dns_name") == "fs-1234.efs.us-east-1.amazonaws.com"
    assert data.get("name") == "shared"
    assert data.get("size_in_bytes") == 6144
    assert data.get("encrypted") is True
    assert data.get("kms_key_id") == "arn:aws:kms:us-east-1:123456789012:key/1234"
    assert data.get("performance_mode") == "generalPurpose"
    assert data.get("throughput_mode") == "provisioned"
    assert data.get("provisioned_throughput_in_mibps") == 128.0
    assert data.get("availability_zone_name") == "us-east-1a"
    assert data.get("availability_zone_id") == "use1-az1"
    assert data.get("tags") == {"Name": "shared", "team": "ml"}
    assert data.get("lifecycle_policy") == [
        {"transition_to_ia": "AFTER_30_DAYS", "transition_to_primary_storage_class": "", "transition_to_archive": ""},
        {"transition_to_ia": "", "transition_to_primary_storage_class": "AFTER_1_ACCESS", "transition_to_archive": ""},
    ]


def test_read_by_tags() -> None:
    data = fs_data(tags={"stage": "prod"})
    AwsEfsFileSystemDataSource.read(file_based_client(), data)
    assert data.id == "fs-aaaa"
    assert data.get("creation_token") == "token-a"
    assert data.get("lifecycle_policy") == []
    # the computed tags are the tags of the file system
    assert data.get("tags") == {"team": "ml", "stage": "prod"}


def test_read_ambiguous() -> None:
    with pytest.raises(ProviderError) as ex:
        AwsEfsFileSystemDataSource.read(file_based_client(), fs_data(tags={"team": "ml"}))
    assert str(ex.value) == "Search returned 2 results, please revise so only one is returned"
    with pytest.raises(ProviderError) as ex:
        AwsEfsFileSystemDataSource.read(file_based_client(), fs_data(tags={"team": "other"}))
    assert str(ex.value) == "Search returned 0 results, please revise so only one is returned"


def test_read_request() -> None:
    def handler(action: str, **kwargs: Any) -> Any:
        if action == "describe-file-systems":
            return [{"FileSystemId": "fs-1", "CreationToken": "tok"}]
        return {"LifecyclePolicies": []}

    recorder = CallRecorder(handler)
    AwsEfsFileSystemDataSource.read(recorder.client(), fs_data(creation_token="tok", file_system_id="fs-1"))
    assert recorder.calls == [
        {"service": "efs", "action": "describe-file-systems", "CreationToken": "tok", "FileSystemId": "fs-1"},
        {"service": "efs", "action": "describe-lifecycle-configuration", "FileSystemId": "fs-1"},
    ]


def test_read_error() -> None:
    recorder = CallRecorder(lambda action, **kwargs: client_error("AccessDeniedException", "denied"))
    with pytest.raises(ProviderError) as ex:
        AwsEfsFileSystemDataSource.read(recorder.client(), fs_data(file_system_id="fs-1"))
    assert str(ex.value).startswith("reading EFS file system: ")
