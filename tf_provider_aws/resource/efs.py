import logging
from typing import ClassVar, Dict, List, Type

from tf_provider_aws.aws_client import AwsClient, AwsErrors
from tf_provider_aws.resource.base import AwsApiSpec, AwsDataSource, AwsResource
from tf_provider_aws.utils import dns_suffix_by_partition
from tflib.errors import ProviderError
from tflib.json_bender import Bender, ForallBend, S, bend
from tflib.resource_data import ResourceData
from tflib.schema import AttrType, Attribute, Schema, string_len_between
from tflib.tags import KeyValueTags
from tflib.types import Json

log = logging.getLogger("tf.providers.aws")
service_name = "efs"


class AwsEfsFileSystemDataSource(AwsDataSource):
    kind: ClassVar[str] = "aws_efs_file_system"
    _kind_display: ClassVar[str] = "AWS EFS File System"
    _kind_description: ClassVar[str] = (
        "Looks up a single Elastic File System by id, creation token or tags."
    )
    _docs_url: ClassVar[str] = "https://docs.aws.amazon.com/efs/latest/ug/API_DescribeFileSystems.html"
    schema: ClassVar[Schema] = {
        "arn": Attribute(AttrType.STRING, computed=True),
        "availability_zone_id": Attribute(AttrType.STRING, computed=True),
        "availability_zone_name": Attribute(AttrType.STRING, computed=True),
        "creation_token": Attribute(
            AttrType.STRING, optional=True, computed=True, validators=[string_len_between(1, 64)]
        ),
        "dns_name": Attribute(AttrType.STRING, computed=True),
        "encrypted": Attribute(AttrType.BOOL, computed=True),
        "file_system_id": Attribute(AttrType.STRING, optional=True, computed=True),
        "kms_key_id": Attribute(AttrType.STRING, computed=True),
        "lifecycle_policy": Attribute(
            AttrType.LIST,
            computed=True,
            elem={
                "transition_to_ia": Attribute(AttrType.STRING, computed=True),
                "transition_to_primary_storage_class": Attribute(AttrType.STRING, computed=True),
                "transition_to_archive": Attribute(AttrType.STRING, computed=True),
            },
        ),
        "name": Attribute(AttrType.STRING, computed=True),
        "performance_mode": Attribute(AttrType.STRING, computed=True),
        "provisioned_throughput_in_mibps": Attribute(AttrType.FLOAT, computed=True),
        "size_in_bytes": Attribute(AttrType.INT, computed=True),
        "tags": Attribute(AttrType.MAP, optional=True, computed=True, elem=AttrType.STRING),
        "throughput_mode": Attribute(AttrType.STRING, computed=True),
    }
    mapping: ClassVar[Dict[str, Bender]] = {
        "arn": S("FileSystemArn"),
        "availability_zone_id": S("AvailabilityZoneId"),
        "availability_zone_name": S("AvailabilityZoneName"),
        "creation_token": S("CreationToken"),
        "encrypted": S("Encrypted"),
        "file_system_id": S("FileSystemId"),
        "kms_key_id": S("KmsKeyId"),
        "name": S("Name"),
        "performance_mode": S("PerformanceMode"),
        "provisioned_throughput_in_mibps": S("ProvisionedThroughputInMibps"),
        "size_in_bytes": S("SizeInBytes", "Value"),
        "throughput_mode": S("ThroughputMode"),
    }
    lifecycle_policy_mapping: ClassVar[Bender] = S("LifecyclePolicies", default=[]) >> ForallBend(
        {
            "transition_to_ia": S("TransitionToIA"),
            "transition_to_primary_storage_class": S("TransitionToPrimaryStorageClass"),
            "transition_to_archive": S("TransitionToArchive"),
        }
    )

    @classmethod
    def called_apis(cls) -> List[AwsApiSpec]:
        return [
            AwsApiSpec(
                service_name,
                "describe-file-systems",
                "FileSystems",
                expected_errors=["FileSystemNotFound"],
                override_iam_permission="elasticfilesystem:DescribeFileSystems",
            ),
            AwsApiSpec(
                service_name,
                "describe-lifecycle-configuration",
                override_iam_permission="elasticfilesystem:DescribeLifecycleConfiguration",
            ),
        ]

    @classmethod
    def read(cls, client: AwsClient, data: ResourceData) -> None:
        args: Json = {}
        if (token := data.get("creation_token")) != "":
            args["CreationToken"] = token
        if (fs_id := data.get("file_system_id")) != "":
            args["FileSystemId"] = fs_id
        ignore_tags = client.config.ignore_tags
        tags_to_match = KeyValueTags.new(data.get("tags")).ignore_aws().ignore_config(ignore_tags)

        try:
            file_systems = client.list(
                service_name, "describe-file-systems", "FileSystems", expected_errors=["FileSystemNotFound"], **args
            )
        except AwsErrors as e:
            raise ProviderError(f"reading EFS file system: {e}") from e

        def matches(fs: Json) -> bool:
            tags = KeyValueTags.from_api(fs.get("Tags"))
            return all(tags.get(k) == v for k, v in tags_to_match.items())

        found = [fs for fs in file_systems if matches(fs)]
        if len(found) != 1:
            raise ProviderError(f"Search returned {len(found)} results, please revise so only one is returned")
        fs = found[0]
        fs_id = fs["FileSystemId"]

        data.set_id(fs_id)
        for name, value in bend(cls.mapping, fs).items():
            data.set(name, value)
        data.set("dns_name", f"{fs_id}.efs.{client.region}.{dns_suffix_by_partition(client.partition)}")
        data.set("tags", KeyValueTags.from_api(fs.get("Tags")).ignore_aws().ignore_config(ignore_tags).map())

        try:
            lifecycle = client.get(service_name, "describe-lifecycle-configuration", FileSystemId=fs_id)
        except AwsErrors as e:
            raise ProviderError(f"reading EFS file system ({fs_id}) lifecycle configuration: {e}") from e
        data.set("lifecycle_policy", cls.lifecycle_policy_mapping(lifecycle or {}))


resources: List[Type[AwsResource]] = []
data_sources: List[Type[AwsDataSource]] = [AwsEfsFileSystemDataSource]
