import logging
import re
from typing import ClassVar, Dict, List, Optional, Type

from dateutil.parser import isoparse

from tf_provider_aws.aws_client import AwsClient, AwsErrors, is_error_code
from tf_provider_aws.resource.base import AwsApiSpec, AwsDataSource, AwsResource
from tflib.errors import ProviderError
from tflib.json_bender import Bender, F, K, S, bend
from tflib.resource_data import ResourceData
from tflib.retry import retry_when
from tflib.schema import AttrType, Attribute, Schema
from tflib.tags import KeyValueTags
from tflib.types import Json
from tflib.utils import rfc1123_str, utc_str

log = logging.getLogger("tf.providers.aws")
service_name = "s3"

StorageClassStandard = "STANDARD"
# the documented code is NoSuchTagSetError, the API answers with NoSuchTagSet
NoSuchTagSetErrors = ["NoSuchTagSet", "NoSuchTagSetError"]

# Only textual content is stored as body.
AllowedContentTypes = [
    re.compile(r"^application/atom\+xml\Z"),
    re.compile(r"^application/json\Z"),
    re.compile(r"^application/ld\+json\Z"),
    re.compile(r"^application/x-csh\Z"),
    re.compile(r"^application/x-httpd-php\Z"),
    re.compile(r"^application/x-sh\Z"),
    re.compile(r"^application/xhtml\+xml\Z"),
    re.compile(r"^application/xml\Z"),
    re.compile(r"^text/.+"),
]


def is_content_type_allowed(content_type: Optional[str]) -> bool:
    if content_type is None:
        return False
    return any(r.search(content_type) for r in AllowedContentTypes)


# ------------------------------------- tags -------------------------------------


def bucket_list_tags(client: AwsClient, bucket: str) -> KeyValueTags:
    try:
        tag_set = client.get(service_name, "get-bucket-tagging", "TagSet", Bucket=bucket)
    except AwsErrors as e:
        if is_error_code(e, *NoSuchTagSetErrors):
            return KeyValueTags.new()
        raise
    return KeyValueTags.from_api(tag_set)  # type: ignore


def bucket_update_tags(
    client: AwsClient, bucket: str, old_tags: Optional[Dict[str, str]], new_tags: Optional[Dict[str, str]]
) -> None:
    old = KeyValueTags.new(old_tags)  # type: ignore
    new = KeyValueTags.new(new_tags)  # type: ignore

    # existing tags that are not managed here need to survive the update
    try:
        all_tags = bucket_list_tags(client, bucket)
    except AwsErrors as e:
        raise ProviderError(f"listing resource tags ({bucket}): {e}") from e

    ignored = all_tags.ignore(old).ignore(new)

    if new or ignored:
        try:
            client.call(
                service_name,
                "put-bucket-tagging",
                Bucket=bucket,
                Tagging={"TagSet": new.merge(ignored).to_api()},
            )
        except AwsErrors as e:
            raise ProviderError(f"setting resource tags ({bucket}): {e}") from e
    elif old:
        try:
            client.call(service_name, "delete-bucket-tagging", Bucket=bucket)
        except AwsErrors as e:
            raise ProviderError(f"deleting resource tags ({bucket}): {e}") from e


def object_list_tags(client: AwsClient, bucket: str, key: str) -> KeyValueTags:
    """
    A freshly written object might not be visible yet: NoSuchKey is retried up to the configured timeout.
    """
    try:
        tag_set = retry_when(
            client.config.tagging_retry_timeout(),
            lambda: client.get(service_name, "get-object-tagging", "TagSet", Bucket=bucket, Key=key),
            lambda e: is_error_code(e, "NoSuchKey"),
        )
    except AwsErrors as e:
        if is_error_code(e, *NoSuchTagSetErrors):
            return KeyValueTags.new()
        raise
    return KeyValueTags.from_api(tag_set)  # type: ignore


def object_update_tags(
    client: AwsClient,
    bucket: str,
    key: str,
    old_tags: Optional[Dict[str, str]],
    new_tags: Optional[Dict[str, str]],
) -> None:
    old = KeyValueTags.new(old_tags)  # type: ignore
    new = KeyValueTags.new(new_tags)  # type: ignore
    identifier = f"{bucket}/{key}"

    try:
        all_tags = object_list_tags(client, bucket, key)
    except AwsErrors as e:
        raise ProviderError(f"listing resource tags ({identifier}): {e}") from e

    ignored = all_tags.ignore(old).ignore(new)

    if new or ignored:
        try:
            client.call(
                service_name,
                "put-object-tagging",
                Bucket=bucket,
                Key=key,
                Tagging={"TagSet": new.merge(ignored).to_api()},
            )
        except AwsErrors as e:
            raise ProviderError(f"setting resource tags ({identifier}): {e}") from e
    elif old:
        try:
            client.call(service_name, "delete-object-tagging", Bucket=bucket, Key=key)
        except AwsErrors as e:
            raise ProviderError(f"deleting resource tags ({identifier}): {e}") from e


# ------------------------------------- data source -------------------------------------


def _rfc1123(value: str) -> str:
    return rfc1123_str(isoparse(value))


def _rfc3339(value: str) -> str:
    return utc_str(isoparse(value))


class AwsS3ObjectDataSource(AwsDataSource):
    kind: ClassVar[str] = "aws_s3_object"
    _kind_display: ClassVar[str] = "AWS S3 Object"
    _kind_description: ClassVar[str] = (
        "Metadata and content of a single object in an S3 bucket."
        " The body is only available for textual content types."
    )
    _docs_url: ClassVar[str] = "https://docs.aws.amazon.com/AmazonS3/latest/API/API_HeadObject.html"
    schema: ClassVar[Schema] = {
        "body": Attribute(AttrType.STRING, computed=True),
        "bucket": Attribute(AttrType.STRING, required=True),
        "bucket_key_enabled": Attribute(AttrType.BOOL, computed=True),
        "cache_control": Attribute(AttrType.STRING, computed=True),
        "content_disposition": Attribute(AttrType.STRING, computed=True),
        "content_encoding": Attribute(AttrType.STRING, computed=True),
        "content_language": Attribute(AttrType.STRING, computed=True),
        "content_length": Attribute(AttrType.INT, computed=True),
        "content_type": Attribute(AttrType.STRING, computed=True),
        "etag": Attribute(AttrType.STRING, computed=True),
        "expiration": Attribute(AttrType.STRING, computed=True),
        "expires": Attribute(AttrType.STRING, computed=True),
        "key": Attribute(AttrType.STRING, required=True),
        "last_modified": Attribute(AttrType.STRING, computed=True),
        "metadata": Attribute(AttrType.MAP, computed=True, elem=AttrType.STRING),
        "object_lock_legal_hold_status": Attribute(AttrType.STRING, computed=True),
        "object_lock_mode": Attribute(AttrType.STRING, computed=True),
        "object_lock_retain_until_date": Attribute(AttrType.STRING, computed=True),
        "range": Attribute(AttrType.STRING, optional=True),
        "server_side_encryption": Attribute(AttrType.STRING, computed=True),
        "sse_kms_key_id": Attribute(AttrType.STRING, computed=True),
        "storage_class": Attribute(AttrType.STRING, computed=True),
        "tags": Attribute(AttrType.MAP, optional=True, computed=True, elem=AttrType.STRING),
        "version_id": Attribute(AttrType.STRING, optional=True, computed=True),
        "website_redirect_location": Attribute(AttrType.STRING, computed=True),
    }
    mapping: ClassVar[Dict[str, Bender]] = {
        "bucket_key_enabled": S("BucketKeyEnabled"),
        "cache_control": S("CacheControl"),
        "content_disposition": S("ContentDisposition"),
        "content_encoding": S("ContentEncoding"),
        "content_language": S("ContentLanguage"),
        "content_length": S("ContentLength"),
        "content_type": S("ContentType"),
        # See https://forums.aws.amazon.com/thread.jspa?threadID=44003
        "etag": S("ETag") >> F(lambda etag: etag.strip('"')),
        "expiration": S("Expiration"),
        # ExpiresString carries the header as sent, Expires only a parseable date
        "expires": S("ExpiresString").or_else(S("Expires")),
        "last_modified": (S("LastModified") >> F(_rfc1123)).or_else(K("")),
        "metadata": S("Metadata"),
        "object_lock_legal_hold_status": S("ObjectLockLegalHoldStatus"),
        "object_lock_mode": S("ObjectLockMode"),
        "object_lock_retain_until_date": (S("ObjectLockRetainUntilDate") >> F(_rfc3339)).or_else(K("")),
        "server_side_encryption": S("ServerSideEncryption"),
        "sse_kms_key_id": S("SSEKMSKeyId"),
        "version_id": S("VersionId"),
        "website_redirect_location": S("WebsiteRedirectLocation"),
        # the default storage class is not part of the response
        "storage_class": S("StorageClass").or_else(K(StorageClassStandard)),
    }

    @classmethod
    def called_apis(cls) -> List[AwsApiSpec]:
        return [
            AwsApiSpec(service_name, "head-object", override_iam_permission="s3:GetObject"),
            AwsApiSpec(service_name, "get-object"),
            AwsApiSpec(service_name, "get-object-tagging", "TagSet"),
            AwsApiSpec(service_name, "get-bucket-tagging", "TagSet"),
        ]

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return [
            AwsApiSpec(service_name, "put-bucket-tagging"),
            AwsApiSpec(service_name, "delete-bucket-tagging", override_iam_permission="s3:PutBucketTagging"),
            AwsApiSpec(service_name, "put-object-tagging"),
            AwsApiSpec(service_name, "delete-object-tagging"),
        ]

    @classmethod
    def read(cls, client: AwsClient, data: ResourceData) -> None:
        bucket = data.get("bucket")
        key = data.get("key")
        args: Json = {"Bucket": bucket, "Key": key}
        if (range_value := data.get("range")) != "":
            args["Range"] = range_value

        version_text = ""
        unique_id = f"{bucket}/{key}"
        if (version_id := data.get("version_id")) != "":
            args["VersionId"] = version_id
            version_text = f' of version "{version_id}"'
            unique_id += "@" + version_id

        try:
            head = client.get(service_name, "head-object", **args)
        except AwsErrors as e:
            raise ProviderError(f"getting S3 Bucket ({bucket}) Object ({key}): {e}") from e
        head = head or {}
        if head.get("DeleteMarker"):
            raise ProviderError(f'Requested S3 object "{bucket}/{key}"{version_text} has been deleted')

        data.set_id(unique_id)
        for name, value in bend(cls.mapping, head).items():
            data.set(name, value)

        content_type = head.get("ContentType")
        if is_content_type_allowed(content_type):
            body_args: Json = {"Bucket": bucket, "Key": key}
            if "Range" in args:
                body_args["Range"] = args["Range"]
            if head.get("VersionId") is not None:
                body_args["VersionId"] = head["VersionId"]
            try:
                body = client.get(service_name, "get-object", "Body", **body_args)
            except AwsErrors as e:
                raise ProviderError(f"Failed getting S3 object: {e}") from e
            body = body or ""
            log.info(f"Saving {len(body)} bytes from S3 object {unique_id}")
            data.set("body", body)
        else:
            shown = "<EMPTY>" if content_type is None else content_type
            log.info(f'Ignoring body of S3 object {unique_id} with Content-Type "{shown}"')

        try:
            tags = object_list_tags(client, bucket, key)
        except AwsErrors as e:
            raise ProviderError(f"listing tags for S3 Bucket ({bucket}) Object ({key}): {e}") from e
        data.set("tags", tags.ignore_aws().ignore_config(client.config.ignore_tags).map())


resources: List[Type[AwsResource]] = []
data_sources: List[Type[AwsDataSource]] = [AwsS3ObjectDataSource]
