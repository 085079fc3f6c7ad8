import logging
import threading
import time
import uuid
from datetime import timedelta
from functools import lru_cache
from typing import Any, ClassVar, Dict, Optional, Type

from attrs import define, field, fields_dict
from boto3.session import Session as BotoSession
from botocore.client import BaseClient
from botocore.config import Config as BotoConfig
from retrying import retry

from tflib.durations import parse_duration
from tflib.json import from_json as from_js
from tflib.tags import IgnoreTagsConfig
from tflib.types import Json

from .utils import global_region_by_partition, retry_on_session_error

log = logging.getLogger("tf.providers.aws")


@define(hash=True, slots=False)
class AwsSessionHolder:
    access_key_id: Optional[str]
    secret_access_key: Optional[str]
    role: Optional[str] = None
    role_override: bool = False
    # Only here to override in tests
    session_class_factory: Type[BotoSession] = BotoSession
    kind: ClassVar[str] = "aws_session_holder"
    session_lock: threading.Lock = threading.Lock()

    # noinspection PyUnusedLocal
    @lru_cache(maxsize=128)
    def __direct_session(self, profile: Optional[str], partition: str) -> BotoSession:
        global_region = global_region_by_partition(partition)
        if profile:
            return self.session_class_factory(profile_name=profile, region_name=global_region)
        else:
            return self.session_class_factory(
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                region_name=global_region,
            )

    # noinspection PyUnusedLocal
    @lru_cache(maxsize=128)
    @retry(  # type: ignore
        stop_max_attempt_number=10,
        wait_random_min=1000,
        wait_random_max=6000,
        retry_on_exception=retry_on_session_error,
    )
    def __sts_session(
        self, aws_account: str, aws_role: str, profile: Optional[str], partition: str, cache_key: int
    ) -> BotoSession:
        role = self.role if self.role_override and self.role else aws_role
        role_arn = f"arn:{partition}:iam::{aws_account}:role/{role}"
        session = self.__direct_session(profile, partition)
        sts = session.client("sts")
        log.info(f"Create AWS session by assuming role: {role_arn}.")
        token = sts.assume_role(
            RoleArn=role_arn,
            RoleSessionName=f"tf-provider-aws-{str(uuid.uuid4())}",
            DurationSeconds=3600,  # 1 hour
        )
        credentials = token["Credentials"]
        return self.session_class_factory(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=global_region_by_partition(partition),
        )

    def _session(
        self,
        aws_account: Optional[str] = None,
        aws_role: Optional[str] = None,
        aws_profile: Optional[str] = None,
        aws_partition: str = "aws",
    ) -> BotoSession:
        """
        Note: the session is not thread safe - caller needs to synchronize access.
        Consider using the client() method instead.
        """
        if aws_role is None or aws_account is None:
            return self.__direct_session(aws_profile, aws_partition)
        else:
            # The sts token is valid for 1 hour: renew the session after 10 minutes
            return self.__sts_session(aws_account, aws_role, aws_profile, aws_partition, int(time.time() / 600))

    def client(
        self,
        aws_account: Optional[str],
        aws_role: Optional[str],
        aws_profile: Optional[str],
        aws_service: str,
        region_name: Optional[str] = None,
        config: Optional[BotoConfig] = None,
        aws_partition: str = "aws",
    ) -> BaseClient:
        with self.session_lock:
            session = self._session(aws_account, aws_role, aws_profile, aws_partition)
            return session.client(aws_service, region_name=region_name, config=config)

    def purge_caches(self) -> None:
        self.__direct_session.cache_clear()
        self.__sts_session.cache_clear()


@define(slots=False)
class AwsConfig:
    kind: ClassVar[str] = "aws"
    access_key_id: Optional[str] = field(
        default=None,
        metadata={"description": "AWS Access Key ID (null to load from env - recommended)"},
    )
    secret_access_key: Optional[str] = field(
        default=None,
        metadata={"description": "AWS Secret Access Key (null to load from env - recommended)"},
    )
    profile: Optional[str] = field(default=None, metadata={"description": "AWS profile to use"})
    role: Optional[str] = field(default=None, metadata={"description": "IAM role name to assume"})
    role_override: bool = field(
        default=False,
        metadata={"description": "Always assume the configured role, even if another role is requested"},
    )
    account: Optional[str] = field(
        default=None,
        metadata={"description": "AWS Account ID the role is assumed in. Required, if a role is defined."},
    )
    region: str = field(default="us-east-1", metadata={"description": "AWS Region of all resources"})
    partition: str = field(default="aws", metadata={"description": "AWS partition: aws, aws-cn or aws-us-gov"})
    max_attempts: int = field(
        default=5,
        metadata={"description": "Number of attempts of the AWS SDK for a single read call (adaptive retry mode)"},
    )
    ignore_tags: IgnoreTagsConfig = field(
        factory=IgnoreTagsConfig,
        metadata={"description": "Tags that are not managed by this provider and are never changed or reported"},
    )
    workforce_active_timeout: str = field(
        default="10min",
        metadata={
            "type_hint": "duration",
            "description": "Time to wait for a SageMaker Workforce to become active after create or update.",
        },
    )
    workforce_deleted_timeout: str = field(
        default="10min",
        metadata={
            "type_hint": "duration",
            "description": "Time to wait for a SageMaker Workforce to vanish after delete.",
        },
    )
    object_tagging_retry_timeout: str = field(
        default="1min",
        metadata={
            "type_hint": "duration",
            "description": "Time to retry reading S3 object tags, while the object is not yet visible.",
        },
    )

    @staticmethod
    def from_json(json: Json) -> "AwsConfig":
        valid_fields = fields_dict(AwsConfig).keys()
        for field_name in json.copy().keys():
            if field_name not in valid_fields or field_name.startswith("_"):
                log.debug(f"Ignore unknown configuration property: {field_name}")
                del json[field_name]
        return from_js(json, AwsConfig)

    def active_timeout(self) -> timedelta:
        return parse_duration(self.workforce_active_timeout)

    def deleted_timeout(self) -> timedelta:
        return parse_duration(self.workforce_deleted_timeout)

    def tagging_retry_timeout(self) -> timedelta:
        return parse_duration(self.object_tagging_retry_timeout)

    _lock: threading.RLock = field(factory=threading.RLock, init=False)
    _holder: Optional[AwsSessionHolder] = field(default=None, init=False)

    def __getstate__(self) -> Dict[str, Any]:
        d = self.__dict__.copy()
        d.pop("_lock", None)
        d.pop("_holder", None)
        return d

    def __setstate__(self, d: Dict[str, Any]) -> None:
        d["_lock"] = threading.RLock()
        d["_holder"] = None
        self.__dict__.update(d)

    def sessions(self) -> AwsSessionHolder:
        if self._holder is None:
            with self._lock:
                if self._holder is None:
                    log.debug("Creating a new AWS session holder")
                    self._holder = AwsSessionHolder(
                        access_key_id=self.access_key_id,
                        secret_access_key=self.secret_access_key,
                        role=self.role,
                        role_override=self.role_override,
                    )
        return self._holder
