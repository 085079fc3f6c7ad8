from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Optional

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError
from botocore.response import StreamingBody
from retrying import retry

from tf_provider_aws.configuration import AwsConfig
from tflib.errors import ProviderError
from tflib.json import value_in_path
from tflib.types import Json, JsonElement
from tflib.utils import log_runtime, utc_str

log = logging.getLogger("tf.providers.aws")

ThrottlingErrors = {
    "EC2ThrottledException",
    "RequestThrottled",
    "RequestThrottledException",
    "ThrottledException",
    "Throttling",
    "ThrottlingException",
}
RetryableErrors = ThrottlingErrors | {
    "LimitExceededException",
    "RequestLimitExceeded",
    "RequestTimeout",
    "RequestTimeoutException",
    "TooManyRequestsException",
}
AuthErrors = {"AuthorizationError", "AuthFailure", "AuthFailureException"}
SecretArgs = ("Secret", "Password", "Token")
# Errors raised by boto for a failed API call.
AwsErrors = (ClientError, BotoCoreError)


def is_retryable_exception(e: Exception) -> bool:
    if isinstance(e, ClientError) and e.response["Error"]["Code"] in RetryableErrors:
        log.debug("AWS API request limit exceeded or throttling, retrying with exponential backoff")
        return True
    return False


def error_code(e: Exception) -> Optional[str]:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Code")  # type: ignore
    return None


def error_message(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Message") or ""  # type: ignore
    return str(e)


def is_error_code(e: Exception, *codes: str) -> bool:
    return error_code(e) in codes


def error_message_contains(e: Exception, code: str, text: str) -> bool:
    return is_error_code(e, code) and text in error_message(e)


def _arg_info(kwargs: Json) -> str:
    def masked(key: str, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: masked(k, v) for k, v in value.items()}
        elif any(s in key for s in SecretArgs):
            return "***"
        return value

    if not kwargs:
        return ""
    return " with args " + ", ".join([f"{key}={masked(key, value)}" for key, value in kwargs.items()])


class AwsClient:
    def __init__(
        self,
        config: AwsConfig,
        account_id: Optional[str] = None,
        *,
        role: Optional[str] = None,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        partition: Optional[str] = None,
    ) -> None:
        self.config = config
        self.account_id = account_id
        self.role = role
        self.profile = profile
        self.region = region or config.region
        if partition is None:
            partition = config.partition or "aws"
        self.partition = partition

    def __to_json(self, node: Any, **kwargs: Any) -> JsonElement:
        if node is None or isinstance(node, (str, int, float, bool)):
            return node
        elif isinstance(node, list):
            return [self.__to_json(item, **kwargs) for item in node]
        elif isinstance(node, dict):
            return {key: self.__to_json(value, **kwargs) for key, value in node.items()}
        elif isinstance(node, datetime):
            return utc_str(node)
        elif isinstance(node, bytes):
            return node.decode("utf-8")
        elif isinstance(node, StreamingBody):
            try:
                return node.read().decode("utf-8")  # type: ignore
            finally:
                node.close()
        else:
            raise AttributeError(f"Unsupported type: {type(node)}")

    def call_single(
        self, aws_service: str, action: str, result_name: Optional[str] = None, max_attempts: int = 1, **kwargs: Any
    ) -> JsonElement:
        arg_info = _arg_info(kwargs)
        log.debug(f"[Aws] calling service={aws_service} action={action}{arg_info}")
        py_action = action.replace("-", "_")
        # adaptive mode allows automated client-side throttling
        config = Config(retries={"max_attempts": max_attempts, "mode": "adaptive"})
        client = self.config.sessions().client(
            aws_account=self.account_id,
            aws_role=self.role,
            aws_profile=self.profile,
            aws_service=aws_service,
            region_name=self.region,
            config=config,
            aws_partition=self.partition,
        )

        try:
            if client.can_paginate(py_action):
                paginator = client.get_paginator(py_action)
                result: List[Json] = []
                for page in paginator.paginate(**kwargs):
                    log.debug(f"[Aws] Next page for service={aws_service} action={action}{arg_info}")
                    next_page: Json = self.__to_json(page)  # type: ignore
                    if result_name is None:
                        # the whole object is appended
                        result.append(next_page)
                    else:
                        child = value_in_path(next_page, result_name)
                        if isinstance(child, list):
                            result.extend(child)
                        elif child is not None:
                            result.append(child)
                log.debug(f"[Aws] called service={aws_service} action={action}{arg_info}: {len(result)} results.")
                return result
            else:
                result = getattr(client, py_action)(**kwargs)
                single: Json = self.__to_json(result)  # type: ignore
                log.debug(f"[Aws] called service={aws_service} action={action}{arg_info}: single result")
                return value_in_path(single, result_name) if result_name else single
        finally:
            client.close()

    @retry(  # type: ignore
        stop_max_attempt_number=10,  # 10 attempts: 1000 max 60000: max wait time is 5 minutes
        wait_exponential_multiplier=1000,
        wait_exponential_max=60000,
        retry_on_exception=is_retryable_exception,
    )
    def get_with_retry(
        self,
        aws_service: str,
        action: str,
        result_name: Optional[str],
        expected_errors: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> JsonElement:
        try:
            return self.call_single(aws_service, action, result_name, max_attempts=self.config.max_attempts, **kwargs)
        except ClientError as e:
            self.__handle_client_error(e, aws_service, action, expected_errors)  # might reraise the exception
            return None
        except EndpointConnectionError as e:
            raise ProviderError(f"The AWS endpoint of {aws_service} is not available in {self.region}: {e}") from e

    @log_runtime
    def call(
        self,
        aws_service: str,
        action: str,
        result_name: Optional[str] = None,
        expected_errors: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> JsonElement:
        try:
            return self.call_single(aws_service, action, result_name, max_attempts=1, **kwargs)
        except ClientError as e:
            expected_errors = expected_errors or []
            code = e.response["Error"]["Code"] or "Unknown Code"
            if code in expected_errors:
                log.debug(f"Expected error: {code}")
                return None
            else:
                raise

    def list(
        self,
        aws_service: str,
        action: str,
        result_name: Optional[str] = None,
        expected_errors: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> List[Any]:
        res = self.get_with_retry(aws_service, action, result_name, expected_errors, **kwargs)
        if res is None:
            return []
        elif isinstance(res, list):
            return res
        else:
            return [res]

    def get(
        self,
        aws_service: str,
        action: str,
        result_name: Optional[str] = None,
        expected_errors: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> Optional[Json]:
        return self.get_with_retry(aws_service, action, result_name, expected_errors, **kwargs)  # type: ignore

    def for_region(self, region: str) -> AwsClient:
        return AwsClient(
            self.config,
            self.account_id,
            role=self.role,
            profile=self.profile,
            region=region,
            partition=self.partition,
        )

    def __handle_client_error(
        self, e: ClientError, aws_service: str, action: str, expected_errors: Optional[List[str]] = None
    ) -> None:
        expected_errors = expected_errors or []
        code = e.response["Error"]["Code"] or "Unknown Code"
        if code in expected_errors:
            log.debug(f"Expected error: {code}")
            return
        elif code in AuthErrors or code.lower().startswith("accessdenied"):
            log.warning(
                f"Access denied to call service {aws_service} with action {action} code {code} "
                f"in account {self.account_id} region {self.region}: {e}"
            )
        elif code in RetryableErrors:
            log.warning(f"Call to {aws_service} action {action} failed and will be retried eventually. Error: {e}")
        else:
            log.debug(f"Call to {aws_service} action {action} in region {self.region} failed: {code}: {e}")
        raise e

