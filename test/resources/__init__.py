import json
import os
import re
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, cast

from boto3 import Session
from botocore.exceptions import ClientError

from tf_provider_aws.aws_client import AwsClient
from tf_provider_aws.configuration import AwsConfig


class BotoDummyStsClient:
    def __getattr__(self, action_name: str) -> Callable[[], Any]:
        def call(*args: Any, **kwargs: Any) -> Any:
            return {"Credentials": {"AccessKeyId": "xxx", "SecretAccessKey": "xxx", "SessionToken": "xxx"}}

        return call

    def close(self) -> None:
        pass


class BotoFileClient:
    def __init__(self, service: str) -> None:
        self.service = service

    @staticmethod
    def can_paginate(_: str) -> bool:
        return False

    @staticmethod
    def close() -> None:
        pass

    @staticmethod
    def path_from(service_name: str, action_name: str, **kwargs: Any) -> str:
        def arg_string(v: Any) -> str:
            if isinstance(v, list):
                return "_".join(arg_string(x) for x in v)
            elif isinstance(v, dict):
                return "_".join(arg_string(v) for k, v in v.items())
            else:
                return re.sub(r"[^a-zA-Z0-9]", "_", str(v))

        vals = "__" + ("_".join(arg_string(v) for _, v in sorted(kwargs.items()))) if kwargs else ""
        # cut the action string if it becomes too long
        vals = vals[0:220] if len(vals) > 220 else vals
        action = action_name.replace("_", "-")
        service = service_name.replace("-", "_")
        path = os.path.dirname(__file__) + f"/files/{service}/{action}{vals}.json"
        return os.path.abspath(path)

    def __getattr__(self, action_name: str) -> Callable[[], Any]:
        def call_action(*args: Any, **kwargs: Any) -> Any:
            assert not args, "No arguments allowed!"
            path = self.path_from(self.service, action_name, **kwargs)
            if os.path.exists(path):
                with open(path) as f:
                    return json.load(f)
            else:
                return {}

        return call_action


# use this factory in tests, to rely on API responses from file system
class BotoFileBasedSession(Session):  # type: ignore
    def client(self, service_name: str, **kwargs: Any) -> Any:
        return BotoDummyStsClient() if service_name == "sts" else BotoFileClient(service_name)


class BotoErrorClient:
    def __init__(self, exception: Exception):
        self.exception = exception

    @staticmethod
    def can_paginate(_: str) -> bool:
        return False

    @staticmethod
    def close() -> None:
        pass

    def __getattr__(self, action_name: str) -> Callable[[], Any]:
        raise self.exception


class BotoFlakyClient(BotoFileClient):
    def __init__(self, service: str, errors: List[Exception]) -> None:
        super().__init__(service)
        self.errors = errors

    def __getattr__(self, action_name: str) -> Callable[[], Any]:
        if self.errors:
            raise self.errors.pop(0)
        return super().__getattr__(action_name)


# use this factory in tests, to answer from the file system after the given errors have been raised
class BotoFlakySession(BotoFileBasedSession):
    def __init__(self, errors: List[Exception], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.errors = errors

    def client(self, service_name: str, **kwargs: Any) -> Any:
        return BotoDummyStsClient() if service_name == "sts" else BotoFlakyClient(service_name, self.errors)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self


# use this factory in tests, to check how the client behaves in terms of errors
class BotoErrorSession(Session):  # type: ignore
    def __init__(self, exception: Exception = Exception("Test exception"), **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.exception = exception

    def client(self, service_name: str, **kwargs: Any) -> Any:
        return BotoErrorClient(self.exception)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self


def client_error(code: str, message: str = "Err!", operation: str = "foo") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def file_based_client(config: Optional[AwsConfig] = None) -> AwsClient:
    config = config or AwsConfig(access_key_id="foo", secret_access_key="bar")
    config.sessions().session_class_factory = BotoFileBasedSession
    return AwsClient(config, "123456789012", region="us-east-1")


class CallRecorder:
    """
    Fake AwsClient: every call is recorded, the answer is defined by the given handler.
    A handler result that is an exception is raised.
    """

    def __init__(self, handler: Callable[..., Any], config: Optional[AwsConfig] = None) -> None:
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []
        self.config = config or AwsConfig(object_tagging_retry_timeout="1s")

    def __record(self, service: str, action: str, result_name: Optional[str] = None, **kwargs: Any) -> Any:
        kwargs.pop("expected_errors", None)
        self.calls.append(dict(service=service, action=action, **kwargs))
        result = self.handler(action, **kwargs)
        if isinstance(result, Exception):
            raise result
        return result

    def actions(self) -> List[str]:
        return [c["action"] for c in self.calls]

    def client(self) -> AwsClient:
        return cast(
            AwsClient,
            SimpleNamespace(
                call=self.__record,
                get=self.__record,
                list=self.__record,
                config=self.config,
                region="us-east-1",
                partition="aws",
            ),
        )

