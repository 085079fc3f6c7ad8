import logging
from datetime import timedelta
from typing import Callable, ClassVar, Dict, List, Optional, Tuple, Type

from tf_provider_aws.aws_client import AwsClient, AwsErrors, error_message_contains
from tf_provider_aws.resource.base import AwsApiSpec, AwsDataSource, AwsResource
from tflib.errors import NotFoundError, ProviderError, UnexpectedStateError
from tflib.json import without_none_values
from tflib.json_bender import Bender, EmptyToNone, F, S, bend
from tflib.resource_data import ResourceData
from tflib.retry import StateChangeConf
from tflib.schema import (
    AttrType,
    Attribute,
    Schema,
    is_cidr,
    is_url_with_https,
    string_len_between,
    string_match,
)
from tflib.types import Json

log = logging.getLogger("tf.providers.aws")
service_name = "sagemaker"

WorkforceStatusInitializing = "Initializing"
WorkforceStatusUpdating = "Updating"
WorkforceStatusDeleting = "Deleting"
WorkforceStatusFailed = "Failed"
WorkforceStatusActive = "Active"
WorkforcePollInterval = timedelta(seconds=10)

# ------------------------------------- expand / flatten -------------------------------------


def _sorted_set(values: List[str]) -> List[str]:
    return sorted(set(values))


def _first_block(blocks: Optional[List[Json]]) -> Optional[Json]:
    if not blocks or blocks[0] is None:
        return None
    return blocks[0]


CognitoConfigRequest: Dict[str, Bender] = {"ClientId": S("client_id"), "UserPool": S("user_pool")}
CognitoConfigResponse: Dict[str, Bender] = {
    "client_id": S("ClientId", default=""),
    "user_pool": S("UserPool", default=""),
}
OidcConfigRequest: Dict[str, Bender] = {
    "AuthorizationEndpoint": S("authorization_endpoint"),
    "ClientId": S("client_id"),
    "ClientSecret": S("client_secret"),
    "Issuer": S("issuer"),
    "JwksUri": S("jwks_uri"),
    "LogoutEndpoint": S("logout_endpoint"),
    "TokenEndpoint": S("token_endpoint"),
    "UserInfoEndpoint": S("user_info_endpoint"),
}
# the API never returns the client secret
OidcConfigResponse: Dict[str, Bender] = {
    "authorization_endpoint": S("AuthorizationEndpoint", default=""),
    "client_id": S("ClientId", default=""),
    "issuer": S("Issuer", default=""),
    "jwks_uri": S("JwksUri", default=""),
    "logout_endpoint": S("LogoutEndpoint", default=""),
    "token_endpoint": S("TokenEndpoint", default=""),
    "user_info_endpoint": S("UserInfoEndpoint", default=""),
}
SourceIpConfigRequest: Dict[str, Bender] = {"Cidrs": S("cidrs", default=[]) >> F(_sorted_set)}
SourceIpConfigResponse: Dict[str, Bender] = {"cidrs": S("Cidrs", default=[]) >> F(_sorted_set)}
VpcConfigRequest: Dict[str, Bender] = {
    "SecurityGroupIds": S("security_group_ids") >> EmptyToNone >> F(_sorted_set),
    "Subnets": S("subnets") >> EmptyToNone >> F(_sorted_set),
    "VpcId": S("vpc_id") >> EmptyToNone,
}
VpcConfigResponse: Dict[str, Bender] = {
    "security_group_ids": S("SecurityGroupIds", default=[]) >> F(_sorted_set),
    "subnets": S("Subnets", default=[]) >> F(_sorted_set),
    "vpc_endpoint_id": S("VpcEndpointId", default=""),
    "vpc_id": S("VpcId", default=""),
}


def expand_cognito_config(blocks: Optional[List[Json]]) -> Optional[Json]:
    if (block := _first_block(blocks)) is None:
        return None
    return without_none_values(bend(CognitoConfigRequest, block))


def flatten_cognito_config(config: Optional[Json]) -> List[Json]:
    if config is None:
        return []
    return [bend(CognitoConfigResponse, config)]


def expand_oidc_config(blocks: Optional[List[Json]]) -> Optional[Json]:
    if (block := _first_block(blocks)) is None:
        return None
    return without_none_values(bend(OidcConfigRequest, block))


def flatten_oidc_config(config: Optional[Json], client_secret: str) -> List[Json]:
    if config is None:
        return []
    return [{**bend(OidcConfigResponse, config), "client_secret": client_secret}]


def expand_source_ip_config(blocks: Optional[List[Json]]) -> Optional[Json]:
    if (block := _first_block(blocks)) is None:
        return None
    return bend(SourceIpConfigRequest, block)  # type: ignore


def flatten_source_ip_config(config: Optional[Json]) -> List[Json]:
    if config is None:
        return []
    return [bend(SourceIpConfigResponse, config)]


def expand_vpc_config(blocks: Optional[List[Json]]) -> Json:
    # an empty request removes the vpc configuration of an existing workforce
    if (block := _first_block(blocks)) is None:
        return {}
    return without_none_values(bend(VpcConfigRequest, block))


def flatten_vpc_config(config: Optional[Json]) -> List[Json]:
    if config is None:
        return []
    return [bend(VpcConfigResponse, config)]


# attribute name, request property, expand function
CreateArgs: List[Tuple[str, str, Callable[[Optional[List[Json]]], Optional[Json]]]] = [
    ("cognito_config", "CognitoConfig", expand_cognito_config),
    ("oidc_config", "OidcConfig", expand_oidc_config),
    ("source_ip_config", "SourceIpConfig", expand_source_ip_config),
    ("workforce_vpc_config", "WorkforceVpcConfig", expand_vpc_config),
]


# ------------------------------------- find / wait -------------------------------------


def find_workforce_by_name(client: AwsClient, name: str) -> Json:
    try:
        workforce = client.get(service_name, "describe-workforce", "Workforce", WorkforceName=name)
    except AwsErrors as e:
        if error_message_contains(e, "ValidationException", "No workforce"):
            raise NotFoundError(last_request={"WorkforceName": name}) from e
        raise
    if not workforce:
        raise NotFoundError("Empty result", last_request={"WorkforceName": name})
    return workforce


def status_workforce(client: AwsClient, name: str) -> Tuple[Optional[Json], str]:
    try:
        workforce = find_workforce_by_name(client, name)
    except NotFoundError:
        return None, ""
    return workforce, workforce.get("Status", "")


def _wait_workforce(conf: StateChangeConf) -> Optional[Json]:
    try:
        return conf.wait_for_state()  # type: ignore
    except UnexpectedStateError as e:
        if e.state == WorkforceStatusFailed and isinstance(e.result, dict) and e.result.get("FailureReason"):
            raise ProviderError(f"{e}. last error: {e.result['FailureReason']}") from e
        raise


def wait_workforce_active(
    client: AwsClient, name: str, timeout: timedelta, poll_interval: timedelta = WorkforcePollInterval
) -> Optional[Json]:
    return _wait_workforce(
        StateChangeConf(
            pending=[WorkforceStatusInitializing, WorkforceStatusUpdating],
            target=[WorkforceStatusActive],
            refresh=lambda: status_workforce(client, name),
            timeout=timeout,
            poll_interval=poll_interval,
        )
    )


def wait_workforce_deleted(
    client: AwsClient, name: str, timeout: timedelta, poll_interval: timedelta = WorkforcePollInterval
) -> Optional[Json]:
    return _wait_workforce(
        StateChangeConf(
            pending=[WorkforceStatusDeleting],
            target=[],
            refresh=lambda: status_workforce(client, name),
            timeout=timeout,
            poll_interval=poll_interval,
        )
    )


# ------------------------------------- resource -------------------------------------


def _endpoint() -> Attribute:
    return Attribute(
        AttrType.STRING, required=True, validators=[string_len_between(1, 500), is_url_with_https()]
    )


class AwsSagemakerWorkforce(AwsResource):
    kind: ClassVar[str] = "aws_sagemaker_workforce"
    _kind_display: ClassVar[str] = "AWS SageMaker Workforce"
    _kind_description: ClassVar[str] = (
        "A SageMaker Workforce is the group of workers that label data for SageMaker Ground Truth"
        " and Augmented AI. Workers are authenticated via Amazon Cognito or an OIDC identity provider."
    )
    _docs_url: ClassVar[str] = "https://docs.aws.amazon.com/sagemaker/latest/dg/sms-workforce-management.html"
    importable: ClassVar[bool] = True
    schema: ClassVar[Schema] = {
        "arn": Attribute(AttrType.STRING, computed=True),
        "cognito_config": Attribute(
            AttrType.LIST,
            optional=True,
            force_new=True,
            max_items=1,
            exactly_one_of=["oidc_config", "cognito_config"],
            elem={
                "client_id": Attribute(AttrType.STRING, required=True),
                "user_pool": Attribute(AttrType.STRING, required=True),
            },
        ),
        "oidc_config": Attribute(
            AttrType.LIST,
            optional=True,
            max_items=1,
            exactly_one_of=["oidc_config", "cognito_config"],
            elem={
                "authorization_endpoint": _endpoint(),
                "client_id": Attribute(AttrType.STRING, required=True, validators=[string_len_between(1, 1024)]),
                "client_secret": Attribute(
                    AttrType.STRING, required=True, sensitive=True, validators=[string_len_between(1, 1024)]
                ),
                "issuer": _endpoint(),
                "jwks_uri": _endpoint(),
                "logout_endpoint": _endpoint(),
                "token_endpoint": _endpoint(),
                "user_info_endpoint": _endpoint(),
            },
        ),
        "source_ip_config": Attribute(
            AttrType.LIST,
            optional=True,
            computed=True,
            max_items=1,
            elem={
                "cidrs": Attribute(
                    AttrType.SET, required=True, max_items=10, elem=AttrType.STRING, validators=[is_cidr()]
                ),
            },
        ),
        "subdomain": Attribute(AttrType.STRING, computed=True),
        "workforce_name": Attribute(
            AttrType.STRING,
            required=True,
            force_new=True,
            validators=[
                string_len_between(1, 63),
                string_match(
                    r"^[a-zA-Z0-9]([a-zA-Z0-9\-])*$", "Valid characters are a-z, A-Z, 0-9, and - (hyphen)."
                ),
            ],
        ),
        "workforce_vpc_config": Attribute(
            AttrType.LIST,
            optional=True,
            max_items=1,
            elem={
                "security_group_ids": Attribute(AttrType.SET, optional=True, max_items=5, elem=AttrType.STRING),
                "subnets": Attribute(AttrType.SET, optional=True, max_items=16, elem=AttrType.STRING),
                "vpc_endpoint_id": Attribute(AttrType.STRING, computed=True),
                "vpc_id": Attribute(AttrType.STRING, optional=True),
            },
        ),
    }
    # top level attributes that are taken from the api response as is
    mapping: ClassVar[Dict[str, Bender]] = {
        "arn": S("WorkforceArn"),
        "subdomain": S("SubDomain"),
        "workforce_name": S("WorkforceName"),
        "cognito_config": S("CognitoConfig") >> F(flatten_cognito_config),
        "source_ip_config": S("SourceIpConfig") >> F(flatten_source_ip_config),
        "workforce_vpc_config": S("WorkforceVpcConfig") >> F(flatten_vpc_config),
    }

    @classmethod
    def called_apis(cls) -> List[AwsApiSpec]:
        return [AwsApiSpec(service_name, "describe-workforce", "Workforce")]

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return [
            AwsApiSpec(service_name, "create-workforce"),
            AwsApiSpec(service_name, "update-workforce"),
            AwsApiSpec(service_name, "delete-workforce"),
        ]

    @classmethod
    def create(cls, client: AwsClient, data: ResourceData) -> None:
        name = data.get("workforce_name")
        args: Json = {"WorkforceName": name}
        for attr_name, arg_name, expand in CreateArgs:
            value, ok = data.get_ok(attr_name)
            if ok:
                args[arg_name] = expand(value)

        try:
            client.call(service_name, "create-workforce", **without_none_values(args))
        except AwsErrors as e:
            raise ProviderError(f"creating SageMaker Workforce ({name}): {e}") from e

        data.set_id(name)

        try:
            wait_workforce_active(client, name, client.config.active_timeout())
        except (ProviderError, *AwsErrors) as e:
            raise ProviderError(f"waiting for SageMaker Workforce ({data.id}) create: {e}") from e

        cls.read(client, data)

    @classmethod
    def read(cls, client: AwsClient, data: ResourceData) -> None:
        try:
            workforce = find_workforce_by_name(client, data.id)
        except NotFoundError as e:
            if not data.is_new_resource():
                log.warning(f"SageMaker Workforce ({data.id}) not found, removing from state")
                data.set_id("")
                return
            raise ProviderError(f"reading SageMaker Workforce ({data.id}): {e}") from e
        except AwsErrors as e:
            raise ProviderError(f"reading SageMaker Workforce ({data.id}): {e}") from e

        for name, value in bend(cls.mapping, workforce).items():
            data.set(name, value)
        if (oidc := workforce.get("OidcConfig")) is not None:
            data.set("oidc_config", flatten_oidc_config(oidc, data.get("oidc_config.0.client_secret")))

    @classmethod
    def update(cls, client: AwsClient, data: ResourceData) -> None:
        args: Json = {"WorkforceName": data.id}
        if data.has_change("source_ip_config"):
            args["SourceIpConfig"] = expand_source_ip_config(data.get("source_ip_config"))
        if data.has_change("oidc_config"):
            args["OidcConfig"] = expand_oidc_config(data.get("oidc_config"))
        if data.has_change("workforce_vpc_config"):
            args["WorkforceVpcConfig"] = expand_vpc_config(data.get("workforce_vpc_config"))

        try:
            client.call(service_name, "update-workforce", **without_none_values(args))
        except AwsErrors as e:
            raise ProviderError(f"updating SageMaker Workforce ({data.id}): {e}") from e

        try:
            wait_workforce_active(client, data.id, client.config.active_timeout())
        except (ProviderError, *AwsErrors) as e:
            raise ProviderError(f"waiting for SageMaker Workforce ({data.id}) update: {e}") from e

        cls.read(client, data)

    @classmethod
    def delete(cls, client: AwsClient, data: ResourceData) -> None:
        log.debug(f"Deleting SageMaker Workforce: {data.id}")
        try:
            client.call(service_name, "delete-workforce", WorkforceName=data.id)
        except AwsErrors as e:
            if error_message_contains(e, "ValidationException", "No workforce"):
                return
            raise ProviderError(f"deleting SageMaker Workforce ({data.id}): {e}") from e

        try:
            wait_workforce_deleted(client, data.id, client.config.deleted_timeout())
        except (ProviderError, *AwsErrors) as e:
            raise ProviderError(f"waiting for SageMaker Workforce ({data.id}) delete: {e}") from e


resources: List[Type[AwsResource]] = [AwsSagemakerWorkforce]
data_sources: List[Type[AwsDataSource]] = []
