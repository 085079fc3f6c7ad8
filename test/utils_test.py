from botocore.exceptions import ConnectionClosedError

from tf_provider_aws.utils import dns_suffix_by_partition, global_region_by_partition, retry_on_session_error


def test_partitions() -> None:
    assert global_region_by_partition("aws") == "us-east-1"
    assert global_region_by_partition("aws-cn") == "cn-north-1"
    assert global_region_by_partition("aws-us-gov") == "us-gov-west-1"
    assert dns_suffix_by_partition("aws") == "amazonaws.com"
    assert dns_suffix_by_partition("aws-cn") == "amazonaws.com.cn"


def test_retry_on_session_error() -> None:
    assert retry_on_session_error(ConnectionClosedError(endpoint_url="https://sts.amazonaws.com"))
    assert not retry_on_session_error(ValueError("bla"))
