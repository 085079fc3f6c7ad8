from botocore.exceptions import ConnectionClosedError, CredentialRetrievalError
from prometheus_client import Counter

metrics_session_exceptions = Counter(
    "tf_provider_aws_session_exceptions_total",
    "Retried AWS Provider Session Exceptions",
)


def retry_on_session_error(e: Exception) -> bool:
    if isinstance(e, (ConnectionClosedError, CredentialRetrievalError)):
        metrics_session_exceptions.inc()
        return True
    return False


def global_region_by_partition(partition: str) -> str:
    if partition == "aws":
        return "us-east-1"
    elif partition == "aws-us-gov":
        return "us-gov-west-1"
    elif partition == "aws-cn":
        return "cn-north-1"
    else:
        return "us-east-1"


def dns_suffix_by_partition(partition: str) -> str:
    return "amazonaws.com.cn" if partition == "aws-cn" else "amazonaws.com"
