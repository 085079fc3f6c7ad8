import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Optional

from tflib.logger import log
from tflib.types import DecoratedFn

UTC_Date_Format = "%Y-%m-%dT%H:%M:%SZ"
RFC1123_Date_Format = "%a, %d %b %Y %H:%M:%S %Z"


def utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_str(dto: Optional[datetime] = None) -> str:
    dt = dto if dto is not None else utc()
    if dt.tzinfo is not None and dt.tzname() != "UTC":
        offset = dt.tzinfo.utcoffset(dt)
        if offset is not None and offset.total_seconds() != 0:
            dt = (dt - offset).replace(tzinfo=timezone.utc)
    return dt.strftime(UTC_Date_Format)


def rfc1123_str(dt: datetime) -> str:
    """
    Render a timestamp the way HTTP headers do: Mon, 02 Jan 2006 15:04:05 UTC
    """
    return as_utc(dt).strftime(RFC1123_Date_Format)


def log_runtime(f: DecoratedFn) -> DecoratedFn:
    # arguments are not logged: request parameters can carry secrets
    @wraps(f)
    def timer(*args: Any, **kwargs: Any) -> Any:
        start = time.time()
        ret = f(*args, **kwargs)
        runtime = time.time() - start
        log.debug(f"Runtime of {f.__qualname__}: {runtime:.3f} seconds")
        return ret

    return timer  # type: ignore
