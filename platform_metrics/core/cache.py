from __future__ import annotations
import hashlib
import json
from datetime import date, datetime
from typing import Any, Mapping, Optional

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from platform_metrics.core.config import settings

CACHE_KEY_PREFIX = "platform-metrics"

# ---------------------------------------------------------------------------
# Serialização determinística (ETag e chave de cache)
# ---------------------------------------------------------------------------

def _json_default(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Tipo não serializável: {type(value).__name__}")


def dumps_deterministic(obj: Any) -> bytes:
    return json.dumps(
        obj,
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=True,
        default=_json_default,
    ).encode("utf-8")


def make_etag_from_bytes(body: bytes) -> str:
    return hashlib.md5(body).hexdigest()


def make_cache_key(report: str, shape: Mapping[str, Any]) -> str:
    """
    Build the cache key for one report type and its full request shape.

    The shape is serialised with sorted keys, so two requests that differ only
    in parameter order share the same entry.
    """
    digest = hashlib.md5(dumps_deterministic(dict(shape))).hexdigest()
    return f"{CACHE_KEY_PREFIX}:{report}:{digest}"


# ---------------------------------------------------------------------------
# Aplicação de headers (Cache-Control, ETag, Vary)
# ---------------------------------------------------------------------------

def _cache_control_value(max_age: int, swr: Optional[int]) -> str:
    swr = settings.CACHE_SWR if swr is None else swr
    return f"max-age={int(max_age)}, stale-while-revalidate={int(swr)}"


def apply_cache_headers(
    response: Response,
    etag: str,
    *,
    max_age: int,
    swr: Optional[int] = None,
) -> None:
    """Aplica ETag e Cache-Control na resposta."""
    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = _cache_control_value(max_age, swr)


# ---------------------------------------------------------------------------
# Resposta JSON com ETag (+ 304 se bater If-None-Match)
# ---------------------------------------------------------------------------

def etag_json(
    request: Request,
    payload: Any,
    *,
    max_age: int,
    status_code: int = 200,
    swr: Optional[int] = None,
) -> Response:
    body = dumps_deterministic(payload)
    etag = make_etag_from_bytes(body)

    inm = request.headers.get("If-None-Match")
    if inm and inm == etag:
        resp = Response(status_code=304)
        apply_cache_headers(resp, etag, max_age=max_age, swr=swr)
        return resp

    resp = Response(content=body, status_code=status_code, media_type=JSONResponse.media_type)
    apply_cache_headers(resp, etag, max_age=max_age, swr=swr)
    return resp
