"""Riak HTTP API store client.

Talks to a Riak node over its HTTP interface::

    GET /buckets/{bucket}/keys/{key}    read value and X-Riak-Vclock
    PUT /buckets/{bucket}/keys/{key}    write value, vclock and Link header
    PUT /buckets/{bucket}/props         set bucket properties

Reads answered with ``300 Multiple Choices`` carry siblings; their values
are fetched as ``multipart/mixed`` and returned on ``StoredObject.siblings``.
"""

from __future__ import annotations

import json
from email.parser import BytesParser
from email.policy import HTTP
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from genesis.observability.logging import get_logger
from genesis.store.base import (
    ObjectNotFoundError,
    SaveMeta,
    StoreConnectionError,
    StoreError,
    StoredObject,
)

if TYPE_CHECKING:
    from genesis.graph.model import Link

log = get_logger(__name__)

DEFAULT_PORT = 8098
_DEFAULT_TIMEOUT = 30.0
_VCLOCK_HEADER = "X-Riak-Vclock"


def parse_store_address(address: str) -> str:
    """Turn a ``host:port`` argument into a base URL.

    Values that already carry a scheme are returned unchanged (minus a
    trailing slash); a bare host gets the default Riak HTTP port.

    Raises:
        ValueError: If the address is empty or the port is not a number.
    """
    address = address.strip()
    if not address:
        raise ValueError("store address is empty")
    if "://" in address:
        return address.rstrip("/")

    host, sep, port = address.partition(":")
    if not host:
        raise ValueError(f"store address {address!r} has no host")
    if not sep:
        return f"http://{host}:{DEFAULT_PORT}"
    if not port.isdigit():
        raise ValueError(f"store address {address!r} has an invalid port")
    return f"http://{host}:{port}"


def _object_path(bucket: str, key: str) -> str:
    return f"/buckets/{quote(bucket, safe='')}/keys/{quote(key, safe='')}"


def format_link_header(links: tuple[Link, ...] | list[Link]) -> str:
    """Render links in Riak's ``Link`` header syntax.

    Tags are percent-encoded like bucket and key, so quotes, commas and
    backslashes cannot break the header.
    """
    parts = []
    for link in links:
        part = f"<{_object_path(link.collection, link.key)}>"
        if link.tag:
            part += f'; riaktag="{quote(link.tag, safe="")}"'
        parts.append(part)
    return ", ".join(parts)


def _decode_json(body: bytes, where: str) -> dict[str, Any]:
    try:
        data = json.loads(body) if body else {}
    except json.JSONDecodeError as e:
        raise StoreError(f"{where}: response is not JSON ({e})") from e
    if not isinstance(data, dict):
        raise StoreError(f"{where}: expected a JSON object, got {type(data).__name__}")
    return data


def _parse_multipart(response: httpx.Response, where: str) -> list[dict[str, Any]]:
    content_type = response.headers.get("content-type", "")
    raw = f"Content-Type: {content_type}\r\n\r\n".encode() + response.content
    message = BytesParser(policy=HTTP).parsebytes(raw)
    if not message.is_multipart():
        raise StoreError(f"{where}: expected multipart siblings")
    values = []
    for part in message.iter_parts():
        body = part.get_payload(decode=True) or b""
        values.append(_decode_json(body, where))
    return values


class RiakHttpStore:
    """StoreClient implementation for the Riak HTTP API.

    Args:
        base_url: Node URL such as ``http://localhost:8098``.
        client: Optional pre-built ``httpx.AsyncClient`` (used by tests).
            When omitted the store creates and owns one.
        timeout: Request timeout in seconds for an owned client.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this store created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RiakHttpStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise StoreConnectionError(f"{method} {path}: {e}") from e

    # -- StoreClient -----------------------------------------------------------

    async def save_collection(self, name: str, properties: dict[str, Any]) -> None:
        path = f"/buckets/{quote(name, safe='')}/props"
        response = await self._request("PUT", path, json={"props": properties})
        if not response.is_success:
            raise StoreError(
                f"PUT {path}: HTTP {response.status_code} {response.text.strip()}",
                status=response.status_code,
            )
        log.debug("collection_configured", collection=name, properties=sorted(properties))

    async def get(self, collection: str, key: str) -> StoredObject:
        path = _object_path(collection, key)
        response = await self._request("GET", path)
        vclock = response.headers.get(_VCLOCK_HEADER)

        if response.status_code == 404:
            raise ObjectNotFoundError(collection, key)
        if response.status_code == 300:
            response = await self._request(
                "GET", path, headers={"Accept": "multipart/mixed"}
            )
            if response.status_code != 300:
                raise StoreError(
                    f"GET {path}: HTTP {response.status_code} fetching siblings",
                    status=response.status_code,
                )
            siblings = _parse_multipart(response, f"GET {path}")
            return StoredObject(
                payload=None,
                vclock=response.headers.get(_VCLOCK_HEADER, vclock),
                siblings=siblings,
            )
        if not response.is_success:
            raise StoreError(
                f"GET {path}: HTTP {response.status_code} {response.text.strip()}",
                status=response.status_code,
            )

        payload = _decode_json(response.content, f"GET {path}")
        return StoredObject(payload=payload, vclock=vclock, siblings=[payload])

    async def save(
        self, collection: str, key: str, payload: dict[str, Any], meta: SaveMeta
    ) -> None:
        path = _object_path(collection, key)
        headers = {"Content-Type": "application/json"}
        if meta.vclock is not None:
            headers[_VCLOCK_HEADER] = meta.vclock
        if meta.links:
            headers["Link"] = format_link_header(meta.links)

        response = await self._request(
            "PUT", path, content=json.dumps(payload).encode(), headers=headers
        )
        if not response.is_success:
            raise StoreError(
                f"PUT {path}: HTTP {response.status_code} {response.text.strip()}",
                status=response.status_code,
            )
