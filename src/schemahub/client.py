"""
schemahub - http client

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from aiohttp import BasicAuth, ClientResponse, ClientSession, ClientTimeout
from collections.abc import Awaitable, Callable, Mapping
from schemahub.core.typing import JsonData
from schemahub.core.utils import json_decode, JSONDecodeError
from typing import Any
from urllib.parse import urljoin

import logging
import ssl

LOG = logging.getLogger(__name__)

SessionFactory = Callable[..., Awaitable[ClientSession]]


async def _new_session(*, auth: BasicAuth | None = None, timeout: ClientTimeout | None = None) -> ClientSession:
    return ClientSession(auth=auth, timeout=timeout)


class Result:
    """Status, decoded body and headers of one registry response."""

    def __init__(self, status: int, json_result: JsonData, headers: Mapping | None = None) -> None:
        self.status_code = status
        self.json_result = json_result
        self.headers = headers or {}

    def json(self) -> JsonData:
        return self.json_result

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def __repr__(self) -> str:
        return f"Result(status={self.status_code}, json_result={self.json_result!r})"


async def _read_result(response: ClientResponse) -> Result:
    body = await response.text()
    if not body:
        return Result(response.status, {}, headers=response.headers)
    try:
        decoded = json_decode(body)
    except JSONDecodeError:
        # Proxies and load balancers answer errors with plain text or html.
        decoded = {"message": body}
    return Result(response.status, decoded, headers=response.headers)


class Client:
    """Thin aiohttp wrapper rooted at the registry base url.

    The session is opened on the first request, aiohttp sessions are bound
    to the event loop they were created in.
    """

    def __init__(
        self,
        server_uri: str | None = None,
        client_factory: SessionFactory = _new_session,
        server_ca: str | None = None,
        session_auth: BasicAuth | None = None,
        timeout: float | None = None,
    ) -> None:
        self.server_uri = server_uri or ""
        self.client_factory = client_factory
        self.session_auth = session_auth
        self.timeout = None if timeout is None else ClientTimeout(total=timeout)
        self.ssl_mode: bool | ssl.SSLContext = False
        if server_ca is not None:
            self.ssl_mode = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            self.ssl_mode.load_verify_locations(cafile=server_ca)
        self._session: ClientSession | None = None

    def path_for(self, path: str) -> str:
        return urljoin(self.server_uri, path)

    async def get_client(self) -> ClientSession:
        if self._session is None:
            self._session = await self.client_factory(auth=self.session_auth, timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session is None:
            return
        try:
            await self._session.close()
        except Exception:  # pylint: disable=broad-except
            LOG.exception("Could not close registry session")
        finally:
            self._session = None

    async def _request(self, method: str, path: str, headers: dict[str, str], **kwargs: Any) -> Result:
        session = await self.get_client()
        send = getattr(session, method)
        async with send(self.path_for(path), headers=headers, ssl=self.ssl_mode, **kwargs) as response:
            return await _read_result(response)

    async def get(self, path: str, headers: dict[str, str] | None = None, params: Mapping[str, str] | None = None) -> Result:
        return await self._request("get", path, headers or {}, params=params)

    async def delete(self, path: str, headers: dict[str, str] | None = None) -> Result:
        return await self._request("delete", path, headers or {})

    async def post(self, path: str, json: JsonData, headers: dict[str, str] | None = None) -> Result:
        return await self._request("post", path, headers or {"Content-Type": "application/json"}, json=json)
