"""
Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import Mapping
from fastapi import FastAPI
from schemahub.client import Result
from schemahub.core.typing import JsonData
from schemahub.core.utils import json_encode

import httpx

user_v1_json = {
    "type": "record",
    "name": "User",
    "namespace": "com.example",
    "fields": [
        {"name": "name", "type": "string"},
        {"name": "favorite_number", "type": ["null", "int"], "default": None},
        {"name": "favorite_color", "type": ["null", "string"], "default": None},
    ],
}

user_v2_json = {
    **user_v1_json,
    "fields": [
        *user_v1_json["fields"],
        {"name": "favorite_place", "type": "string", "default": "NYC"},
    ],
}

# Adds a field without a default, a reader of this schema cannot read v1 data.
user_v3_json = {
    **user_v1_json,
    "fields": [
        *user_v1_json["fields"],
        {"name": "age", "type": "int"},
    ],
}

address_json = {
    "type": "record",
    "name": "Address",
    "namespace": "com.example",
    "fields": [
        {"name": "street", "type": "string"},
        {"name": "city", "type": "string"},
    ],
}

customer_json = {
    "type": "record",
    "name": "Customer",
    "namespace": "com.example",
    "fields": [
        {"name": "name", "type": "string"},
        {"name": "address", "type": "com.example.Address"},
    ],
}

schema_user_v1 = json_encode(user_v1_json)
schema_user_v2 = json_encode(user_v2_json)
schema_user_v3 = json_encode(user_v3_json)
schema_address = json_encode(address_json)
schema_customer = json_encode(customer_json)

json_address = {
    "$id": "https://example.com/address.schema.json",
    "title": "Address",
    "type": "object",
    "properties": {
        "street": {"type": "string"},
        "city": {"type": "string"},
    },
    "required": ["city"],
}

json_person_v1 = {
    "title": "Person",
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "age": {"type": "integer"},
    },
    "required": ["name"],
}

json_person_v2 = {
    **json_person_v1,
    "properties": {
        **json_person_v1["properties"],
        "country": {"type": "string", "default": "FI"},
    },
}

schema_json_address = json_encode(json_address)
schema_json_person_v1 = json_encode(json_person_v1)
schema_json_person_v2 = json_encode(json_person_v2)


class AsgiClient:
    """Serves `schemahub.client.Client` requests from an in-process application.

    Every request is recorded as (method, path) in `requests`.
    """

    def __init__(self, app: FastAPI) -> None:
        self.requests: list[tuple[str, str]] = []
        self._client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://schemahub.test")

    def requests_of(self, method: str) -> list[str]:
        return [path for request_method, path in self.requests if request_method == method]

    async def _request(self, method: str, path: str, json: JsonData | None = None) -> Result:
        url = f"/{path}"
        self.requests.append((method, url))
        response = await self._client.request(method, url, json=json)
        json_result = response.json() if response.content else {}
        return Result(response.status_code, json_result, headers=response.headers)

    async def get(self, path: str, headers: dict | None = None, params: Mapping[str, str] | None = None) -> Result:
        return await self._request("GET", path)

    async def delete(self, path: str, headers: dict | None = None) -> Result:
        return await self._request("DELETE", path)

    async def post(self, path: str, json: JsonData, headers: dict | None = None) -> Result:
        return await self._request("POST", path, json=json)

    async def close(self) -> None:
        await self._client.aclose()
