"""
Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from schemahub.content_type import CONTENT_TYPE_HEADER
from schemahub.core.utils import json_encode
from schemahub.core.validators import AvroSchemaValidator, JsonSchemaValidator
from schemahub.serialization import (
    DecodeConfigurationError,
    default_naming_strategy,
    FieldTypeMismatchError,
    GenericRecord,
    InvalidMessageHeader,
    InvalidMessageSchema,
    InvalidPayload,
    Message,
    MissingDefaultError,
    qualified_naming_strategy,
    SchemaResolutionError,
    SchemaResolver,
)
from tests.utils import (
    AsgiClient,
    schema_json_person_v1,
    schema_json_person_v2,
    schema_user_v1,
    schema_user_v2,
    schema_user_v3,
    user_v1_json,
)

import pytest

ResolverFactory = Callable[..., SchemaResolver]


@dataclass
class User:
    name: str
    favorite_number: int | None = None
    favorite_color: str | None = None


@dataclass
class UserWithPlace:
    name: str
    favorite_number: int | None = None
    favorite_color: str | None = None
    favorite_place: str = "NYC"


@dataclass
class Order:
    order_id: str
    quantity: int
    price: float
    note: str | None = None


@dataclass
class Unknown:
    value: int


def _user_v1(value: dict) -> GenericRecord:
    return GenericRecord(schema=AvroSchemaValidator().parse(schema_user_v1), value=value)


def _user_v2(value: dict) -> GenericRecord:
    return GenericRecord(schema=AvroSchemaValidator().parse(schema_user_v2), value=value)


class TestNamingStrategies:
    def test_default(self) -> None:
        assert default_naming_strategy("User", "com.example", "avro") == "user"

    def test_qualified(self) -> None:
        assert qualified_naming_strategy("User", "com.example", "avro") == "com.example.User"
        assert qualified_naming_strategy("User", None, "json") == "User"


class TestMessage:
    def test_header_lookup_ignores_case(self) -> None:
        message = Message(value=b"", headers={"ContentType": "application/vnd.user.v1+avro"})

        assert message.header(CONTENT_TYPE_HEADER) == "application/vnd.user.v1+avro"
        assert message.header("missing") is None


async def test_generic_record_round_trip(resolver_factory: ResolverFactory) -> None:
    resolver = resolver_factory()
    value = {"name": "Ann", "favorite_number": 7, "favorite_color": None}

    message = await resolver.serialize(_user_v1(value))

    assert message.headers == {CONTENT_TYPE_HEADER: "application/vnd.user.v1+avro"}
    decoded = await resolver_factory().deserialize(message)
    assert isinstance(decoded, GenericRecord)
    assert decoded.value == value
    assert decoded.schema.fullname == "com.example.User"


async def test_new_versions_get_new_content_types(resolver_factory: ResolverFactory) -> None:
    resolver = resolver_factory()

    first = await resolver.serialize(_user_v1({"name": "Ann", "favorite_number": None, "favorite_color": None}))
    second = await resolver.serialize(
        _user_v2({"name": "Ann", "favorite_number": None, "favorite_color": None, "favorite_place": "Oslo"})
    )

    assert first.headers[CONTENT_TYPE_HEADER] == "application/vnd.user.v1+avro"
    assert second.headers[CONTENT_TYPE_HEADER] == "application/vnd.user.v2+avro"


async def test_outbound_schema_is_cached(resolver_factory: ResolverFactory, asgi_client: AsgiClient) -> None:
    resolver = resolver_factory()

    for index in range(3):
        await resolver.serialize(_user_v1({"name": f"user-{index}", "favorite_number": index, "favorite_color": None}))

    assert asgi_client.requests_of("POST") == ["/"]


async def test_outbound_schema_without_cache(resolver_factory: ResolverFactory, asgi_client: AsgiClient) -> None:
    resolver = resolver_factory(registry_client_cached=False)

    for index in range(3):
        await resolver.serialize(_user_v1({"name": f"user-{index}", "favorite_number": index, "favorite_color": None}))

    # Registration is idempotent, every call lands on the same version.
    assert asgi_client.requests_of("POST") == ["/", "/", "/"]


async def test_backward_compatibility(resolver_factory: ResolverFactory) -> None:
    message = await resolver_factory().serialize(
        _user_v1({"name": "Ann", "favorite_number": 7, "favorite_color": "blue"})
    )

    decoded = await resolver_factory(reader_definition=schema_user_v2).deserialize(message)

    assert decoded.value == {"name": "Ann", "favorite_number": 7, "favorite_color": "blue", "favorite_place": "NYC"}


async def test_forward_compatibility(resolver_factory: ResolverFactory) -> None:
    producer = resolver_factory()
    await producer.serialize(_user_v1({"name": "Ann", "favorite_number": None, "favorite_color": None}))
    message = await producer.serialize(
        _user_v2({"name": "Bob", "favorite_number": 3, "favorite_color": None, "favorite_place": "Oslo"})
    )

    decoded = await resolver_factory(reader_definition=schema_user_v1).deserialize(message)

    assert decoded.value == {"name": "Bob", "favorite_number": 3, "favorite_color": None}


async def test_decode_into_native_type(resolver_factory: ResolverFactory) -> None:
    message = await resolver_factory().serialize(
        _user_v1({"name": "Ann", "favorite_number": 7, "favorite_color": None})
    )

    user = await resolver_factory(reader_definition=schema_user_v2).deserialize(message, UserWithPlace)

    assert user == UserWithPlace(name="Ann", favorite_number=7, favorite_place="NYC")


async def test_native_type_without_reader_schema(resolver_factory: ResolverFactory, asgi_client: AsgiClient) -> None:
    message = await resolver_factory().serialize(
        _user_v1({"name": "Ann", "favorite_number": 7, "favorite_color": None})
    )

    with pytest.raises(DecodeConfigurationError):
        await resolver_factory().deserialize(message, User)

    assert asgi_client.requests_of("GET") == []


async def test_missing_default(resolver_factory: ResolverFactory) -> None:
    message = await resolver_factory().serialize(
        _user_v1({"name": "Ann", "favorite_number": 7, "favorite_color": None})
    )

    with pytest.raises(MissingDefaultError, match="age"):
        await resolver_factory(reader_definition=schema_user_v3).deserialize(message)


async def test_field_type_mismatch(resolver_factory: ResolverFactory) -> None:
    message = await resolver_factory().serialize(
        _user_v1({"name": "Ann", "favorite_number": 7, "favorite_color": None})
    )
    reader = json_encode(
        {
            **user_v1_json,
            "fields": [{"name": "name", "type": "string"}, {"name": "favorite_number", "type": "string"}],
        }
    )

    with pytest.raises(FieldTypeMismatchError, match="favorite_number"):
        await resolver_factory(reader_definition=reader).deserialize(message)


item_json = {"type": "record", "name": "Item", "fields": [{"name": "sku", "type": "string"}]}


def _basket(item: dict) -> str:
    return json_encode(
        {
            "type": "record",
            "name": "Basket",
            "namespace": "com.example",
            "fields": [
                {"name": "items", "type": {"type": "array", "items": item}},
                {"name": "by_shelf", "type": {"type": "map", "values": "Item"}},
                {"name": "featured", "type": ["null", "Item"], "default": None},
            ],
        }
    )


async def test_projection_through_arrays_maps_and_unions(resolver_factory: ResolverFactory) -> None:
    writer = AvroSchemaValidator().parse(_basket(item_json))
    colored_item = {**item_json, "fields": [*item_json["fields"], {"name": "color", "type": "string", "default": "black"}]}
    reader = _basket(colored_item)
    producer = resolver_factory()
    full = await producer.serialize(
        GenericRecord(
            schema=writer,
            value={"items": [{"sku": "a"}], "by_shelf": {"top": {"sku": "b"}}, "featured": {"sku": "c"}},
        )
    )
    empty = await producer.serialize(GenericRecord(schema=writer, value={"items": [], "by_shelf": {}, "featured": None}))
    consumer = resolver_factory(reader_definition=reader)

    decoded = await consumer.deserialize(full)

    assert decoded.value == {
        "items": [{"sku": "a", "color": "black"}],
        "by_shelf": {"top": {"sku": "b", "color": "black"}},
        "featured": {"sku": "c", "color": "black"},
    }
    assert (await consumer.deserialize(empty)).value == {"items": [], "by_shelf": {}, "featured": None}


async def test_reader_format_mismatch(resolver_factory: ResolverFactory) -> None:
    message = await resolver_factory().serialize(
        _user_v1({"name": "Ann", "favorite_number": 7, "favorite_color": None})
    )
    resolver = resolver_factory()
    resolver.reader_schema = JsonSchemaValidator().parse(schema_json_person_v1)

    with pytest.raises(DecodeConfigurationError):
        await resolver.deserialize(message)


async def test_writer_schema_is_cached(resolver_factory: ResolverFactory, asgi_client: AsgiClient) -> None:
    message = await resolver_factory().serialize(
        _user_v1({"name": "Ann", "favorite_number": 7, "favorite_color": None})
    )
    consumer = resolver_factory()

    await consumer.deserialize(message)
    await consumer.deserialize(message)

    assert asgi_client.requests_of("GET") == ["/user/avro/v1"]


async def test_writer_schema_without_cache(resolver_factory: ResolverFactory, asgi_client: AsgiClient) -> None:
    message = await resolver_factory().serialize(
        _user_v1({"name": "Ann", "favorite_number": 7, "favorite_color": None})
    )
    consumer = resolver_factory(registry_client_cached=False)

    await consumer.deserialize(message)
    await consumer.deserialize(message)

    assert asgi_client.requests_of("GET") == ["/user/avro/v1", "/user/avro/v1"]


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {CONTENT_TYPE_HEADER: "application/json"},
        {CONTENT_TYPE_HEADER: "application/vnd.user.v0+avro"},
    ],
)
async def test_invalid_message_header(resolver_factory: ResolverFactory, headers: dict[str, str]) -> None:
    with pytest.raises(InvalidMessageHeader):
        await resolver_factory().deserialize(Message(value=b"", headers=headers))


async def test_truncated_payload(resolver_factory: ResolverFactory) -> None:
    message = await resolver_factory().serialize(
        _user_v1({"name": "Ann", "favorite_number": 7, "favorite_color": "blue"})
    )

    with pytest.raises(InvalidPayload):
        await resolver_factory().deserialize(Message(value=message.value[:3], headers=message.headers))


async def test_payload_not_fitting_schema(resolver_factory: ResolverFactory) -> None:
    with pytest.raises(InvalidMessageSchema):
        await resolver_factory().serialize(_user_v1({"name": 42, "favorite_number": None, "favorite_color": None}))


class TestDynamicSchemaGeneration:
    async def test_avro(self, resolver_factory: ResolverFactory) -> None:
        resolver = resolver_factory(dynamic_schema_generation_enabled=True)
        order = Order(order_id="o-1", quantity=2, price=9.5)

        message = await resolver.serialize(order)

        assert message.headers[CONTENT_TYPE_HEADER] == "application/vnd.order.v1+avro"
        decoded = await resolver_factory().deserialize(message)
        assert decoded.value == {"order_id": "o-1", "quantity": 2, "price": 9.5, "note": None}
        assert decoded.schema.namespace == __name__

    async def test_json(self, resolver_factory: ResolverFactory) -> None:
        resolver = resolver_factory(dynamic_schema_generation_enabled=True)
        order = Order(order_id="o-1", quantity=2, price=9.5, note="fragile")

        message = await resolver.serialize(order, "json")

        assert message.headers[CONTENT_TYPE_HEADER] == "application/vnd.order.v1+json"
        decoded = await resolver_factory().deserialize(message)
        assert decoded.value == {"order_id": "o-1", "quantity": 2, "price": 9.5, "note": "fragile"}

    async def test_qualified_subject(self, resolver_factory: ResolverFactory) -> None:
        resolver = resolver_factory(dynamic_schema_generation_enabled=True, subject_naming_strategy="qualified")

        message = await resolver.serialize(Order(order_id="o-1", quantity=2, price=9.5))

        assert message.headers[CONTENT_TYPE_HEADER] == f"application/vnd.{__name__}.Order.v1+avro"

    async def test_not_a_dataclass(self, resolver_factory: ResolverFactory) -> None:
        resolver = resolver_factory(dynamic_schema_generation_enabled=True)

        with pytest.raises(SchemaResolutionError):
            await resolver.serialize({"order_id": "o-1"})


class TestStaticSchemas:
    @pytest.fixture(name="schema_dir")
    def fixture_schema_dir(self, tmp_path: Path) -> Path:
        (tmp_path / "user.avsc").write_text(schema_user_v1)
        return tmp_path

    async def test_resolves_by_type_name(self, resolver_factory: ResolverFactory, schema_dir: Path) -> None:
        resolver = resolver_factory(schema_locations=[schema_dir])

        message = await resolver.serialize(User(name="Ann", favorite_number=7))

        assert message.headers[CONTENT_TYPE_HEADER] == "application/vnd.user.v1+avro"
        decoded = await resolver_factory().deserialize(message)
        assert decoded.value == {"name": "Ann", "favorite_number": 7, "favorite_color": None}

    async def test_qualified_subject(self, resolver_factory: ResolverFactory, schema_dir: Path) -> None:
        resolver = resolver_factory(schema_locations=[schema_dir], subject_naming_strategy="qualified")

        message = await resolver.serialize(User(name="Ann"))

        assert message.headers[CONTENT_TYPE_HEADER] == "application/vnd.com.example.User.v1+avro"

    async def test_no_matching_schema(self, resolver_factory: ResolverFactory, schema_dir: Path) -> None:
        resolver = resolver_factory(schema_locations=[schema_dir])

        with pytest.raises(SchemaResolutionError):
            await resolver.serialize(Unknown(value=1))

    async def test_native_round_trip(self, resolver_factory: ResolverFactory, schema_dir: Path) -> None:
        message = await resolver_factory(schema_locations=[schema_dir]).serialize(User(name="Ann", favorite_color="red"))

        user = await resolver_factory(reader_definition=schema_user_v1).deserialize(message, User)

        assert user == User(name="Ann", favorite_color="red")

    async def test_reader_schema_from_file(self, resolver_factory: ResolverFactory, tmp_path: Path) -> None:
        reader_path = tmp_path / "reader.avsc"
        reader_path.write_text(schema_user_v2)
        message = await resolver_factory().serialize(
            _user_v1({"name": "Ann", "favorite_number": None, "favorite_color": None})
        )

        user = await resolver_factory(reader_schema=reader_path).deserialize(message, UserWithPlace)

        assert user == UserWithPlace(name="Ann")


class TestJsonSchemaPayloads:
    async def test_round_trip(self, resolver_factory: ResolverFactory) -> None:
        schema = JsonSchemaValidator().parse(schema_json_person_v1)
        message = await resolver_factory().serialize(GenericRecord(schema=schema, value={"name": "Ann", "age": 30}))

        assert message.headers[CONTENT_TYPE_HEADER] == "application/vnd.person.v1+json"
        decoded = await resolver_factory().deserialize(message)
        assert decoded.value == {"name": "Ann", "age": 30}

    async def test_reader_defaults(self, resolver_factory: ResolverFactory) -> None:
        schema = JsonSchemaValidator().parse(schema_json_person_v1)
        message = await resolver_factory().serialize(GenericRecord(schema=schema, value={"name": "Ann"}))

        consumer = resolver_factory(reader_definition=schema_json_person_v2, schema_format="json")

        decoded = await consumer.deserialize(message)

        assert decoded.value == {"name": "Ann", "country": "FI"}

    async def test_invalid_payload(self, resolver_factory: ResolverFactory) -> None:
        schema = JsonSchemaValidator().parse(schema_json_person_v1)

        with pytest.raises(InvalidMessageSchema):
            await resolver_factory().serialize(GenericRecord(schema=schema, value={"age": 30}))

    async def test_requested_format_must_match_record(self, resolver_factory: ResolverFactory) -> None:
        schema = JsonSchemaValidator().parse(schema_json_person_v1)

        with pytest.raises(SchemaResolutionError):
            await resolver_factory().serialize(GenericRecord(schema=schema, value={"name": "Ann"}), "avro")
