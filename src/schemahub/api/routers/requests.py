"""
Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from schemahub.core.schema_models import SchemaRecord, SchemaReference
from schemahub.core.typing import Subject, Version


class SchemaReferenceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject: str = Field(min_length=1)
    schema_format: str = Field(alias="format", min_length=1)
    version: int = Field(ge=1)

    def to_reference(self) -> SchemaReference:
        return SchemaReference(
            subject=Subject(self.subject),
            schema_format=self.schema_format,
            version=Version(self.version),
        )


class SchemaRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject: str = Field(min_length=1)
    schema_format: str = Field(alias="format", min_length=1)
    definition: str
    references: list[SchemaReferenceModel] = []


class SchemaResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    subject: str
    schema_format: str = Field(alias="format")
    version: int
    definition: str
    references: list[SchemaReferenceModel] = []

    @staticmethod
    def from_record(record: SchemaRecord) -> SchemaResponse:
        return SchemaResponse.model_validate(record.to_dict())
