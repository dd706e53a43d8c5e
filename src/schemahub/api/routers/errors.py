"""
Copyright (c) 2025 Aiven Ltd
See LICENSE for details
"""

from enum import Enum, unique
from fastapi import status


@unique
class SchemaErrorCodes(Enum):
    HTTP_BAD_REQUEST = status.HTTP_400_BAD_REQUEST
    HTTP_NOT_FOUND = status.HTTP_404_NOT_FOUND
    HTTP_METHOD_NOT_ALLOWED = status.HTTP_405_METHOD_NOT_ALLOWED
    HTTP_UNPROCESSABLE_ENTITY = status.HTTP_422_UNPROCESSABLE_ENTITY
    HTTP_INTERNAL_SERVER_ERROR = status.HTTP_500_INTERNAL_SERVER_ERROR
    UNSUPPORTED_FORMAT = 40001
    INVALID_SCHEMA = 40002
    INVALID_REFERENCES = 40003
    INVALID_SUBJECT = 40004
    SCHEMA_NOT_FOUND = 40401
    SCHEMA_DELETION_NOT_ALLOWED = 40501
