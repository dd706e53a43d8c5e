"""
schemahub - errors

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""


class InvalidVersion(Exception):
    pass


class InvalidSubject(Exception):
    pass


class InvalidSchema(Exception):
    pass


class InvalidReferences(InvalidSchema):
    """A reference names a record that does not exist."""


class UnsupportedFormat(Exception):
    pass


class SchemaNotFound(Exception):
    pass


class SchemaDeletionNotAllowed(Exception):
    def __init__(self, message: str = "Schema deletion is not permitted on this server") -> None:
        super().__init__(message)


class VersionConflict(Exception):
    """Raised by a store when (subject, format, version) is already taken."""
