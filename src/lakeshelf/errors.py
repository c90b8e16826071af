"""Structured error handling with context + cause + fix pattern.

All lakeshelf errors follow a consistent pattern that provides:
- Context: What operation was being attempted
- Cause: Why it failed
- Fix: How to resolve the issue
"""

from __future__ import annotations


class LakeshelfError(Exception):
    """Base error with structured messaging.

    All lakeshelf errors inherit from this class and provide
    context, cause, and fix information.
    """

    def __init__(self, context: str, cause: str, fix: str) -> None:
        self.context = context
        self.cause = cause
        self.fix = fix
        message = f"{context}\n\nCause: {cause}\n\nFix: {fix}"
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serialize error to structured dict for JSON output."""
        return {
            "error": True,
            "code": type(self).__name__,
            "context": self.context,
            "cause": self.cause,
            "fix": self.fix,
        }


class ArgumentError(LakeshelfError, ValueError):
    """A required argument was missing, empty or malformed."""

    def __init__(self, operation: str, argument: str, cause: str) -> None:
        self.argument = argument
        super().__init__(
            context=f"{operation}: validating argument '{argument}'",
            cause=cause,
            fix=f"Pass a valid value for '{argument}'",
        )


class SchemaError(LakeshelfError):
    """Columnar schema could not be built or is invalid."""

    pass


class NoSerializableFieldsError(SchemaError):
    """Record type exposes no fields that can become columns."""

    def __init__(self, type_name: str) -> None:
        super().__init__(
            context=f"Building columnar schema for '{type_name}'",
            cause=f"No serializable fields found on type {type_name}",
            fix="Declare at least one constructor field on the dataclass or pydantic model, or pass an explicit schema",
        )


class HydrationError(LakeshelfError):
    """A stored column value could not be converted to the declared field type."""

    def __init__(self, type_name: str, field: str, value: object, target: str) -> None:
        self.field = field
        super().__init__(
            context=f"Reading field '{field}' of '{type_name}'",
            cause=f"Cannot convert {type(value).__name__} value {value!r} to {target}",
            fix="Check that the stored file was written for this record type, or adjust the field's type",
        )


class DecodeError(LakeshelfError):
    """Encoded data is malformed or does not match the record type."""

    def __init__(self, kind: str, type_name: str, details: str) -> None:
        super().__init__(
            context=f"Decoding {kind} data as '{type_name}'",
            cause=details,
            fix="Check that the file holds well-formed data written for this record type",
        )


class EmptyResultError(LakeshelfError):
    """A single item was requested but nothing was decoded."""

    def __init__(self, source: str) -> None:
        super().__init__(
            context=f"Reading a single item from {source}",
            cause="No items found in the file",
            fix="Check the path points at a non-empty file, or read a collection instead",
        )


class ConfigurationError(LakeshelfError):
    """Configuration file or settings related errors."""

    pass


class ConfigNotFoundError(ConfigurationError):
    """Configuration file not found."""

    def __init__(self, path: str) -> None:
        super().__init__(
            context=f"Loading configuration from '{path}'",
            cause="Configuration file not found",
            fix=f"Create a lakeshelf.yaml file at '{path}' or set LAKESHELF_CONNECTION_STRING",
        )


class ConfigValidationError(ConfigurationError):
    """Configuration validation failed."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(
            context=f"Validating configuration from '{path}'",
            cause=details,
            fix="Check the configuration matches the expected schema. See the README for lakeshelf.yaml format.",
        )


class StorageError(LakeshelfError):
    """Storage operation errors."""

    pass


class PathExistsError(StorageError):
    """Destination already exists and overwriting was not allowed."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            context=f"Uploading to '{path}'",
            cause="A file already exists at the destination",
            fix="Pass overwrite=True or choose another file name",
        )


class UploadError(StorageError):
    """Upload failed even after the delete-then-reupload fallback."""

    def __init__(self, path: str, original: BaseException) -> None:
        self.path = path
        self.original = original
        super().__init__(
            context=f"Uploading to '{path}'",
            cause=f"Re-upload after deleting the existing file failed; original conflict: {original}",
            fix="Check write permissions on the destination and retry",
        )
