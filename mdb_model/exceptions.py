"""
Custom exceptions for MDB_MODEL.

Usage errors and decoding errors raised by the model layer. Errors surfaced by
the driver (``pymongo.errors.PyMongoError`` and subclasses) are not wrapped;
they reach the caller unchanged.
"""

from typing import Any


class MongoModelError(RuntimeError):
    """
    Base exception for MDB_MODEL errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (collection,
                 operation, field, etc.)
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class FilterRequiredError(MongoModelError):
    """
    Raised when an update or delete is attempted without any filter clause.

    Raised before any database call is made, so an unfiltered write can never
    reach the whole collection.

    Attributes:
        kind: Always ``"invalid_input"``
        operation: The verb that was refused ("update", "delete")
        collection: Collection the verb targeted (if known)
    """

    kind = "invalid_input"

    def __init__(
        self,
        operation: str,
        collection: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        context = context or {}
        context["operation"] = operation
        if collection:
            context["collection"] = collection
        super().__init__("where not set.", context=context)
        self.operation = operation
        self.collection = collection


class DocumentDecodeError(MongoModelError):
    """
    Raised when a stored document cannot be rebuilt into its record type.

    This points at a mismatch between the declared columns and the data in
    the collection, so the read that hit it is aborted.

    Attributes:
        record_type: Name of the record class
        document_id: ``_id`` of the offending document (if present)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        record_type: str | None = None,
        document_id: Any = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        context = context or {}
        if record_type:
            context["record_type"] = record_type
        if document_id is not None:
            context["document_id"] = document_id
        super().__init__(message, context=context)
        self.record_type = record_type
        self.document_id = document_id


class ConfigurationError(MongoModelError):
    """
    Raised when configuration is invalid or missing.

    Covers malformed column metadata, record types that cannot be built in a
    default state, and unreadable settings.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        config_value: Any | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize the configuration error.

        Args:
            message: Error message
            config_key: Configuration key that caused the error (if available)
            config_value: Configuration value that caused the error (if available)
            context: Additional context information
        """
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value
