"""
Field transcoding between record fields and stored documents.

Outbound documents are rewritten from declared identifiers to wire names.
Inbound documents are rebuilt onto an all-defaults instance of the record
type: only declared, non-hidden columns present in the stored document are
copied over, everything else keeps its default value.

This module is part of MDB_MODEL - MongoDB Model Mapper.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from .columns import ColumnAttr, Columns
from .constants import ID_FIELD
from .exceptions import ConfigurationError, DocumentDecodeError
from .query import QueryState

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class FieldTranscoder(Generic[RecordT]):
    """
    Maps documents between a record type and its stored representation.

    Args:
        record_cls: Pydantic model class; must build with no arguments
        columns: Column configuration keyed by declared identifier

    Raises:
        ConfigurationError: If ``record_cls`` has no default state
    """

    def __init__(self, record_cls: type[RecordT], columns: Columns) -> None:
        self.record_cls = record_cls
        self.columns: Columns = dict(columns)
        try:
            record_cls()
        except ValidationError as e:
            raise ConfigurationError(
                f"Record type '{record_cls.__name__}' must be constructible with no "
                f"arguments; every field needs a default",
                config_key="record_cls",
                config_value=record_cls.__name__,
            ) from e

    def with_columns(self, extra: Mapping[str, ColumnAttr]) -> "FieldTranscoder[RecordT]":
        """Copy of this transcoder with additional columns appended."""
        return FieldTranscoder(self.record_cls, {**self.columns, **extra})

    def _renames(self) -> list[tuple[str, str]]:
        return [
            (identifier, attr.wire_name)
            for identifier, attr in self.columns.items()
            if attr.wire_name and attr.wire_name != identifier
        ]

    def rename_field(self, document: Mapping[str, Any], is_operator_form: bool) -> dict[str, Any]:
        """
        Rewrite declared identifiers to wire names.

        Args:
            document: Plain document, or an update document keyed by operators
            is_operator_form: Rename inside each operator's sub-document instead
                of at the top level

        Returns:
            A new document; the input is left untouched
        """
        renames = self._renames()
        if not is_operator_form:
            return _rename_keys(document, renames)

        renamed: dict[str, Any] = {}
        for operator, payload in document.items():
            if isinstance(payload, Mapping):
                renamed[operator] = _rename_keys(payload, renames)
            else:
                renamed[operator] = payload
        return renamed

    def hidden_fields(self, state: QueryState) -> list[str]:
        """Hidden columns not made visible for this operation."""
        return [
            identifier
            for identifier, attr in self.columns.items()
            if attr.hidden and identifier not in state.visible_fields
        ]

    def template(self) -> dict[str, Any]:
        """All-defaults instance of the record type, serialized."""
        return self.record_cls().model_dump(by_alias=True)

    def clear(self, document: Mapping[str, Any], hidden_fields: Iterable[str]) -> RecordT:
        """
        Rebuild a typed record from a stored document.

        Starts from ``template()`` and copies, for every declared column that is
        not hidden, the value stored under the column's wire name onto its
        identifier. Absent and hidden fields keep their default values.

        Raises:
            DocumentDecodeError: If the rebuilt document does not validate
        """
        hidden = set(hidden_fields)
        data = self.template()
        for identifier, attr in self.columns.items():
            if identifier in hidden:
                continue
            stored = attr.stored_name(identifier)
            if stored in document:
                data[identifier] = document[stored]

        try:
            return self.record_cls.model_validate(data)
        except ValidationError as e:
            logger.error(
                f"Stored document does not match record type "
                f"'{self.record_cls.__name__}': {e.error_count()} error(s)"
            )
            raise DocumentDecodeError(
                f"Cannot rebuild '{self.record_cls.__name__}' from stored document",
                record_type=self.record_cls.__name__,
                document_id=document.get(ID_FIELD),
                context={"errors": [err["loc"] for err in e.errors()]},
            ) from e

    def inner_to_doc(self, record: RecordT) -> dict[str, Any]:
        """Serialize a record and rewrite it to wire names."""
        return self.rename_field(record.model_dump(by_alias=True), False)


def _rename_keys(document: Mapping[str, Any], renames: list[tuple[str, str]]) -> dict[str, Any]:
    renamed = dict(document)
    for identifier, wire_name in renames:
        if identifier in renamed:
            renamed[wire_name] = renamed.pop(identifier)
    return renamed
