"""
Column metadata for typed records.

A column is the per-field declaration of how a record field is indexed,
whether it is hidden from reads by default, and which name it is stored under.
Columns arrive as a static configuration blob (a JSON object keyed by field
identifier) or are read off a pydantic record class declared with ``column()``.

This module is part of MDB_MODEL - MongoDB Model Mapper.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .constants import INDEX_ASCENDING, INDEX_DESCENDING
from .exceptions import ConfigurationError

COLUMN_METADATA_KEY = "mdb_column"
"""Key under ``json_schema_extra`` where ``column()`` stores its attributes."""


class ColumnAttr(BaseModel):
    """
    Declarative attributes of one record field.

    The short keys emitted by the code generator (``asc``, ``desc``,
    ``sphere2d``, ``text``, ``name``) are accepted as aliases.

    Example:
        ColumnAttr.model_validate({"asc": True, "unique": True})
        ColumnAttr(hidden=True, wire_name="pswd")
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ascending: bool = Field(False, validation_alias=AliasChoices("ascending", "asc"))
    descending: bool = Field(False, validation_alias=AliasChoices("descending", "desc"))
    unique: bool = False
    geo_sphere: bool = Field(False, validation_alias=AliasChoices("geo_sphere", "sphere2d"))
    text_language: str | None = Field(
        None, validation_alias=AliasChoices("text_language", "text")
    )
    hidden: bool = False
    wire_name: str | None = Field(None, validation_alias=AliasChoices("wire_name", "name"))

    def is_index(self) -> bool:
        """Whether the field should carry an index on the collection."""
        return (
            self.unique
            or self.ascending
            or self.descending
            or self.geo_sphere
            or self.text_language is not None
        )

    @property
    def sort_order(self) -> int:
        """Scalar index direction; descending wins when both flags are set."""
        return INDEX_DESCENDING if self.descending else INDEX_ASCENDING

    def stored_name(self, identifier: str) -> str:
        """Name the field is stored under in the collection."""
        return self.wire_name or identifier


Columns = dict[str, ColumnAttr]

_COLUMNS_ADAPTER = TypeAdapter(dict[str, ColumnAttr])


def load_columns(blob: str | bytes | Mapping[str, Any]) -> Columns:
    """
    Parse a column configuration blob.

    Args:
        blob: JSON text, or a mapping of field identifier to attributes
              (plain dicts or ``ColumnAttr`` instances)

    Returns:
        Dictionary of field identifier to ``ColumnAttr``

    Raises:
        ConfigurationError: If the blob is not a valid column configuration
    """
    try:
        if isinstance(blob, (str, bytes)):
            return _COLUMNS_ADAPTER.validate_json(blob)
        if not isinstance(blob, Mapping):
            raise ConfigurationError(
                "Column configuration must be JSON text or a mapping",
                config_key="columns",
                config_value=type(blob).__name__,
            )
        return _COLUMNS_ADAPTER.validate_python(dict(blob))
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid column configuration: {e.error_count()} error(s)",
            config_key="columns",
            context={"errors": [err["loc"] for err in e.errors()]},
        ) from e


def lazy_column(name: str) -> ColumnAttr:
    """Attributes of a column added at runtime: stored under its own name, no index."""
    return ColumnAttr(wire_name=name)


def column(
    default: Any = ...,
    *,
    asc: bool = False,
    desc: bool = False,
    unique: bool = False,
    sphere2d: bool = False,
    text: str | None = None,
    hidden: bool = False,
    name: str | None = None,
    **field_kwargs: Any,
) -> Any:
    """
    Declare a record field together with its column attributes.

    Example:
        class User(Record):
            phone: str = column("", asc=True, unique=True)
            password: str = column("", hidden=True, name="pswd")

    Args:
        default: Field default (``...`` for required)
        asc/desc/unique/sphere2d/text: Index declaration
        hidden: Mask the field on typed reads unless made visible
        name: Wire name the field is stored under
        **field_kwargs: Passed through to ``pydantic.Field``

    Returns:
        A pydantic ``FieldInfo`` carrying the column attributes
    """
    attrs: dict[str, Any] = {
        "asc": asc,
        "desc": desc,
        "unique": unique,
        "sphere2d": sphere2d,
        "text": text,
        "hidden": hidden,
        "name": name,
    }
    extra = {COLUMN_METADATA_KEY: {k: v for k, v in attrs.items() if v}}
    if "default_factory" in field_kwargs:
        return Field(json_schema_extra=extra, **field_kwargs)
    return Field(default, json_schema_extra=extra, **field_kwargs)


def columns_for(record_cls: type[BaseModel]) -> Columns:
    """
    Derive the column configuration of a pydantic record class.

    Every field becomes a column keyed by the name it serializes under (its
    alias when it has one). Fields declared without ``column()`` get default
    attributes.

    Args:
        record_cls: Pydantic model class

    Returns:
        Dictionary of field identifier to ``ColumnAttr``
    """
    blob: dict[str, Any] = {}
    for field_name, info in record_cls.model_fields.items():
        identifier = info.serialization_alias or info.alias or field_name
        extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
        blob[identifier] = extra.get(COLUMN_METADATA_KEY, {})
    return load_columns(blob)
