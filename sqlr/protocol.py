"""QueryResult records and their protobuf wire schema.

The schema mirrors ``sqlrepl.proto`` shipped with the server. It is registered
in a private descriptor pool at import time so no generated ``_pb2`` module is
needed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError

from .errors import ResultDecodeError

_PACKAGE = "protocol"

_FieldProto = descriptor_pb2.FieldDescriptorProto


@dataclass(frozen=True, slots=True)
class Row:
    """One result row; every value is rendered as text by the server."""

    values: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Result (or status) of one statement executed within a batch."""

    columns: tuple[str, ...] = ()
    rows: tuple[Row, ...] = ()
    message: str = ""
    error: str = ""

    @property
    def has_rows(self) -> bool:
        return bool(self.columns)


def _build_schema() -> descriptor_pb2.FileDescriptorProto:
    schema = descriptor_pb2.FileDescriptorProto(name="sqlrepl.proto", package=_PACKAGE, syntax="proto3")

    def _add(message: Any, name: str, number: int, kind: int, *, repeated: bool = False, type_name: str = "") -> None:
        fields: dict[str, Any] = {
            "name": name,
            "number": number,
            "type": kind,
            "label": _FieldProto.LABEL_REPEATED if repeated else _FieldProto.LABEL_OPTIONAL,
            "json_name": name,
        }
        # Scalar fields must leave type_name unset or upb rejects the file.
        if type_name:
            fields["type_name"] = type_name
        message.field.add(**fields)

    result = schema.message_type.add(name="QueryResult")
    _add(result, "columns", 1, _FieldProto.TYPE_STRING, repeated=True)
    _add(result, "rows", 2, _FieldProto.TYPE_MESSAGE, repeated=True, type_name=f".{_PACKAGE}.Row")
    _add(result, "message", 3, _FieldProto.TYPE_STRING)
    _add(result, "error", 4, _FieldProto.TYPE_STRING)

    row = schema.message_type.add(name="Row")
    _add(row, "values", 1, _FieldProto.TYPE_STRING, repeated=True)

    params = schema.message_type.add(name="DBParams")
    _add(params, "dbtype", 1, _FieldProto.TYPE_STRING)
    _add(params, "connstring", 2, _FieldProto.TYPE_STRING)

    request = schema.message_type.add(name="QueryRequest")
    _add(request, "params", 1, _FieldProto.TYPE_MESSAGE, type_name=f".{_PACKAGE}.DBParams")
    _add(request, "query", 2, _FieldProto.TYPE_STRING)
    return schema


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_build_schema().SerializeToString())

QueryResultMessage = message_factory.GetMessageClass(_POOL.FindMessageTypeByName(f"{_PACKAGE}.QueryResult"))


def decode_result(payload: bytes) -> QueryResult:
    """Decode one response frame payload into a :class:`QueryResult`."""

    message = QueryResultMessage()
    try:
        message.ParseFromString(payload)
    except DecodeError as exc:
        raise ResultDecodeError(f"Malformed QueryResult payload ({len(payload)} bytes): {exc}") from exc
    return QueryResult(
        columns=tuple(message.columns),
        rows=tuple(Row(values=tuple(row.values)) for row in message.rows),
        message=message.message,
        error=message.error,
    )


def encode_result(result: QueryResult) -> bytes:
    """Serialize a :class:`QueryResult` the way the server does."""

    message = QueryResultMessage(
        columns=list(result.columns),
        message=result.message,
        error=result.error,
    )
    for row in result.rows:
        message.rows.add(values=list(row.values))
    return message.SerializeToString()


__all__ = [
    "QueryResult",
    "QueryResultMessage",
    "Row",
    "decode_result",
    "encode_result",
]
