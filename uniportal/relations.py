"""Declarative relation joins for gateway reads.

Each read operation names the relations it expands as a tuple of ``Join``
values. The same tuple drives both eager loading and serialization, so what a
caller receives is exactly what the read declares.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Load, selectinload

HIDDEN_COLUMNS = frozenset({"password_hash"})


@dataclass(frozen=True)
class Join:
    name: str
    fields: tuple[str, ...] | None = None
    nested: tuple["Join", ...] = ()


def _loader(model: type, join: Join) -> Load:
    attr = getattr(model, join.name)
    option = selectinload(attr)
    if join.nested:
        target = attr.property.mapper.class_
        option = option.options(*(_loader(target, child) for child in join.nested))
    return option


def load_options(model: type, joins: Iterable[Join]) -> list[Load]:
    return [_loader(model, join) for join in joins]


def _value(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def columns(obj: Any, fields: tuple[str, ...] | None = None) -> dict[str, Any]:
    mapper = sa_inspect(obj).mapper
    keys = [attr.key for attr in mapper.column_attrs if attr.key not in HIDDEN_COLUMNS]
    if fields is not None:
        keys = [key for key in keys if key in fields]
    return {key: _value(getattr(obj, key)) for key in keys}


def to_record(obj: Any, joins: Iterable[Join] = (), fields: tuple[str, ...] | None = None) -> dict[str, Any]:
    record = columns(obj, fields)
    for join in joins:
        related = getattr(obj, join.name)
        if related is None:
            record[join.name] = None
        elif isinstance(related, list):
            record[join.name] = [to_record(item, join.nested, join.fields) for item in related]
        else:
            record[join.name] = to_record(related, join.nested, join.fields)
    return record


APPLICATION_FOR_STUDENT = (Join("program", nested=(Join("university"),)),)
APPLICATION_FOR_ADMIN = (
    Join("student", fields=("full_name", "email")),
    Join("program", fields=("name",), nested=(Join("university", fields=("name",)),)),
)
PROGRAM_WITH_UNIVERSITY = (Join("university"),)
REVIEW_FOR_APPLICATION = (Join("reviewer", fields=("full_name",)),)
REVIEW_FOR_ADMIN = (
    Join(
        "application",
        fields=("id",),
        nested=(
            Join("student", fields=("full_name", "email")),
            Join("program", fields=("name",)),
        ),
    ),
    Join("reviewer", fields=("full_name",)),
)
