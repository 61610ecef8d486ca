from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import Boolean, Date, DateTime, Numeric, delete, func, select
from sqlalchemy.orm import Session

from finbackup.domain.constants import EntityKind
from finbackup.domain.errors import RecordOwnershipError
from finbackup.infrastructure.db.models_sqlalchemy import ENTITY_MODELS

_TRUE_STRINGS = {"1", "true", "yes", "on", "sim"}


def _serialize_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _model_to_dict(obj: Any) -> dict[str, Any]:
    data = {}
    for column in obj.__table__.columns:
        data[column.name] = _serialize_value(getattr(obj, column.name))
    return data


def _parse_value(value: Any, column) -> Any:
    if value is None or value == "":
        return None
    if isinstance(column.type, DateTime):
        parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(UTC).replace(tzinfo=None)
        return parsed
    if isinstance(column.type, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value))
        except ValueError:
            return datetime.fromisoformat(str(value)).date()
    if isinstance(column.type, Numeric):
        return value if isinstance(value, Decimal) else Decimal(str(value))
    if isinstance(column.type, Boolean):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUE_STRINGS
    return value


def _dict_to_model(model_cls: type[Any], data: Mapping[str, Any]) -> Any:
    obj = model_cls()
    for column in model_cls.__table__.columns:
        name = column.name
        if name in data:
            setattr(obj, name, _parse_value(data[name], column))
    return obj


def model_for(kind: EntityKind | str) -> type[Any]:
    return ENTITY_MODELS[EntityKind(kind)]


class RecordRepository:
    """Owner-scoped record access for every exportable entity kind."""

    def list_records(self, session: Session, kind: EntityKind | str, owner_id: str) -> list[dict[str, Any]]:
        model_cls = model_for(kind)
        stmt = select(model_cls).where(model_cls.user_id == owner_id).order_by(model_cls.id.asc())
        return [_model_to_dict(obj) for obj in session.execute(stmt).scalars()]

    def existing_ids(self, session: Session, kind: EntityKind | str, owner_id: str) -> set[str]:
        model_cls = model_for(kind)
        stmt = select(model_cls.id).where(model_cls.user_id == owner_id)
        return {str(row) for row in session.execute(stmt).scalars()}

    def count(self, session: Session, kind: EntityKind | str, owner_id: str) -> int:
        model_cls = model_for(kind)
        stmt = select(func.count()).select_from(model_cls).where(model_cls.user_id == owner_id)
        return int(session.execute(stmt).scalar_one())

    def upsert(
        self,
        session: Session,
        kind: EntityKind | str,
        owner_id: str,
        record: Mapping[str, Any],
    ) -> dict[str, Any]:
        model_cls = model_for(kind)
        record_id = record.get("id")
        record_id = str(record_id) if record_id not in (None, "") else str(uuid4())
        existing = session.get(model_cls, record_id)
        if existing is not None and existing.user_id != owner_id:
            raise RecordOwnershipError(str(kind), record_id)
        obj = _dict_to_model(model_cls, record)
        obj.id = record_id
        obj.user_id = owner_id
        merged = session.merge(obj)
        session.flush()
        return _model_to_dict(merged)

    def delete(
        self,
        session: Session,
        kind: EntityKind | str,
        owner_id: str,
        ids: Iterable[str],
    ) -> int:
        model_cls = model_for(kind)
        id_list = [str(item) for item in ids]
        if not id_list:
            return 0
        stmt = delete(model_cls).where(model_cls.user_id == owner_id).where(model_cls.id.in_(id_list))
        result = session.execute(stmt)
        return int(result.rowcount or 0)
