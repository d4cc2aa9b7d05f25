# Overview: Tenant-defined custom fields for service and production orders.

from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import CustomFieldDefinition, CustomFieldValue
from ..models.customization import CUSTOM_FIELD_MODULES, CUSTOM_FIELD_TYPES
from ..validation import coerce_int
from .concurrency import run_atomic


def list_definitions(org_id: int, module: str | None = None) -> list[CustomFieldDefinition]:
    q = db.session.query(CustomFieldDefinition).filter(CustomFieldDefinition.org_id == org_id)
    if module:
        q = q.filter(CustomFieldDefinition.module == module)
    return q.order_by(CustomFieldDefinition.module, CustomFieldDefinition.name).all()


def create_definition(*, org_id: int, payload: dict) -> CustomFieldDefinition:
    payload = payload or {}
    module = payload.get("module")
    name = (payload.get("name") or "").strip()
    field_type = payload.get("field_type") or "text"

    if module not in CUSTOM_FIELD_MODULES:
        raise ValidationError(f"module must be one of: {', '.join(sorted(CUSTOM_FIELD_MODULES))}")
    if not name:
        raise ValidationError("name is required")
    if field_type not in CUSTOM_FIELD_TYPES:
        raise ValidationError(f"field_type must be one of: {', '.join(sorted(CUSTOM_FIELD_TYPES))}")

    def _op():
        exists = db.session.query(CustomFieldDefinition.id).filter_by(
            org_id=org_id, module=module, name=name
        ).first()
        if exists:
            raise ConflictError("Custom field already exists", {"module": module, "name": name})
        definition = CustomFieldDefinition(
            org_id=org_id,
            module=module,
            name=name,
            field_type=field_type,
            is_required=bool(payload.get("is_required", False)),
        )
        db.session.add(definition)
        db.session.flush()
        return definition

    return run_atomic(_op)


def save_values(
    *, org_id: int, module: str, entity_id: int, values, require_all: bool = False
) -> list[CustomFieldValue]:
    """
    Upsert custom field values for one entity inside the caller's transaction.

    values: list of {"field_id": int, "value": any} or a {field_id: value} dict.
    require_all: every is_required definition of the module must be supplied
    (used on create, where nothing was stored before).
    """
    if not values:
        items = []
    elif isinstance(values, dict):
        items = [{"field_id": k, "value": v} for k, v in values.items()]
    elif isinstance(values, list):
        items = values
    else:
        raise ValidationError("custom_fields must be a list or an object")

    saved = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"custom_fields[{idx}] must be an object")
        field_id = coerce_int(item.get("field_id"), f"custom_fields[{idx}].field_id")
        definition = db.session.query(CustomFieldDefinition).filter_by(
            id=field_id, org_id=org_id, module=module
        ).first()
        if definition is None:
            raise ValidationError("Unknown custom field", {"field_id": field_id, "module": module})

        raw = item.get("value")
        text = None if raw is None else str(raw)
        if definition.is_required and not text:
            raise ValidationError(f"{definition.name} is required", {"field_id": field_id})

        row = db.session.query(CustomFieldValue).filter_by(
            field_id=field_id, entity_type=module, entity_id=entity_id
        ).first()
        if row is None:
            row = CustomFieldValue(
                org_id=org_id,
                field_id=field_id,
                entity_type=module,
                entity_id=entity_id,
            )
            db.session.add(row)
        row.value = text
        saved.append(row)

    if require_all:
        _check_required(org_id, module, {row.field_id for row in saved if row.value})
    return saved


def _check_required(org_id: int, module: str, supplied_ids: set[int]) -> None:
    required = (
        db.session.query(CustomFieldDefinition)
        .filter_by(org_id=org_id, module=module, is_required=True)
        .order_by(CustomFieldDefinition.id)
        .all()
    )
    for definition in required:
        if definition.id not in supplied_ids:
            raise ValidationError(f"{definition.name} is required", {"field_id": definition.id})


def get_values(org_id: int, module: str, entity_id: int) -> list[CustomFieldValue]:
    return (
        db.session.query(CustomFieldValue)
        .filter_by(org_id=org_id, entity_type=module, entity_id=entity_id)
        .order_by(CustomFieldValue.field_id)
        .all()
    )
