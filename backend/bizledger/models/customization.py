from __future__ import annotations

from ..extensions import db
from bizledger.time_utils import to_utc_z

MODULE_SERVICE_ORDER = "service_order"
MODULE_PRODUCTION = "production"
CUSTOM_FIELD_MODULES = {MODULE_SERVICE_ORDER, MODULE_PRODUCTION}

CUSTOM_FIELD_TYPES = {"text", "number", "date", "boolean"}


class CustomFieldDefinition(db.Model):
    """Tenant-defined extra field attached to service or production orders."""
    __tablename__ = "custom_field_definitions"
    __table_args__ = (
        db.UniqueConstraint("org_id", "module", "name", name="uq_custom_fields_org_module_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    module = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    field_type = db.Column(db.String(16), nullable=False, default="text")
    is_required = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "module": self.module,
            "name": self.name,
            "field_type": self.field_type,
            "is_required": self.is_required,
            "created_at": to_utc_z(self.created_at),
        }


class CustomFieldValue(db.Model):
    """Value of a custom field for one entity (entity_type matches the definition module)."""
    __tablename__ = "custom_field_values"
    __table_args__ = (
        db.UniqueConstraint("field_id", "entity_type", "entity_id", name="uq_custom_field_values_entity"),
        db.Index("ix_custom_field_values_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    field_id = db.Column(db.Integer, db.ForeignKey("custom_field_definitions.id"), nullable=False)

    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    value = db.Column(db.Text, nullable=True)

    field = db.relationship("CustomFieldDefinition")

    def to_dict(self) -> dict:
        return {
            "field_id": self.field_id,
            "name": self.field.name if self.field else None,
            "field_type": self.field.field_type if self.field else None,
            "value": self.value,
        }
