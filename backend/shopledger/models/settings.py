from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SystemSettingsRecord(db.Model):
    """
    Single-row store for business settings.

    The payload is the JSON form of settings_service.SystemSettings; the
    typed dataclasses are the only thing the rest of the code sees.
    """
    __tablename__ = "system_settings"

    id = db.Column(db.Integer, primary_key=True)
    schema_version = db.Column(db.Integer, nullable=False, default=1)
    payload = db.Column(db.Text, nullable=False, default="{}")

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "schema_version": self.schema_version,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
