from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


DEFAULT_BUSINESS_NAME = "Your Business Name"


class BusinessSettings(db.Model):
    """Singleton row read by every receipt and invoice."""
    __tablename__ = "business_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_name = db.Column(db.String(255), nullable=False, default=DEFAULT_BUSINESS_NAME)
    logo_url = db.Column(db.Text, nullable=True)
    signature_url = db.Column(db.Text, nullable=True)
    contact_phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_name": self.business_name,
            "logo_url": self.logo_url,
            "signature_url": self.signature_url,
            "contact_phone": self.contact_phone,
            "updated_at": to_utc_z(self.updated_at),
        }
