# Overview: Service-layer operations for the business settings singleton.

from __future__ import annotations

from ..extensions import db
from ..models import BusinessSettings
from ..validation import ModelValidationPolicy, validate_payload


SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={"business_name", "logo_url", "signature_url", "contact_phone"},
)


def get_business_settings() -> BusinessSettings:
    """Return the settings row, creating it with defaults on first read."""
    settings = db.session.query(BusinessSettings).order_by(BusinessSettings.id.asc()).first()
    if settings is None:
        settings = BusinessSettings()
        db.session.add(settings)
        db.session.commit()
    return settings


def update_business_settings(payload: dict) -> BusinessSettings:
    patch = validate_payload(model=BusinessSettings, payload=payload, policy=SETTINGS_POLICY, partial=True)
    settings = get_business_settings()
    for key, value in patch.items():
        setattr(settings, key, value)
    db.session.commit()
    return settings
