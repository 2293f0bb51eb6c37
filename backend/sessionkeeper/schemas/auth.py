"""Session-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class RefreshSchema(Schema):
    """Input payload for rotating a refresh credential."""

    refresh_token = fields.String(required=True, validate=validate.Length(min=1, max=512))


class LogoutSchema(Schema):
    """Input payload for ending the current session."""

    refresh_token = fields.String(load_default=None, validate=validate.Length(min=1, max=512))


class TokenPairSchema(Schema):
    """Response payload containing a fresh credential pair."""

    access_token = fields.String(required=True, attribute="access_credential")
    refresh_token = fields.String(required=True, attribute="refresh_credential")
    token_type = fields.Constant("bearer")
    expires_in = fields.Integer(required=True)


class SessionSchema(Schema):
    """One live session as shown to its owner (no credential material)."""

    created_at = fields.DateTime(required=True)
    expires_at = fields.DateTime(required=True)
    device_info = fields.String(allow_none=True)
    ip_address = fields.String(allow_none=True)


class LockoutStatusSchema(Schema):
    """Lockout state of a sign-in account."""

    is_locked = fields.Boolean(required=True)
    failed_attempts = fields.Integer(required=True)
    remaining_attempts = fields.Integer(required=True)
    locked_until = fields.DateTime(allow_none=True)


class HealthSchema(Schema):
    """Health probe response."""

    status = fields.String(required=True)
    store = fields.String(required=True)
    latency_ms = fields.Float(allow_none=True)
    version = fields.String()
    commit = fields.String()
