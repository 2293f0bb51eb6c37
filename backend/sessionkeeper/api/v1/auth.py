"""Session endpoints: refresh rotation, logout and session listing."""

from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import get_jwt_identity

from sessionkeeper.api.deps import (
    bearer_token,
    client_context,
    json_response,
    require_auth,
    timing,
)
from sessionkeeper.core.errors import Unauthorized
from sessionkeeper.core.extensions import get_session_service
from sessionkeeper.schemas import LogoutSchema, RefreshSchema, SessionSchema, TokenPairSchema

bp = Blueprint("auth", __name__, url_prefix="/auth")

refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
token_schema = TokenPairSchema()
sessions_schema = SessionSchema(many=True)


@bp.post("/refresh")
@timing
def refresh():
    """Rotate the presented refresh credential and return a new pair."""

    data = refresh_schema.load(request.get_json(silent=True) or {})
    pair = get_session_service().refresh(data["refresh_token"], **client_context())
    return json_response({"data": token_schema.dump(pair)})


@bp.post("/logout")
@timing
def logout():
    """Blacklist the access credential and drop the given refresh session."""

    access = bearer_token()
    if access is None:
        raise Unauthorized("Missing bearer credential.")
    data = logout_schema.load(request.get_json(silent=True) or {})
    get_session_service().logout(access, data.get("refresh_token"))
    return "", 204


@bp.post("/logout-all")
@require_auth
@timing
def logout_all():
    """Revoke every session of the authenticated user."""

    revoked = get_session_service().logout_all(get_jwt_identity(), bearer_token())
    return json_response({"data": {"revoked": revoked}})


@bp.get("/sessions")
@require_auth
@timing
def list_sessions():
    """List the authenticated user's live sessions, oldest first."""

    sessions = get_session_service().list_sessions(get_jwt_identity())
    return json_response({"data": sessions_schema.dump(sessions)})
