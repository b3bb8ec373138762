"""FastAPI dependencies."""

from __future__ import annotations

from fastapi import Depends, Request, Response

from bankconnect.core.connect import FlowSession, FlowSessionRegistry

# Cookie carrying the connect session id
SESSION_COOKIE = "connect_session"


def get_sessions(request: Request) -> FlowSessionRegistry:
    """Return the process-wide session registry."""
    return request.app.state.sessions


def get_flow_session(
    request: Request,
    response: Response,
    sessions: FlowSessionRegistry = Depends(get_sessions),
) -> FlowSession:
    """Get the caller's connect session, starting one if needed."""
    session_id = request.cookies.get(SESSION_COOKIE)
    session = sessions.get_or_create(session_id)

    if session.session_id != session_id:
        response.set_cookie(
            SESSION_COOKIE,
            session.session_id,
            httponly=True,
            samesite="lax",
        )
    return session
