"""Bank connect flow API routes.

The dashboard drives the flow through these routes and renders whatever
snapshot comes back. Provider SDKs run in the page: it polls ``/launch``
for the widget configuration and posts the SDK outcome to ``/callback``.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

from bankconnect.api.deps import get_flow_session
from bankconnect.config import get_settings
from bankconnect.core.connect import FlowSession, LinkOutcome

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/connect", tags=["connect"])

# Rate limiter for search, which fires on every debounced keystroke
limiter = Limiter(key_func=get_remote_address)


# Request/Response Models

class InstitutionResponse(BaseModel):
    """Institution search result."""

    id: str
    name: str
    logo: Optional[str]
    provider: str
    country_code: str
    available_history: int


class ConnectParamsResponse(BaseModel):
    """Current connect params."""

    step: Optional[str]
    provider: Optional[str]
    institution_id: Optional[str]
    country_code: Optional[str]
    query: Optional[str]
    token: Optional[str]
    enrollment_id: Optional[str]


class FlowResponse(BaseModel):
    """Everything the dashboard needs to render the flow."""

    state: str
    provider: Optional[str]
    params: ConnectParamsResponse
    location: str
    results: List[InstitutionResponse]
    loading: bool
    notice: Optional[str]
    launch: Optional[Dict[str, Any]]


class OpenRequest(BaseModel):
    """Request to open the flow."""

    country_code: Optional[str] = None


class SearchRequest(BaseModel):
    """Search input change. Omitted fields are left as they are."""

    q: Optional[str] = None
    country_code: Optional[str] = None


class SelectRequest(BaseModel):
    """Institution selection."""

    institution_id: str


class ResumeRequest(BaseModel):
    """Location to rebuild the flow from after a reload."""

    location: str


def _flow_response(session: FlowSession) -> FlowResponse:
    snapshot = session.snapshot()
    params = snapshot.params

    return FlowResponse(
        state=snapshot.state.value,
        provider=snapshot.provider.value if snapshot.provider else None,
        params=ConnectParamsResponse(
            step=params.step,
            provider=params.provider,
            institution_id=params.institution_id,
            country_code=params.country_code,
            query=params.query,
            token=params.token,
            enrollment_id=params.enrollment_id,
        ),
        location=session.controller.store.location("/"),
        results=[
            InstitutionResponse(
                id=i.id,
                name=i.name,
                logo=i.logo,
                provider=i.provider,
                country_code=i.country_code,
                available_history=i.available_history,
            )
            for i in snapshot.results
        ],
        loading=snapshot.loading,
        notice=snapshot.notice,
        launch=snapshot.launch,
    )


# Routes

@router.get("", response_model=FlowResponse)
async def get_flow(session: FlowSession = Depends(get_flow_session)):
    """Get the current flow state."""
    return _flow_response(session)


@router.post("/open", response_model=FlowResponse)
async def open_flow(
    body: OpenRequest,
    session: FlowSession = Depends(get_flow_session),
):
    """Open the connect flow and run the initial search."""
    await session.controller.open(body.country_code)
    return _flow_response(session)


@router.post("/search", response_model=FlowResponse)
@limiter.limit(settings.connect_rate_limit)
async def search(
    request: Request,
    body: SearchRequest,
    session: FlowSession = Depends(get_flow_session),
):
    """Apply a (debounced) query and/or country change."""
    changes = {}
    if "q" in body.model_fields_set:
        changes["query"] = body.q
    if "country_code" in body.model_fields_set and body.country_code:
        changes["country_code"] = body.country_code

    await session.controller.update_search(**changes)
    return _flow_response(session)


@router.post("/select", response_model=FlowResponse)
async def select_institution(
    body: SelectRequest,
    session: FlowSession = Depends(get_flow_session),
):
    """Start connecting an institution from the current results."""
    controller = session.controller
    if not any(i.id == body.institution_id for i in controller.results):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Institution not found in current results",
        )

    await controller.select(body.institution_id)
    return _flow_response(session)


@router.get("/launch")
async def get_launch(session: FlowSession = Depends(get_flow_session)):
    """Widget configuration for the provider SDK, once it is ready to open."""
    launch = session.pending_launch()
    if launch is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No provider widget is waiting to open",
        )
    return launch


@router.post("/callback/{outcome}", response_model=FlowResponse)
async def provider_callback(
    outcome: LinkOutcome,
    payload: Optional[Dict[str, Any]] = Body(None),
    session: FlowSession = Depends(get_flow_session),
):
    """Report the provider SDK outcome (success, exit or failure)."""
    try:
        await session.widgets.deliver(outcome, payload or {})
    except LookupError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )

    return _flow_response(session)


@router.post("/close", response_model=FlowResponse)
async def close_flow(session: FlowSession = Depends(get_flow_session)):
    """Close the flow and clear its params."""
    session.controller.close()
    return _flow_response(session)


@router.post("/resume", response_model=FlowResponse)
async def resume_flow(
    body: ResumeRequest,
    session: FlowSession = Depends(get_flow_session),
):
    """Rebuild the flow from a shared or reloaded location."""
    await session.controller.resume(body.location)
    return _flow_response(session)
