from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from adventure.api.deps import get_controller
from adventure.api.models import (
    ActionRequest,
    LoadResponse,
    MapCell,
    MapWindowResponse,
    SaveResponse,
    SessionView,
    TurnOutcomeResponse,
)
from adventure.controller import LoadStatus, SessionController, TurnOutcome
from adventure.errors import PersistenceUnavailable
from adventure.session_store import has_saved_session
from adventure.turn_processing.map_view import map_window
from adventure.websocket_hub import hub

router = APIRouter()


def _outcome_response(controller: SessionController, outcome: TurnOutcome) -> TurnOutcomeResponse:
    return TurnOutcomeResponse(
        accepted=outcome.accepted,
        phase=controller.phase,
        is_new_location=outcome.is_new_location,
        error=outcome.error,
        session=controller.session,
    )


@router.websocket("/ws/session")
async def session_updates_ws(websocket: WebSocket) -> None:
    await hub.connect(websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(websocket)
    except Exception:
        await hub.disconnect(websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/session", response_model=SessionView)
async def get_session_route(controller: SessionController = Depends(get_controller)) -> SessionView:
    try:
        save_exists = has_saved_session(r=controller.r)
    except PersistenceUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    return SessionView(phase=controller.phase, save_exists=save_exists, session=controller.session)


@router.post("/session", response_model=TurnOutcomeResponse, status_code=status.HTTP_201_CREATED)
async def new_game_route(controller: SessionController = Depends(get_controller)) -> TurnOutcomeResponse:
    outcome = await controller.new_game()
    if not outcome.accepted:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A turn is still being generated")
    return _outcome_response(controller, outcome)


@router.post("/session/actions", response_model=TurnOutcomeResponse)
async def player_action_route(
    payload: ActionRequest,
    controller: SessionController = Depends(get_controller),
) -> TurnOutcomeResponse:
    # Ignored actions (busy, no session, game over) are reported, not raised.
    outcome = await controller.submit_action(payload.action)
    return _outcome_response(controller, outcome)


@router.post("/session/save", response_model=SaveResponse)
async def save_game_route(controller: SessionController = Depends(get_controller)) -> SaveResponse:
    try:
        saved = controller.save_game()
    except PersistenceUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    if saved:
        return SaveResponse(saved=True, message="Game Manually Saved")
    return SaveResponse(saved=False, message="Nothing to save")


@router.post("/session/load", response_model=LoadResponse)
async def load_game_route(controller: SessionController = Depends(get_controller)) -> LoadResponse:
    outcome = await controller.load_game()
    if outcome.status == LoadStatus.not_found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=outcome.message)
    if outcome.status == LoadStatus.busy:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=outcome.message)
    if outcome.status == LoadStatus.corrupt:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=outcome.message)
    if outcome.status == LoadStatus.unavailable:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=outcome.message)
    return LoadResponse(status=outcome.status.value, message=outcome.message, phase=controller.phase)


@router.get("/session/map", response_model=MapWindowResponse)
async def map_route(
    radius: int = 3,
    controller: SessionController = Depends(get_controller),
) -> MapWindowResponse:
    if radius < 0 or radius > 10:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="radius must be 0..10")

    session = controller.session
    if session is None or session.current_turn is None:
        return MapWindowResponse()

    center = session.current_turn.location
    cells = map_window(center=center, map_memory=session.map_memory, radius=radius)
    return MapWindowResponse(
        center=center,
        cells=[MapCell(dx=c.dx, dy=c.dy, is_current=c.is_current, location=c.location) for c in cells],
    )
