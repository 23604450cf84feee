from __future__ import annotations

from fastapi import APIRouter, Depends

from stopboard.adapters.api.controllers.departures import snapshot_to_schema
from stopboard.adapters.api.dependencies import get_config, get_refresh_controller
from stopboard.adapters.api.schemas.departures import (
    BoardStateSchema,
    BoardTargetSchema,
)
from stopboard.adapters.config import BoardRuntimeConfig
from stopboard.app.services import RefreshController

router = APIRouter(prefix="/board", tags=["board"])


def _state(controller: RefreshController, line: str | None) -> BoardStateSchema:
    target = controller.target
    return BoardStateSchema(
        status=controller.status,
        last_error=controller.last_error,
        generation=controller.generation,
        in_flight=controller.in_flight,
        target=(
            BoardTargetSchema(
                stop=target.place,
                platform=target.platform,
                window_minutes=target.window_minutes,
            )
            if target
            else None
        ),
        result=(
            snapshot_to_schema(controller.latest_result, line=line)
            if controller.latest_result
            else None
        ),
    )


@router.get("", response_model=BoardStateSchema)
def get_board(
    controller: RefreshController = Depends(get_refresh_controller),
    config: BoardRuntimeConfig = Depends(get_config),
) -> BoardStateSchema:
    return _state(controller, config.line)


@router.post("", response_model=BoardStateSchema)
async def set_board(
    req: BoardTargetSchema,
    controller: RefreshController = Depends(get_refresh_controller),
    config: BoardRuntimeConfig = Depends(get_config),
) -> BoardStateSchema:
    controller.retarget(req.stop, req.platform, req.window_minutes)
    await controller.refresh()
    controller.start_auto_refresh(config.refresh_interval_ms)
    return _state(controller, config.line)
