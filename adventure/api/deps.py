from __future__ import annotations

from adventure.agents.factory import create_image_generator, create_turn_generator
from adventure.config import settings_from_env
from adventure.controller import SessionController
from adventure.infra.redis_client import create_redis
from adventure.websocket_hub import broadcast_session_event

_CONTROLLER: SessionController | None = None


def init_controller(controller: SessionController | None = None) -> SessionController:
    """Create (or install) the process-wide controller.

    Safe to call multiple times; subsequent calls return the existing instance.
    """

    global _CONTROLLER
    if _CONTROLLER is None:
        if controller is None:
            settings = settings_from_env()
            controller = SessionController(
                generator=create_turn_generator(),
                images=create_image_generator(settings),
                r=create_redis(),
                settings=settings,
                on_event=broadcast_session_event,
            )
        _CONTROLLER = controller
    return _CONTROLLER


def peek_controller() -> SessionController | None:
    return _CONTROLLER


def reset_controller_for_tests() -> None:
    global _CONTROLLER
    _CONTROLLER = None


def get_controller() -> SessionController:
    return init_controller()
