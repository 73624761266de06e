"""
Session service - holds the process-wide session controller.

The HTTP layer works against this instance; tests can swap it with
`init_session_controller()`.
"""

import logging
from typing import Optional

from smoothdrive.core.config import EngineConfig, load_config
from smoothdrive.engine.controller import SessionController
from smoothdrive.sensors.sources import build_sources


logger = logging.getLogger(__name__)


def create_session_controller(config: Optional[EngineConfig] = None) -> SessionController:
    """Build a controller and its sensor collaborators from configuration."""
    if config is None:
        config = load_config()
    sources = build_sources(config.sensor_kind, frequency_hz=config.simulated_frequency_hz)
    logger.info(f"Created session controller with {config.sensor_kind.value} sensors")
    return SessionController(sources, config=config)


# Global controller instance (set up by app initialization)
_controller: Optional[SessionController] = None


def get_session_controller() -> SessionController:
    """Get the global controller instance."""
    global _controller
    if _controller is None:
        _controller = create_session_controller()
    return _controller


def init_session_controller(config: Optional[EngineConfig] = None) -> SessionController:
    """Replace the global controller, stopping the previous one."""
    global _controller
    if _controller is not None:
        _controller.stop()
    _controller = create_session_controller(config)
    return _controller
