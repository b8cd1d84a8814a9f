from __future__ import annotations

from .app.server import SimulationController, app, controller, render_frame

__all__ = ["SimulationController", "app", "controller", "render_frame"]
