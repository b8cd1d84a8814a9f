from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any, Dict, Optional, Set, Union

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..sim.core.config import SimulationConfig, resolve_population
from ..sim.core.world import World

logger = logging.getLogger(__name__)


def render_frame(world: World) -> Dict[str, Any]:
    """Everything a sprite renderer needs for one tick: placement and rotation."""
    width, height = world.extent
    return {
        "type": "frame",
        "tick": world.tick,
        "world": {"width": width, "height": height},
        "sprite": {"width": world.config.boid_width, "height": world.config.boid_height},
        "boids": [[agent.position.x, agent.position.y, agent.heading] for agent in world.agents],
    }


class SimulationController:
    """Drives ``advance_tick`` at the configured rate and pushes frames to viewers.

    Viewers always receive the newest frame; a viewer that falls behind skips
    frames instead of queueing them.
    """

    def __init__(self, config: SimulationConfig, frame_interval: int = 1):
        self.config = config
        self.world = World(config)
        self.frame_interval = max(1, frame_interval)
        self.running = False
        self.speed_multiplier = 1.0
        self.viewers: Set[WebSocket] = set()
        self.last_frame: Optional[Dict[str, Any]] = None
        self._lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None

    @property
    def tick(self) -> int:
        return self.world.tick

    async def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._run())
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def restart(self, population: Any = None) -> None:
        async with self._lock:
            if population is not None:
                self.config.population = resolve_population(population, default=self.config.population)
            width, height = self.world.extent
            if population is not None and self.config.population != len(self.world.agents):
                self.config.world_width = width
                self.config.world_height = height
                self.world = World(self.config)
            else:
                self.world.reset()
        await self.publish()

    async def resize(self, width: float, height: float) -> None:
        async with self._lock:
            self.world.resize(width, height)

    async def advance(self) -> None:
        async with self._lock:
            self.world.advance_tick()
        if self.tick % self.frame_interval == 0:
            await self.publish()

    async def publish(self) -> None:
        frame = render_frame(self.world)
        self.last_frame = frame
        text = json.dumps(frame)
        dropped = []
        for viewer in self.viewers:
            try:
                await viewer.send_text(text)
            except (WebSocketDisconnect, RuntimeError):
                dropped.append(viewer)
        for viewer in dropped:
            self.viewers.discard(viewer)

    async def handle_message(self, message: Dict[str, Any]) -> None:
        kind = message.get("type")
        if kind == "quit":
            await self.stop()
        elif kind == "resize":
            await self.resize(float(message["width"]), float(message["height"]))
        elif kind == "restart":
            await self.restart(message.get("population"))

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(1.0 / (self.config.tick_rate * self.speed_multiplier))
            if self.running:
                await self.advance()


class ResizeRequest(BaseModel):
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class RestartRequest(BaseModel):
    population: Optional[Union[int, str]] = None


class SpeedRequest(BaseModel):
    multiplier: float = 1.0


app = FastAPI(title="Shoal Flocking Simulation")
controller = SimulationController(SimulationConfig())


@app.on_event("startup")
async def _startup() -> None:
    logger.info("Ticking %d boids at %.1f ticks/s", len(controller.world.agents), controller.config.tick_rate)
    await controller.start()


@app.get("/api/status")
async def status() -> JSONResponse:
    width, height = controller.world.extent
    metrics = controller.world.metrics
    return JSONResponse(
        {
            "running": controller.running,
            "tick": controller.tick,
            "population": len(controller.world.agents),
            "world": {"width": width, "height": height},
            "metrics": asdict(metrics) if metrics is not None else None,
        }
    )


@app.get("/api/frame")
async def frame() -> JSONResponse:
    return JSONResponse(controller.last_frame or render_frame(controller.world))


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    await controller.stop()
    return JSONResponse({"running": False})


@app.post("/api/control/restart")
async def restart_simulation(request: Optional[RestartRequest] = None) -> JSONResponse:
    await controller.restart(request.population if request else None)
    return JSONResponse({"tick": controller.tick, "population": len(controller.world.agents)})


@app.post("/api/control/speed")
async def set_speed(request: SpeedRequest) -> JSONResponse:
    controller.speed_multiplier = max(0.1, min(5.0, request.multiplier))
    return JSONResponse({"multiplier": controller.speed_multiplier})


@app.post("/api/control/resize")
async def resize_world(request: ResizeRequest) -> JSONResponse:
    try:
        await controller.resize(request.width, request.height)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return JSONResponse({"width": request.width, "height": request.height})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.viewers.add(websocket)
    if controller.last_frame is not None:
        await websocket.send_text(json.dumps(controller.last_frame))
    try:
        while True:
            try:
                message = json.loads(await websocket.receive_text())
            except json.JSONDecodeError:
                continue
            if isinstance(message, dict):
                try:
                    await controller.handle_message(message)
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning("Ignoring bad viewer message %r: %s", message, exc)
    except WebSocketDisconnect:
        controller.viewers.discard(websocket)


__all__ = ["app", "controller", "render_frame", "SimulationController"]
