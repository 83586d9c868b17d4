import asyncio
import logging
import os
from dataclasses import replace
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError

from clock import RunState
from config import CONFIG
from engine import ActionResult, RejectionReason, SimulationEngine

load_dotenv()

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("LIFESIM_CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Player actions reachable over the websocket ACTION command
ACTIONS = (
    "buy_stock",
    "sell_stock",
    "buy_property",
    "sell_property",
    "rent_home",
    "end_tenancy",
    "deposit",
    "withdraw",
    "take_loan",
    "marry",
    "buy_insurance",
    "cancel_insurance",
    "buy_car",
    "sell_car",
    "refresh_listings",
)


class SetupRequest(BaseModel):
    seed: Optional[int] = None
    starting_cash: Optional[float] = None
    base_annual_salary: Optional[float] = None
    home_region: Optional[str] = None
    work_region: Optional[str] = None


class ActionRequest(BaseModel):
    action: str
    args: Dict[str, Any] = Field(default_factory=dict)


def _env_seed() -> Optional[int]:
    value = os.getenv("LIFESIM_SEED")
    return int(value) if value else None


class SimulationManager:
    def __init__(self):
        self.engine: Optional[SimulationEngine] = None
        self.active_websocket: Optional[WebSocket] = None
        self.loop_task: Optional[asyncio.Task] = None
        self.seconds_per_month = float(os.getenv("LIFESIM_SECONDS_PER_MONTH", CONFIG.time.seconds_per_month))
        self.fast_seconds_per_month = float(
            os.getenv("LIFESIM_FAST_SECONDS_PER_MONTH", CONFIG.time.fast_seconds_per_month)
        )

    def initialize(self, setup: Optional[SetupRequest] = None):
        setup = setup or SetupRequest()
        seed = setup.seed if setup.seed is not None else _env_seed()

        overrides = {
            name: value
            for name, value in setup.model_dump(exclude={"seed"}).items()
            if value is not None
        }
        config = replace(CONFIG, player=replace(CONFIG.player, **overrides))

        logger.info(f"Initializing life simulation (seed={seed}, home={config.player.home_region}, "
                    f"work={config.player.work_region})")
        self.engine = SimulationEngine(config=config, seed=seed)

    def cadence(self) -> float:
        """Wall-clock seconds between ticks for the current run state."""
        if self.engine and self.engine.clock.run_state == RunState.FAST:
            return self.fast_seconds_per_month / 30.0
        return self.seconds_per_month / 30.0

    def is_running(self) -> bool:
        return bool(self.engine) and self.engine.clock.run_state in (RunState.RUNNING, RunState.FAST)

    def start(self, state: RunState):
        if not self.engine:
            # Auto-initialize if not done yet
            self.initialize()
        if not self.engine.set_run_state(state):
            return
        if self.loop_task is None or self.loop_task.done():
            self.loop_task = asyncio.create_task(self.run_loop())

    def pause(self):
        if self.engine:
            self.engine.set_run_state(RunState.PAUSED)

    def perform(self, request: ActionRequest) -> ActionResult:
        if not self.engine:
            self.initialize()
        if request.action not in ACTIONS:
            return ActionResult(False, f"Unknown action: {request.action}", reason=RejectionReason.INVALID_REQUEST)
        handler = getattr(self.engine, request.action)
        try:
            return handler(**request.args)
        except TypeError as e:
            logger.warning(f"Bad arguments for {request.action}: {e}")
            return ActionResult(False, f"Invalid arguments for {request.action}",
                                reason=RejectionReason.INVALID_REQUEST)

    def state_message(self) -> Dict[str, Any]:
        return {"type": "STATE", "snapshot": self.engine.current_snapshot() if self.engine else None}

    async def run_loop(self):
        if not self.engine:
            logger.warning("Attempted to run loop without an engine. Waiting for SETUP.")
            return

        logger.info("Starting simulation loop")
        try:
            while self.is_running() and self.active_websocket:
                start_time = asyncio.get_event_loop().time()

                rollover = self.engine.tick()
                await self.active_websocket.send_json(self.state_message())

                if rollover.ended:
                    await self.active_websocket.send_json({
                        "type": "ENDED",
                        "final_net_worth": self.engine.final_net_worth,
                    })
                    break

                # Throttle
                elapsed = asyncio.get_event_loop().time() - start_time
                await asyncio.sleep(max(0.0, self.cadence() - elapsed))

        except Exception as e:
            logger.error(f"Simulation loop error: {e}")
            self.pause()
            if self.active_websocket:
                await self.active_websocket.send_json({"error": str(e)})


manager = SimulationManager()


@app.get("/api/snapshot")
def snapshot():
    if not manager.engine:
        raise HTTPException(status_code=404, detail="Simulation not initialized")
    return manager.engine.current_snapshot()


@app.get("/api/prices")
def prices():
    if not manager.engine:
        raise HTTPException(status_code=404, detail="Simulation not initialized")
    return {"date": manager.engine.current_snapshot()["date"], "prices": dict(manager.engine.prices)}


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    manager.active_websocket = websocket
    logger.info("WebSocket connected")

    try:
        while True:
            data = await websocket.receive_json()
            command = data.get("command")

            if command == "SETUP":
                try:
                    setup = SetupRequest(**data.get("config", {}))
                except ValidationError as e:
                    await websocket.send_json({"type": "ERROR", "error": str(e)})
                    continue
                manager.pause()
                manager.initialize(setup)
                await websocket.send_json({"type": "SETUP_COMPLETE", "snapshot": manager.engine.current_snapshot()})
            elif command == "START":
                manager.start(RunState.RUNNING)
            elif command == "FAST":
                manager.start(RunState.FAST)
            elif command == "PAUSE":
                manager.pause()
                await websocket.send_json({"type": "PAUSED"})
            elif command == "RESET":
                # Stop and clear; the client goes back through SETUP
                manager.pause()
                manager.engine = None
                await websocket.send_json({"type": "RESET"})
            elif command == "STATE":
                await websocket.send_json(manager.state_message())
            elif command == "ACTION":
                try:
                    request = ActionRequest(**data.get("payload", {}))
                except ValidationError as e:
                    await websocket.send_json({"type": "ERROR", "error": str(e)})
                    continue
                result = manager.perform(request)
                await websocket.send_json({
                    "type": "ACTION_RESULT",
                    "action": request.action,
                    "result": result.to_dict(),
                    "snapshot": manager.engine.current_snapshot(),
                })
            else:
                await websocket.send_json({"type": "ERROR", "error": f"Unknown command: {command}"})

    except WebSocketDisconnect:
        manager.pause()
        manager.active_websocket = None
        logger.info("Client disconnected")
