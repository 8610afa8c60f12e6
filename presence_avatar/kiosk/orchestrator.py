"""
Orchestration root for the kiosk.

Turns presence events and user actions into controller start/stop calls
and keeps a coarse lifecycle state:

    idle ──appeared──► launching ──connected──► active
      ▲                    │                      │
      └──── lost / closed / disconnected ─────────┘

Auto-launch fires at most once per appearance; the flag is cleared when
the session ends so that the next appearance can launch again.
"""

import asyncio
import logging
from typing import Any

from ..core.constants import ConnectionStatus, OrchestratorState
from ..core.models import LaunchAttempt, StreamStatusEvent
from ..stream.bridge import StreamStatusBridge
from ..stream.controller import StreamSessionController

logger = logging.getLogger("avatar.kiosk.orchestrator")


class PresenceSessionOrchestrator:
    """Wires the presence detector, stream controller and stream bridge."""

    def __init__(
        self,
        controller: StreamSessionController,
        bridge: StreamStatusBridge,
        persona_config: dict[str, Any],
    ):
        self._controller = controller
        self._bridge = bridge
        self._persona_config = persona_config

        controller.on_token = self._on_token
        controller.on_error = self._on_launch_failed
        bridge.on_status = self.on_stream_status
        bridge.is_current = controller.is_current

        self._state = OrchestratorState.IDLE
        self._auto_launch_fired = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def auto_launch_fired(self) -> bool:
        return self._auto_launch_fired

    @property
    def controller(self) -> StreamSessionController:
        return self._controller

    def _set_state(self, state: OrchestratorState) -> None:
        if state != self._state:
            logger.info("Session state: %s -> %s", self._state.value, state.value)
            self._state = state

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # === Presence events ===

    async def on_person_appeared(self) -> None:
        """Auto-launch once per appearance while idle."""
        if self._auto_launch_fired or self._state != OrchestratorState.IDLE:
            logger.debug("Appearance ignored in %s (auto-launch fired=%s)", self._state.value, self._auto_launch_fired)
            return
        if self._controller.token is not None or self._controller.is_pending:
            return

        self._auto_launch_fired = True
        logger.info("Person detected, launching avatar session")
        self._start()

    async def on_person_lost(self) -> None:
        """Close the session when the person leaves."""
        if self._state not in (OrchestratorState.LAUNCHING, OrchestratorState.ACTIVE):
            # Allows a relaunch after a failed launch once the person returns
            self._auto_launch_fired = False
            return

        logger.info("No person detected, closing session...")
        self._set_state(OrchestratorState.CLOSING)
        self._controller.request_stop()
        await self._bridge.shutdown()
        self._auto_launch_fired = False
        if self._state == OrchestratorState.CLOSING:
            self._set_state(OrchestratorState.IDLE)

    # === User actions ===

    def launch(self) -> LaunchAttempt:
        """Manual launch (e.g. a start button)."""
        if self._bridge.status != ConnectionStatus.DISCONNECTED:
            self._spawn(self._bridge.shutdown())
        return self._start()

    def close_session(self) -> None:
        """User closed the session; applies immediately."""
        self._controller.request_stop()
        self._auto_launch_fired = False
        self._set_state(OrchestratorState.IDLE)
        self._spawn(self._bridge.shutdown())

    def _start(self) -> LaunchAttempt:
        self._set_state(OrchestratorState.LAUNCHING)
        return self._controller.request_start(self._persona_config)

    # === Controller and bridge callbacks ===

    async def _on_token(self, attempt: LaunchAttempt, token: str) -> None:
        if not self._controller.is_current(attempt.id):
            return
        self._spawn(self._bridge.connect(attempt.id, token, self._persona_config))

    async def _on_launch_failed(self, attempt: LaunchAttempt, message: str) -> None:
        if self._state == OrchestratorState.LAUNCHING:
            self._set_state(OrchestratorState.IDLE)

    async def on_stream_status(self, event: StreamStatusEvent) -> None:
        """Feed bridge status into the controller and the lifecycle state."""
        if not self._controller.apply_stream_status(event.attempt_id, event.status, event.error):
            return

        if event.status == ConnectionStatus.CONNECTED:
            if self._state == OrchestratorState.LAUNCHING:
                self._set_state(OrchestratorState.ACTIVE)
        elif event.status in (ConnectionStatus.DISCONNECTED, ConnectionStatus.ERRORED):
            if self._state in (OrchestratorState.LAUNCHING, OrchestratorState.ACTIVE):
                if event.status == ConnectionStatus.ERRORED:
                    logger.warning("Avatar stream error: %s", event.error)
                self._set_state(OrchestratorState.IDLE)
                self._auto_launch_fired = False
                # Release the microphone and listeners of the dead client
                self._spawn(self._bridge.shutdown())

    async def wait_idle(self) -> None:
        """Wait for pending launches and bridge work to settle."""
        while True:
            await self._controller.wait_idle()
            await self._bridge.wait_idle()
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop the session and release the stream."""
        self._controller.request_stop()
        self._set_state(OrchestratorState.IDLE)
        await self.wait_idle()
        await self._bridge.shutdown()
