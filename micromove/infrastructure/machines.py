"""
Session state machine: start -> loading -> session -> complete.

The module-level `on_*` functions are pure: they take a SessionSnapshot and
return a new one, raising InvalidTransition for actions the current state
does not accept. SessionMachine drives them, owns the one-second countdown
loop, persistence and the event bus, and talks to the step backend.
"""
import asyncio
from typing import Any, Dict, List, Optional

from micromove.config import DEFAULT_TIMER_MINUTES
from micromove.errors import InvalidTransition
from micromove.infrastructure.event_bus import EventBus, EventType
from micromove.infrastructure.logging import get_logger
from micromove.infrastructure.persistence import SessionStore
from micromove.models.schemas import MicroStep, SessionSnapshot, SessionState
from micromove.tools.fallback import client_fallback_reframe, client_fallback_steps
from micromove.tools.messages import format_time

logger = get_logger(__name__)

# --- Pure transitions ---

def _require(s: SessionSnapshot, *states: SessionState):
    if s.state not in states:
        allowed = "/".join(st.value for st in states)
        raise InvalidTransition(f"Action needs state {allowed}, current state is {s.state.value}")

def _replace_current(s: SessionSnapshot, **changes: Any) -> List[MicroStep]:
    steps = list(s.steps)
    steps[s.current_step_index] = steps[s.current_step_index].model_copy(update=changes)
    return steps

def _advance(s: SessionSnapshot, steps: List[MicroStep]) -> SessionSnapshot:
    # Leaving a step abandons any pending reframe; the countdown it paused restarts.
    if s.current_step_index < len(s.steps) - 1:
        return s.model_copy(update={
            "steps": steps,
            "current_step_index": s.current_step_index + 1,
            "time_left": s.timer_duration,
            "is_timer_running": s.is_timer_running or s.is_reframing,
            "is_reframing": False,
        })
    return s.model_copy(update={
        "steps": steps,
        "state": SessionState.COMPLETE,
        "is_timer_running": False,
        "is_reframing": False,
    })

def new_session(timer_duration: int = DEFAULT_TIMER_MINUTES * 60) -> SessionSnapshot:
    return SessionSnapshot(timer_duration=timer_duration, time_left=timer_duration)

def on_submit(s: SessionSnapshot, task: str) -> SessionSnapshot:
    """Start breaking down a task. A blank task leaves the snapshot untouched."""
    _require(s, SessionState.START)
    clean_task = (task or "").strip()
    if not clean_task:
        return s
    return s.model_copy(update={
        "task": clean_task,
        "steps": [],
        "current_step_index": 0,
        "time_left": s.timer_duration,
        "total_time_spent": 0,
        "state": SessionState.LOADING,
        "is_timer_running": False,
        "is_reframing": False,
    })

def on_steps_received(s: SessionSnapshot, steps: List[str]) -> SessionSnapshot:
    _require(s, SessionState.LOADING)
    if not steps:
        raise InvalidTransition("Cannot start a session without steps")
    return s.model_copy(update={
        "steps": [MicroStep(id=i, text=text) for i, text in enumerate(steps)],
        "current_step_index": 0,
        "time_left": s.timer_duration,
        "state": SessionState.SESSION,
        "is_timer_running": True,
    })

def on_done(s: SessionSnapshot) -> SessionSnapshot:
    """Marks the current step completed, recording the time it took."""
    _require(s, SessionState.SESSION)
    elapsed = max(0, s.timer_duration - s.time_left)
    return _advance(s, _replace_current(s, completed=True, time_spent=elapsed))

def on_skip(s: SessionSnapshot) -> SessionSnapshot:
    _require(s, SessionState.SESSION)
    return _advance(s, _replace_current(s, skipped=True))

def on_stuck(s: SessionSnapshot) -> SessionSnapshot:
    """Pauses the countdown while a smaller version of the step is fetched."""
    _require(s, SessionState.SESSION)
    return s.model_copy(update={"is_timer_running": False, "is_reframing": True})

def on_reframe(s: SessionSnapshot, new_text: Optional[str]) -> SessionSnapshot:
    """Swaps in the reframed step (an empty reply keeps the old text) and restarts the countdown."""
    _require(s, SessionState.SESSION)
    steps = _replace_current(s, text=new_text) if new_text else list(s.steps)
    return s.model_copy(update={
        "steps": steps,
        "time_left": s.timer_duration,
        "is_timer_running": True,
        "is_reframing": False,
    })

def on_tick(s: SessionSnapshot) -> SessionSnapshot:
    """One second of countdown. Stops at zero; never advances on its own."""
    if s.state != SessionState.SESSION or not s.is_timer_running or s.time_left <= 0:
        return s
    return s.model_copy(update={
        "time_left": s.time_left - 1,
        "total_time_spent": s.total_time_spent + 1,
    })

def on_pause(s: SessionSnapshot) -> SessionSnapshot:
    _require(s, SessionState.SESSION)
    return s.model_copy(update={"is_timer_running": False})

def on_resume(s: SessionSnapshot) -> SessionSnapshot:
    _require(s, SessionState.SESSION)
    return s.model_copy(update={"is_timer_running": True})

def on_toggle_timer(s: SessionSnapshot) -> SessionSnapshot:
    return on_pause(s) if s.is_timer_running else on_resume(s)

def on_reset(s: SessionSnapshot) -> SessionSnapshot:
    return new_session(s.timer_duration)

def with_timer_duration(s: SessionSnapshot, seconds: int) -> SessionSnapshot:
    """New duration applies from the next step; outside a session the countdown is reset too."""
    update = {"timer_duration": seconds}
    if s.state != SessionState.SESSION:
        update["time_left"] = seconds
    return s.model_copy(update=update)

def timer_just_expired(prev: SessionSnapshot, new: SessionSnapshot) -> bool:
    return new.is_timer_running and prev.time_left > 0 and new.time_left == 0

# --- Controller ---

class SessionMachine:
    """
    Drives one user's session through the pure transitions.
    Persists while in `session`, publishes side-effect events, and applies
    backend replies only if the session they were requested for is still current.
    """
    def __init__(
        self,
        event_bus: EventBus,
        store: SessionStore,
        backend,
        timer_duration: int = DEFAULT_TIMER_MINUTES * 60,
        tick_seconds: float = 1.0,
    ):
        self.event_bus = event_bus
        self.store = store
        self.backend = backend
        self.tick_seconds = tick_seconds
        self.snapshot = new_session(timer_duration)
        self._timer_task: Optional[asyncio.Task] = None
        # Bumped whenever a different session takes over; replies carry the value they were requested under.
        self._generation = 0

    @property
    def state(self) -> SessionState:
        return self.snapshot.state

    def _apply(self, new: SessionSnapshot) -> SessionSnapshot:
        self.snapshot = new
        if new.state == SessionState.SESSION:
            self.store.save(new)
        return new

    def _error(self, e: Exception) -> Dict:
        return {"status": "error", "state": self.snapshot.state.value, "message": str(e)}

    def set_timer_duration(self, seconds: int):
        self._apply(with_timer_duration(self.snapshot, seconds))

    async def restore(self) -> bool:
        """Resumes a saved session, paused. Only valid before anything else has started."""
        if self.snapshot.state != SessionState.START:
            return False
        saved = self.store.load(self.snapshot.timer_duration)
        if saved is None:
            return False
        self.snapshot = saved
        self._generation += 1
        await self.event_bus.publish(EventType.SESSION_RESTORED, {
            "task": saved.task,
            "step": saved.current_step_index + 1,
            "total_steps": len(saved.steps),
        })
        return True

    async def submit(self, task: str) -> Dict:
        """Breaks the task down and starts the session."""
        try:
            loading = on_submit(self.snapshot, task)
        except InvalidTransition as e:
            return self._error(e)
        if loading is self.snapshot:
            return {"status": "error", "state": self.snapshot.state.value, "message": "Task is empty"}

        self.store.clear()
        self._generation += 1
        generation = self._generation
        self._apply(loading)

        try:
            steps = await self.backend.breakdown(loading.task)
            if not steps:
                raise ValueError("No steps returned")
        except Exception as e:
            logger.warning("Breakdown call failed, using local steps", extra={"props": {
                "event": "client_breakdown_fallback",
                "task": loading.task[:80],
                "cause": f"{type(e).__name__}: {e}",
            }})
            steps = client_fallback_steps(loading.task)

        if self._generation != generation or self.snapshot.state != SessionState.LOADING:
            logger.info("Discarding breakdown for a session that is no longer loading", extra={"props": {
                "event": "stale_breakdown",
                "task": loading.task[:80],
            }})
            return {"status": "discarded", "state": self.snapshot.state.value}

        started = self._apply(on_steps_received(self.snapshot, steps))
        await self.event_bus.publish(EventType.SESSION_STARTED, {
            "task": started.task,
            "total_steps": len(started.steps),
        })
        return {
            "status": "started",
            "task": started.task,
            "steps": [s.text for s in started.steps],
        }

    async def done(self) -> Dict:
        return await self._finish_step(on_done, EventType.STEP_COMPLETED, "completed")

    async def skip(self) -> Dict:
        return await self._finish_step(on_skip, EventType.STEP_SKIPPED, "skipped")

    async def _finish_step(self, transition, event_type: EventType, status: str) -> Dict:
        prev = self.snapshot
        try:
            new = transition(prev)
        except InvalidTransition as e:
            return self._error(e)

        finished = new.steps[prev.current_step_index]
        self._apply(new)
        await self.event_bus.publish(event_type, {
            "task": new.task,
            "step_id": finished.id,
            "text": finished.text,
            "time_spent": finished.time_spent,
        })

        if new.state == SessionState.COMPLETE:
            return await self._complete()
        return {
            "status": status,
            "next_step": new.current_step.text,
            "step": new.current_step_index + 1,
            "total_steps": len(new.steps),
        }

    async def _complete(self) -> Dict:
        self.store.clear()
        summary = self.summary()
        await self.event_bus.publish(EventType.SESSION_COMPLETED, summary)
        return {"status": "complete", **summary}

    async def stuck(self) -> Dict:
        """Replaces the current step with a smaller one."""
        try:
            paused = self._apply(on_stuck(self.snapshot))
        except InvalidTransition as e:
            return self._error(e)

        generation = self._generation
        index = paused.current_step_index
        original = paused.current_step.text
        try:
            new_text = await self.backend.reframe(original, paused.task)
        except Exception as e:
            logger.warning("Reframe call failed, using local reframe", extra={"props": {
                "event": "client_reframe_fallback",
                "step": original[:80],
                "cause": f"{type(e).__name__}: {e}",
            }})
            new_text = client_fallback_reframe(original)

        current = self.snapshot
        if (self._generation != generation or current.state != SessionState.SESSION
                or not current.is_reframing or current.current_step_index != index):
            logger.info("Discarding reframe for a step that is no longer current", extra={"props": {
                "event": "stale_reframe",
                "step": original[:80],
            }})
            return {"status": "discarded", "state": current.state.value}

        reframed = self._apply(on_reframe(current, new_text))
        await self.event_bus.publish(EventType.STEP_REFRAMED, {
            "task": reframed.task,
            "step_id": reframed.current_step.id,
            "original": original,
            "text": reframed.current_step.text,
        })
        return {"status": "reframed", "original": original, "new_step": reframed.current_step.text}

    def pause(self) -> Dict:
        return self._timer_action(on_pause)

    def resume(self) -> Dict:
        return self._timer_action(on_resume)

    def toggle_timer(self) -> Dict:
        return self._timer_action(on_toggle_timer)

    def _timer_action(self, transition) -> Dict:
        try:
            new = self._apply(transition(self.snapshot))
        except InvalidTransition as e:
            return self._error(e)
        return {"status": "running" if new.is_timer_running else "paused", "time_left": new.time_left}

    async def tick(self):
        prev = self.snapshot
        new = on_tick(prev)
        if new is prev:
            return
        self._apply(new)
        if timer_just_expired(prev, new):
            await self.event_bus.publish(EventType.TIMER_EXPIRED, {
                "task": new.task,
                "step": new.current_step.text,
            })

    async def reset(self) -> Dict:
        """Back to task entry from any state; forgets the saved session."""
        previous_task = self.snapshot.task
        self.snapshot = on_reset(self.snapshot)
        self._generation += 1
        self.store.clear()
        await self.event_bus.publish(EventType.SESSION_RESET, {"task": previous_task})
        return {"status": "reset"}

    # --- Countdown loop ---

    def start_timer_loop(self):
        if self._timer_task is None or self._timer_task.done():
            self._timer_task = asyncio.create_task(self._timer_loop())

    async def _timer_loop(self):
        while True:
            await asyncio.sleep(self.tick_seconds)
            await self.tick()

    def stop_timer_loop(self):
        if self._timer_task:
            self._timer_task.cancel()
            self._timer_task = None

    # --- Reporting ---

    def summary(self) -> Dict:
        s = self.snapshot
        return {
            "task": s.task,
            "total_steps": len(s.steps),
            "completed_steps": s.completed_steps,
            "skipped_steps": s.skipped_steps,
            "total_time_spent": s.total_time_spent,
        }

    def get_status(self) -> Dict:
        s = self.snapshot
        if s.state == SessionState.START:
            return {"state": "start", "message": "No active session"}
        status = {
            "state": s.state.value,
            "task": s.task,
            "progress": round(s.progress),
            "completed_steps": s.completed_steps,
            "skipped_steps": s.skipped_steps,
            "total_time_spent": format_time(s.total_time_spent),
        }
        if s.state == SessionState.SESSION:
            status.update({
                "step": s.current_step_index + 1,
                "total_steps": len(s.steps),
                "current_step": s.current_step.text,
                "time_left": format_time(s.time_left),
                "timer_running": s.is_timer_running,
                "reframing": s.is_reframing,
            })
        return status
