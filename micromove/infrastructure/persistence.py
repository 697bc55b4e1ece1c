from typing import Optional

from pydantic import ValidationError as SchemaError

from micromove.config import SESSION_STORAGE_KEY
from micromove.infrastructure.database import DatabaseManager
from micromove.infrastructure.logging import get_logger
from micromove.models.schemas import SessionSnapshot, SessionState

logger = get_logger(__name__)

class SessionStore:
    """
    Persists the active session blob.
    Only sessions in the `session` state are ever written.
    """
    def __init__(self, db: DatabaseManager, key: str = SESSION_STORAGE_KEY):
        self.db = db
        self.key = key

    def save(self, snapshot: SessionSnapshot):
        if snapshot.state != SessionState.SESSION or not snapshot.steps:
            return
        self.db.save_state(self.key, snapshot.to_storage())

    def clear(self):
        self.db.delete_state(self.key)

    def load(self, timer_duration: int) -> Optional[SessionSnapshot]:
        """
        Returns the saved session, paused, or None when nothing resumable is stored.
        A session is resumable when it is mid-`session` with a valid step index.
        """
        blob = self.db.get_state(self.key)
        if not isinstance(blob, dict):
            return None

        try:
            snapshot = SessionSnapshot.model_validate(blob)
        except SchemaError as e:
            logger.warning("Discarding unreadable saved session", extra={"props": {
                "event": "session_restore_failed",
                "cause": str(e),
            }})
            return None

        if snapshot.state != SessionState.SESSION or not snapshot.steps:
            return None
        if not 0 <= snapshot.current_step_index < len(snapshot.steps):
            logger.warning("Discarding saved session with out-of-range step index", extra={"props": {
                "event": "session_restore_failed",
                "index": snapshot.current_step_index,
                "steps": len(snapshot.steps),
            }})
            return None

        return snapshot.model_copy(update={
            "timer_duration": timer_duration,
            "is_timer_running": False,
            "is_reframing": False,
        })
