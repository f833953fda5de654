"""
Session Lifecycle - simulated virtual session state.

Each session owns two asyncio tasks: a one-shot connection timer that
brings the second participant in, and a repeating tick timer that
counts elapsed seconds once the session is active. Ending or tearing
down the session cancels both.
"""

import asyncio
from typing import Callable, Dict, List, Optional

from loguru import logger

from therapy_booking.config import Settings, get_settings
from therapy_booking.exceptions import DuplicateMeetingId, SessionEnded
from therapy_booking.models.session import SessionState, SessionStatus


class SessionLifecycle:
    """
    State machine for one virtual session: CONNECTING -> ACTIVE -> ENDED.

    Mute and video toggles are local presentation flags; they never
    affect connection state or participant count.
    """

    def __init__(
        self,
        meeting_id: str,
        connection_delay: Optional[float] = None,
        tick_interval: Optional[float] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings if settings is not None else get_settings()
        self.meeting_id = meeting_id
        self.connection_delay = (
            settings.session_connection_delay if connection_delay is None else connection_delay
        )
        self.tick_interval = (
            settings.session_tick_interval if tick_interval is None else tick_interval
        )

        self._status = SessionStatus.CONNECTING
        self._muted = False
        self._video_off = False
        self._participant_count = 1
        self._elapsed_seconds = 0

        self._connection_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._connected_event = asyncio.Event()
        self._end_callbacks: List[Callable[["SessionLifecycle"], None]] = []

    # ==================== State accessors ====================

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def connected(self) -> bool:
        return self._status == SessionStatus.ACTIVE

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def video_off(self) -> bool:
        return self._video_off

    @property
    def participant_count(self) -> int:
        return self._participant_count

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed_seconds

    @property
    def is_ended(self) -> bool:
        return self._status == SessionStatus.ENDED

    @property
    def formatted_elapsed(self) -> str:
        return self.snapshot().formatted_elapsed

    def snapshot(self) -> SessionState:
        """Get an immutable view of the current state."""
        return SessionState(
            meeting_id=self.meeting_id,
            status=self._status,
            connected=self.connected,
            muted=self._muted,
            video_off=self._video_off,
            participant_count=self._participant_count,
            elapsed_seconds=self._elapsed_seconds,
        )

    # ==================== Timers ====================

    def start(self) -> None:
        """
        Schedule the connection timer. Must be called from a running event loop.

        Calling start() more than once has no effect.
        """
        if self.is_ended:
            raise SessionEnded(self.meeting_id)
        if self._connection_task is not None:
            return

        self._connection_task = asyncio.get_running_loop().create_task(
            self._connect_after_delay(), name=f"session-connect-{self.meeting_id}"
        )
        logger.info(f"Session {self.meeting_id}: connecting")

    async def _connect_after_delay(self) -> None:
        await asyncio.sleep(self.connection_delay)
        self._on_connected()

    def _on_connected(self) -> None:
        if self._status != SessionStatus.CONNECTING:
            return
        self._status = SessionStatus.ACTIVE
        self._participant_count = 2
        self._connected_event.set()
        logger.info(f"Session {self.meeting_id}: active with {self._participant_count} participants")

        if self._tick_task is None:
            self._tick_task = asyncio.get_running_loop().create_task(
                self._tick_loop(), name=f"session-tick-{self.meeting_id}"
            )

    async def _tick_loop(self) -> None:
        """Tick on absolute deadlines so sleep overshoot never accumulates."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        ticks = 0
        while self._status == SessionStatus.ACTIVE:
            ticks += 1
            await asyncio.sleep(max(0.0, started + ticks * self.tick_interval - loop.time()))
            self.tick()

    def tick(self) -> bool:
        """
        Advance the elapsed counter by one unit.

        Returns:
            True if the counter moved, False outside the ACTIVE state
        """
        if self._status != SessionStatus.ACTIVE:
            return False
        self._elapsed_seconds += 1
        return True

    async def wait_connected(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the second participant joins.

        Returns:
            True if connected, False if the wait timed out
        """
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # ==================== Local toggles ====================

    def toggle_mute(self) -> bool:
        """Flip the local mute flag and return the new value."""
        if self.is_ended:
            raise SessionEnded(self.meeting_id)
        self._muted = not self._muted
        return self._muted

    def toggle_video(self) -> bool:
        """Flip the local video-off flag and return the new value."""
        if self.is_ended:
            raise SessionEnded(self.meeting_id)
        self._video_off = not self._video_off
        return self._video_off

    # ==================== Termination ====================

    def end(self) -> SessionState:
        """
        End the session at the user's request.

        The confirmation prompt is the caller's responsibility.
        """
        if not self.is_ended:
            logger.info(
                f"Session {self.meeting_id}: ended by user after {self.formatted_elapsed}"
            )
        self._shutdown()
        return self.snapshot()

    def teardown(self) -> None:
        """Release timers when the consumer goes away. Safe to call repeatedly."""
        if not self.is_ended:
            logger.info(f"Session {self.meeting_id}: torn down")
        self._shutdown()

    def add_end_callback(self, callback: Callable[["SessionLifecycle"], None]) -> None:
        """Call callback once the session ends (immediately if it already has)."""
        if self.is_ended:
            callback(self)
        else:
            self._end_callbacks.append(callback)

    def _shutdown(self) -> None:
        was_ended = self.is_ended
        self._status = SessionStatus.ENDED
        for task in (self._connection_task, self._tick_task):
            if task is not None and not task.done():
                task.cancel()

        if not was_ended:
            callbacks, self._end_callbacks = self._end_callbacks, []
            for callback in callbacks:
                callback(self)

    async def __aenter__(self) -> "SessionLifecycle":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.teardown()


class SessionRegistry:
    """
    Live sessions keyed by meeting id.

    A session is dropped as soon as it ends. A meeting id can be
    registered only once for the lifetime of the registry, even after
    its session has gone.
    """

    def __init__(self):
        self._sessions: Dict[str, SessionLifecycle] = {}
        self._issued: set = set()

    def __contains__(self, meeting_id: str) -> bool:
        return meeting_id in self._issued

    def __len__(self) -> int:
        return len(self._sessions)

    def register(self, session: SessionLifecycle) -> None:
        """Track a session. Raises DuplicateMeetingId if the id was ever used."""
        if session.meeting_id in self._issued:
            raise DuplicateMeetingId(session.meeting_id)
        self._issued.add(session.meeting_id)
        self._sessions[session.meeting_id] = session
        session.add_end_callback(self._on_session_ended)

    def _on_session_ended(self, session: SessionLifecycle) -> None:
        if self._sessions.get(session.meeting_id) is session:
            del self._sessions[session.meeting_id]

    def get(self, meeting_id: str) -> Optional[SessionLifecycle]:
        return self._sessions.get(meeting_id)

    def remove(self, meeting_id: str) -> Optional[SessionLifecycle]:
        """Stop tracking a session, tearing it down."""
        session = self._sessions.pop(meeting_id, None)
        if session is not None:
            session.teardown()
        return session

    def active_sessions(self) -> List[SessionLifecycle]:
        return [s for s in self._sessions.values() if not s.is_ended]

    def teardown_all(self) -> None:
        """Tear down every tracked session."""
        sessions = list(self._sessions.values())
        for session in sessions:
            session.teardown()
        self._sessions.clear()
        logger.info(f"Tore down {len(sessions)} sessions")


# Process-wide registry
_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    """Get the singleton session registry."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry
