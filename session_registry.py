"""
Session registry for the single attached NFC reader

Hardware observers publish events onto the registry's queue; the registry is
the only consumer and the only place session state changes. Tag operations
look the session up here instead of holding on to a reader object.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from tag_reader import TagReader

logger = logging.getLogger(__name__)

ATTACHED = "attached"
DETACHED = "detached"


class Session:
    """The currently attached reader and what it sees"""

    def __init__(self, device_id: str, reader: TagReader):
        self.device_id = device_id
        self.reader = reader
        self.state = ATTACHED
        self.card = None  # descriptor dict while a card is present

    @property
    def is_active(self) -> bool:
        return self.state == ATTACHED

    @property
    def has_card(self) -> bool:
        return self.card is not None

    def __repr__(self):
        return f"Session({self.device_id!r}, state={self.state}, card={self.card})"


@dataclass(frozen=True)
class ReaderAttached:
    device_id: str
    reader: TagReader


@dataclass(frozen=True)
class ReaderDetached:
    device_id: Optional[str] = None


@dataclass(frozen=True)
class CardPresent:
    descriptor: dict = field(default_factory=dict)
    device_id: Optional[str] = None


@dataclass(frozen=True)
class CardAbsent:
    device_id: Optional[str] = None


@dataclass(frozen=True)
class ReaderError:
    cause: Any


ReaderEvent = Union[ReaderAttached, ReaderDetached, CardPresent, CardAbsent, ReaderError]

_STOP = object()


class SessionRegistry:
    def __init__(self):
        self._session: Optional[Session] = None
        self._changed = threading.Condition()
        self._events: "queue.Queue" = queue.Queue()
        self._dispatcher: Optional[threading.Thread] = None
        self.listeners = []  # called with each applied event

    # Event handlers

    def on_attach(self, device_id: str, reader: TagReader):
        with self._changed:
            previous = self._session
            if previous is not None:
                previous.state = DETACHED
            self._session = Session(device_id, reader)
            self._changed.notify_all()
        if previous is not None:
            logger.info(f"{previous.device_id} replaced by newly attached reader")
            self._release(previous)
        logger.info(f"{device_id} device attached")

    def on_detach(self, device_id: Optional[str] = None):
        with self._changed:
            session = self._session
            if session is None:
                return
            if device_id is not None and device_id != session.device_id:
                logger.debug(f"Ignoring detach of {device_id}, current reader is {session.device_id}")
                return
            session.state = DETACHED
            self._session = None
            self._changed.notify_all()
        self._release(session)
        logger.info(f"{session.device_id} device removed")

    def _session_for(self, device_id: Optional[str]) -> Optional[Session]:
        session = self._session
        if session is None:
            return None
        if device_id is not None and device_id != session.device_id:
            return None
        return session

    def _release(self, session: Session):
        try:
            session.reader.release()
        except Exception as e:
            logger.warning(f"{session.device_id} failed to release card connection: {e}")

    def on_card_present(self, descriptor: Optional[dict] = None, device_id: Optional[str] = None):
        with self._changed:
            session = self._session_for(device_id)
            if session is None:
                return
            session.card = dict(descriptor or {})
            self._changed.notify_all()
        logger.info(f"{session.device_id} card detected: {session.card}")

    def on_card_absent(self, device_id: Optional[str] = None):
        with self._changed:
            session = self._session_for(device_id)
            if session is None:
                return
            session.card = None
            self._changed.notify_all()
        self._release(session)
        logger.info(f"{session.device_id} card removed")

    def on_error(self, cause):
        session = self._session
        name = session.device_id if session else "NFC"
        logger.error(f"{name} an error occurred: {cause}")

    # Queries

    def current_session(self) -> Optional[Session]:
        return self._session

    def current_reader(self) -> Optional[TagReader]:
        session = self._session
        return session.reader if session else None

    def has_card(self) -> bool:
        session = self._session
        return session is not None and session.has_card

    def is_current(self, session: Session) -> bool:
        return session.is_active and session is self._session

    def snapshot(self) -> dict:
        session = self._session
        if session is None:
            return {"reader": None, "state": "no_reader", "card": None}
        return {
            "reader": session.device_id,
            "state": "card_present" if session.has_card else "card_absent",
            "card": session.card,
        }

    def wait_for(self, predicate: Callable[[], bool], timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        with self._changed:
            while not predicate():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._changed.wait(remaining)
            return True

    def wait_for_reader(self, timeout: float) -> bool:
        return self.wait_for(lambda: self._session is not None, timeout)

    def wait_for_card(self, timeout: float) -> bool:
        return self.wait_for(self.has_card, timeout)

    # Event channel

    def publish(self, event: ReaderEvent):
        self._events.put(event)

    def dispatch(self, event: ReaderEvent):
        """Apply a single event to the session state"""
        if isinstance(event, ReaderAttached):
            self.on_attach(event.device_id, event.reader)
        elif isinstance(event, ReaderDetached):
            self.on_detach(event.device_id)
        elif isinstance(event, CardPresent):
            self.on_card_present(event.descriptor, event.device_id)
        elif isinstance(event, CardAbsent):
            self.on_card_absent(event.device_id)
        elif isinstance(event, ReaderError):
            self.on_error(event.cause)
        else:
            raise TypeError(f"Unknown reader event: {event!r}")

        for listener in list(self.listeners):
            listener(event)

    def drain(self) -> int:
        """Apply all queued events on the calling thread"""
        applied = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return applied
            if event is _STOP:
                continue
            self.dispatch(event)
            applied += 1

    def start(self):
        if self._dispatcher is not None:
            return
        self._dispatcher = threading.Thread(target=self._run, name="nfc-session-events", daemon=True)
        self._dispatcher.start()

    def stop(self, timeout: float = 2.0):
        if self._dispatcher is None:
            return
        self._events.put(_STOP)
        self._dispatcher.join(timeout)
        self._dispatcher = None

    def _run(self):
        while True:
            event = self._events.get()
            if event is _STOP:
                break
            try:
                self.dispatch(event)
            except Exception:
                logger.exception(f"Failed to apply reader event {event!r}")
