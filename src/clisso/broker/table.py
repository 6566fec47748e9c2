"""In-memory correlation table pairing a started login with its completion.

The begin-login handler and the redirect handler run in different threads
and usually overlap in time. The begin-login thread registers a request id
and blocks in :meth:`CorrelationTable.await_outcome` on the handle that
:meth:`CorrelationTable.register` returned. Some time later the redirect
thread calls :meth:`CorrelationTable.deliver` with the same id (the OAuth
``state`` parameter) and hands over the result. The redirect may win the
race and deliver before the wait starts; the handle keeps the outcome.

Locking discipline:

* A single :class:`threading.Lock` guards structural edits of the map
  (insert and remove). It is never held while a thread waits.
* Each :class:`PendingLogin` owns a one-shot handoff (an outcome slot and
  a :class:`threading.Event`). It is signalled after the entry has left
  the map.
* Timeout and delivery race on *removal*: whichever side pops the entry
  wins, so an entry resolves exactly once. A late redirect finds nothing
  and gets a clean "unknown session" failure.

Identifier collisions are rejected (:class:`~clisso.exceptions.LoginSessionError`)
rather than overwritten; with 64 bits of randomness the caller simply
regenerates.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from clisso.exceptions import LoginSessionError
from clisso.models import LoginOutcome

logger = logging.getLogger(__name__)

TIMED_OUT_REASON = "user's login session timed out"


class PendingLogin:
    """A single-use completion slot for one in-flight login.

    Only :class:`CorrelationTable` resolves entries; callers treat this as
    an opaque wait handle.
    """

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        self._outcome: Optional[LoginOutcome] = None
        self._done = threading.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def outcome(self) -> Optional[LoginOutcome]:
        """The delivered outcome, or ``None`` while still pending."""
        return self._outcome if self.done else None

    def _resolve(self, outcome: LoginOutcome) -> None:
        self._outcome = outcome
        self._done.set()

    def _wait(self, timeout: Optional[float]) -> Optional[LoginOutcome]:
        if self._done.wait(timeout):
            return self._outcome
        return None


class CorrelationTable:
    """Thread-safe map from login request ids to pending completions.

    Each broker owns its own table; there is no module-level state, so any
    number of brokers can coexist in one process.

    Example::

        table = CorrelationTable()
        pending = table.register("abc123")
        # ... in another thread:
        table.deliver("abc123", LoginOutcome.failure("denied"))
        # ... in the registering thread:
        outcome = table.await_outcome(pending, timeout=300)
    """

    def __init__(self) -> None:
        self._entries: dict[str, PendingLogin] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._entries

    def register(self, request_id: str) -> PendingLogin:
        """Create a pending entry for *request_id*.

        Args:
            request_id: The login correlation id.

        Returns:
            The :class:`PendingLogin` wait handle.

        Raises:
            LoginSessionError: If *request_id* is already registered. The
                existing entry is left untouched.
        """
        with self._lock:
            if request_id in self._entries:
                raise LoginSessionError(f"Login request id '{request_id}' is already pending")
            entry = PendingLogin(request_id)
            self._entries[request_id] = entry
        return entry

    def await_outcome(self, pending: PendingLogin, timeout: float) -> LoginOutcome:
        """Block until *pending* is resolved or *timeout* elapses.

        *pending* is the handle returned by :meth:`register`. An outcome
        delivered before the wait starts is returned straight away. The
        entry is gone from the table when this returns, on both paths.

        Args:
            pending: The wait handle of a registered login.
            timeout: Maximum wait in seconds.

        Returns:
            The delivered :class:`~clisso.models.LoginOutcome`, or a
            synthetic failure with :data:`TIMED_OUT_REASON`.
        """
        outcome = pending._wait(timeout)
        if outcome is not None:
            return outcome

        request_id = pending.request_id
        with self._lock:
            expired = self._entries.get(request_id) is pending
            if expired:
                del self._entries[request_id]
        if expired:
            logger.warning("User's login session timed out req-id=%s", request_id)
            return LoginOutcome.failure(TIMED_OUT_REASON)

        # deliver() popped the entry first and is about to signal it
        outcome = pending._wait(None)
        assert outcome is not None
        return outcome

    def deliver(self, request_id: str, outcome: LoginOutcome) -> bool:
        """Hand *outcome* to the thread waiting on *request_id*.

        Never blocks on the waiter.

        Args:
            request_id: The login correlation id from the redirect.
            outcome: The terminal outcome.

        Returns:
            ``True`` if a waiter received the outcome, ``False`` if the id
            is unknown, already resolved, or expired.
        """
        with self._lock:
            entry = self._entries.pop(request_id, None)
        if entry is None:
            logger.debug("No pending login for req-id=%s", request_id)
            return False
        entry._resolve(outcome)
        return True

    def discard(self, request_id: str) -> None:
        """Drop *request_id* without delivering anything.

        Used when the waiting side gives up early (e.g. its client
        disconnected before the wait started).
        """
        with self._lock:
            self._entries.pop(request_id, None)
