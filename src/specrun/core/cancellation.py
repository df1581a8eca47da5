"""Cooperative cancellation for spec runs.

A single ``CancellationToken`` flows from ``SpecRunner.run_async`` through the
execution strategy into every worker, middleware and spec body.  Timeout
middleware hands the inner pipeline a *linked* child token so it can cancel
one spec without cancelling the run.

Cancellation is cooperative only.  Synchronous bodies run in worker threads
and cannot be interrupted; they observe cancellation by polling
``current_token().cancelled``.  The engine never attempts to kill a thread.

::

    run token ──► strategy ──► unit ──► middleware ──► body
        │                                   │
        └── linked() ──► child token ───────┘  (cancelled on timeout)

Example::

    token = CancellationToken()
    task = asyncio.create_task(runner.run_async(root, token=token))
    token.cancel()
    await task          # raises RunCancelledError

Inside a body::

    def polls_for_cancellation():
        while not current_token().cancelled:
            do_some_work()
"""

from __future__ import annotations

import asyncio
import contextvars
import threading


class RunCancelledError(asyncio.CancelledError):
    """Raised when a run is cancelled through its token.

    Subclasses ``asyncio.CancelledError`` so that neither the spec isolation
    boundary (``except Exception``) nor middleware can turn cancellation
    into a Failed result.
    """

    def __init__(self, message: str = "Spec run was cancelled"):
        super().__init__(message)


class CancellationToken:
    """Thread-safe cancellation flag with parent/child linking."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: list[CancellationToken] = []
        self._parent: CancellationToken | None = None

    @property
    def cancelled(self) -> bool:
        """True once ``cancel()`` was called on this token or an ancestor."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation of this token and every linked child."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel()

    def raise_if_cancelled(self) -> None:
        """Raise ``RunCancelledError`` if cancellation was requested."""
        if self._event.is_set():
            raise RunCancelledError()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses. Returns ``cancelled``."""
        return self._event.wait(timeout)

    def linked(self) -> CancellationToken:
        """Create a child token that is cancelled whenever this one is."""
        child = CancellationToken()
        child._parent = self
        with self._lock:
            self._children.append(child)
            already_cancelled = self._event.is_set()
        if already_cancelled:
            child.cancel()
        return child

    def detach(self) -> None:
        """Unlink this token from its parent so the parent stops tracking it."""
        parent = self._parent
        if parent is None:
            return
        with parent._lock:
            if self in parent._children:
                parent._children.remove(self)
        self._parent = None

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


_current_token: contextvars.ContextVar[CancellationToken | None] = contextvars.ContextVar(
    "specrun_current_token", default=None
)


def current_token() -> CancellationToken:
    """Token of the spec or hook currently executing.

    Outside a run a fresh, never-cancelled token is returned so callers do
    not need a ``None`` check.
    """
    token = _current_token.get()
    return token if token is not None else CancellationToken()


def set_current_token(token: CancellationToken) -> contextvars.Token:
    """Publish ``token`` for the current context. Returns the reset handle."""
    return _current_token.set(token)


def reset_current_token(handle: contextvars.Token) -> None:
    _current_token.reset(handle)


__all__ = [
    "RunCancelledError",
    "CancellationToken",
    "current_token",
    "set_current_token",
    "reset_current_token",
]
