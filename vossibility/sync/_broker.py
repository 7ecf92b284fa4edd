"""Broker resolution for ``sync_repositories_job``.

``vossibility sync --enqueue`` and the worker process both reach the actor
through Dramatiq's process-wide broker. Resolution happens on first use, so
importing :mod:`vossibility.sync` leaves that global untouched.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

STUB_BROKER_ENV = "VOSSIBILITY_ALLOW_STUB_BROKER"

_TRUTHY = frozenset({"1", "true", "yes"})
_PYTEST_MARKERS = ("PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER", "PYTEST_ADDOPTS")

_resolve_lock = threading.Lock()
_resolved = False


def _stub_allowed() -> bool:
    """Return True when a missing broker may be replaced by an in-memory one.

    That is the case under pytest and when ``VOSSIBILITY_ALLOW_STUB_BROKER``
    is truthy, for running syncs through the actor without RabbitMQ.
    """
    if os.environ.get(STUB_BROKER_ENV, "").strip().lower() in _TRUTHY:
        return True
    return "pytest" in sys.modules or any(key in os.environ for key in _PYTEST_MARKERS)


def ensure_broker_configured() -> None:
    """Make sure the sync actor has a broker to send to.

    Called by the actor on every invocation; only the first call does any
    work, and concurrent worker threads resolve the broker once.

    Raises
    ------
    RuntimeError
        If no broker is configured and a stub broker is not allowed.

    """
    global _resolved

    if _resolved:
        return
    with _resolve_lock:
        if _resolved:
            return
        try:
            broker = dramatiq.get_broker()
        except (ImportError, LookupError):
            # RabbitMQ extras missing, or nothing configured yet.
            broker = None
        if broker is None:
            if not _stub_allowed():
                message = (
                    "sync actor has no Dramatiq broker; configure RabbitMQ or "
                    f"set {STUB_BROKER_ENV}=1 to run syncs in-process"
                )
                raise RuntimeError(message)
            dramatiq.set_broker(StubBroker())
        _resolved = True
