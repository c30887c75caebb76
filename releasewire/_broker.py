"""Broker configuration helpers for Dramatiq actor setup.

Called when an actor runs so a broker is available for any messages the
invocation sends. Tests install a ``StubBroker`` before importing
:mod:`releasewire.actors`.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

_BROKER_LOCK = threading.Lock()
_broker_configured = False


def _is_running_tests() -> bool:
    """Return True when pytest is driving the current process."""
    return "pytest" in sys.modules or any(
        key in os.environ
        for key in ["PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER", "PYTEST_ADDOPTS"]
    )


def _should_use_stub_broker() -> bool:
    """Return True when a StubBroker is acceptable.

    ``RELEASEWIRE_ALLOW_STUB_BROKER`` opts in explicitly; test runs opt in
    implicitly.
    """
    allow_stub = os.environ.get("RELEASEWIRE_ALLOW_STUB_BROKER", "")
    return allow_stub.lower() in {"1", "true", "yes"} or _is_running_tests()


def ensure_broker_configured() -> None:
    """Ensure a Dramatiq broker is configured before actor execution.

    Idempotent and thread-safe; Dramatiq runs actors on several worker
    threads.

    Raises
    ------
    RuntimeError
        If no broker is configured and a StubBroker is not allowed.

    """
    global _broker_configured

    if _broker_configured:
        return

    with _BROKER_LOCK:
        if _broker_configured:
            return

        try:  # pragma: no cover - exercised in tests and CLI usage
            current_broker = dramatiq.get_broker()
        except (ImportError, LookupError):
            # ImportError: the default RabbitMQ/Redis broker extras are absent
            current_broker = None

        if current_broker is None:
            if not _should_use_stub_broker():  # pragma: no cover - prod guard
                message = (
                    "No Dramatiq broker configured. "
                    "Set RELEASEWIRE_ALLOW_STUB_BROKER=1 for "
                    "local/test runs or configure a real broker."
                )
                raise RuntimeError(message)
            dramatiq.set_broker(StubBroker())

        _broker_configured = True
