"""
Cleanup Mixin - run an owner's teardown once, whoever asks first.

A test environment can be torn down from an explicit unwind, from the
interpreter exiting, or from Ctrl-C while containers are still starting.
Whichever comes first does the work; later requests are answered with a
CleanupResult saying why nothing ran.
"""

import atexit
import os
import signal
import sys
import threading
from abc import ABC, abstractmethod

from chainbox.commands.constants import CleanupResult
from chainbox.commands.utils import console

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CleanupMixin(ABC):
    """Once-only teardown for objects that own containers or networks.

    Owners call ``_init_teardown_guard()`` from ``__init__`` and implement
    ``_teardown()``. Signal handling is opt-in through
    ``install_signal_handlers()`` because pytest owns SIGINT in most runs.
    """

    def _init_teardown_guard(self):
        self._teardown_lock = threading.RLock()
        self._teardown_state = None
        self._interrupted = False
        self._previous_handlers = {}

    @property
    def torn_down(self) -> bool:
        return self._teardown_state is CleanupResult.PERFORMED

    @property
    def tearing_down(self) -> bool:
        return self._teardown_state is CleanupResult.IN_PROGRESS

    def install_signal_handlers(self):
        """Tear down on SIGINT/SIGTERM and at interpreter exit."""
        for signum in HANDLED_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._on_signal)
        atexit.register(self.run_teardown)

    def restore_signal_handlers(self):
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers = {}

    def _on_signal(self, signum, frame):
        if self._interrupted:
            # second interrupt while containers are being removed
            console.print("\n[red]Interrupted again, exiting without teardown[/red]")
            sys.stdout.flush()
            os._exit(1)

        self._interrupted = True
        console.print(
            f"\n[yellow]{signal.Signals(signum).name} received, "
            f"removing test environment...[/yellow]"
        )
        if self.run_teardown() is not CleanupResult.IN_PROGRESS:
            sys.exit(0)

    def run_teardown(self) -> CleanupResult:
        """Run ``_teardown()`` unless it already ran or is running.

        The lock is re-entrant: a signal arriving on the thread that is
        already tearing down sees IN_PROGRESS instead of deadlocking.
        """
        with self._teardown_lock:
            if self._teardown_state is not None:
                return (
                    CleanupResult.ALREADY_DONE
                    if self.torn_down
                    else CleanupResult.IN_PROGRESS
                )
            self._teardown_state = CleanupResult.IN_PROGRESS
            try:
                self._teardown()
            finally:
                self._teardown_state = CleanupResult.PERFORMED
        return CleanupResult.PERFORMED

    @abstractmethod
    def _teardown(self):
        """Release owned resources. Called with the teardown lock held; must
        not exit the interpreter."""
