from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import List, Optional, Protocol

from lidguard.bootstrap import build_app_system
from lidguard.logging_config import setup_logging

logger = logging.getLogger(__name__)


class ShutdownQuery(Protocol):
    def should_block_shutdown(self) -> bool:
        ...


def _arg_value(argv: List[str], flag: str) -> Optional[str]:
    if flag in argv:
        i = argv.index(flag)
        if i + 1 < len(argv):
            return argv[i + 1]
    return None


class ShutdownRequests:
    """
    Quit requests raised by signals and answered on the main loop.

    Signal handlers only set events and never take the controller or
    activity log locks. The SIGTERM decision runs in :meth:`wait`.
    """

    def __init__(self, poll_s: float = 1.0):
        self._poll_s = poll_s
        self._wake = threading.Event()
        self._terminate = threading.Event()
        self._quit = threading.Event()

    def install(self) -> None:
        signal.signal(signal.SIGTERM, self.on_sigterm)
        signal.signal(signal.SIGINT, self.on_sigint)

    def on_sigterm(self, signum=None, frame=None) -> None:
        self._terminate.set()
        self._wake.set()

    def on_sigint(self, signum=None, frame=None) -> None:
        self._quit.set()
        self._wake.set()

    def wait(self, controller: ShutdownQuery) -> None:
        """Block until SIGINT, or until a SIGTERM the controller does not block."""
        while True:
            self._wake.wait(timeout=self._poll_s)
            self._wake.clear()
            if self._quit.is_set():
                return
            if self._terminate.is_set():
                self._terminate.clear()
                if not controller.should_block_shutdown():
                    return
                logger.warning("termination request blocked while protection is active")


def main(argv: Optional[List[str]] = None) -> None:
    """
    Start the protection runtime and block until asked to quit.

    Notes
    -----
    - Loads configuration from `config.yaml` by default.
    - Optional CLI usage:
        python -m lidguard.dev.run_app --config path/to/config.yaml [--arm]
    - SIGTERM is answered by the controller's shutdown query: it is ignored
      while protection blocks shutdown. SIGINT (Ctrl+C) always quits.
    """
    argv = sys.argv[1:] if argv is None else argv

    wiring = build_app_system(config_path=_arg_value(argv, "--config"))
    setup_logging(log_level=wiring.config.logging.level, log_dir=wiring.config.logging.dir)

    shutdown = ShutdownRequests()
    shutdown.install()

    wiring.runtime.start()
    if "--arm" in argv:
        wiring.controller.enable()

    try:
        shutdown.wait(wiring.controller)
    finally:
        wiring.runtime.stop()


if __name__ == "__main__":
    main()
