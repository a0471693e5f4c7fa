# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
This module contains the periodical expiry of verification sessions nobody polls anymore
"""

import contextlib
import logging
import threading
from typing import Generator

import common.config
import common.db.postgres as db
from common.db.document_store import SqlDocumentStore
from common.registry_client import build_issuer_registry

import verifier.config as conf
from verifier.verification_ledger import build_verification_ledger

_logger = logging.getLogger(__name__)


@contextlib.contextmanager
def expiry_sweep_lifespan() -> contextlib.AbstractContextManager:
    """
    Lifespan managing the expiry sweep timer.
    Runs once shortly after startup to achieve a clean state.
    """
    timeout_manager = ExpirySweepTimer()
    timeout_manager.set_immediate_timer()
    yield
    timeout_manager.cancel_timer()


class ExpirySweepTimer:
    """Timer, once started will run every `EXPIRY_SWEEP_INTERVAL` seconds, rescheduling itself afterwards"""

    _timer: threading.Timer = None

    def __init__(self, session_function: Generator[db.Session, None, None] = db.env_session) -> None:
        """* session_function: a generator to call using contextlib to get a session."""
        # FastAPI does something similar internally, to use the same function
        # we have to create the context manager from the generator
        self._session_function = contextlib.contextmanager(session_function)
        self._config = conf.VerifierConfig()

    def _expire_stale_sessions(self) -> None:
        """
        Expires every pending session past its expiry and logs the total.
        Starts a new timer
        """
        try:
            with self._session_function(common.config.DBConfig()) as session:
                ledger = build_verification_ledger(SqlDocumentStore(session), self._config, build_issuer_registry(self._config))
                expired = ledger.expire_stale()
                _logger.info(f"Expired total of {expired} verification sessions")
        except Exception:
            _logger.exception("Expiry sweep failed")
        finally:
            self.set_interval_timer()

    def set_timer(self, time: float):
        """Starts the timer. Cancels other instances of the timer"""
        self.cancel_timer()
        _logger.debug(f"Next expiry sweep {time=}")
        self._timer = threading.Timer(time, self._expire_stale_sessions)
        self._timer.daemon = True
        self._timer.start()

    def set_interval_timer(self):
        """Sets the timer for the next regular run."""
        self.set_timer(self._config.expiry_sweep_interval)

    def set_immediate_timer(self):
        """Runs the action of the timer immediatly. Reschedules it after normally"""
        self.set_timer(1)

    def cancel_timer(self):
        """Stops the timer thread."""
        if self._timer:
            self._timer.cancel()
