# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
State machine for the certificate renewal process - Context role in the pattern
"""

import sys
import traceback
import typing
from threading import Lock, Timer
from certificate_bundle import CertificateBundle
from certificate_source import CertificateSource
from config import Config
from hook_runner import HookRunner
from pki_file import PKIFile
from state import FatalError, State
from state_start import StateStart
from vault_source import VaultCertificateSource

STATUSES = ('start', 'ok', 'error')

class StateMachine():
    """ State machine for managing the certificate renewal process """
    def __init__(self, config: Config, source: typing.Optional[CertificateSource] = None,
                 pki: typing.Optional[PKIFile] = None, hook_runner: typing.Optional[HookRunner] = None):
        self._config = config
        self._source = source if source is not None else\
            VaultCertificateSource(config.vault, config.cert_request, config.tls_ca)
        self._pki = pki if pki is not None else PKIFile(config.bundle_path)
        self._hook_runner = hook_runner if hook_runner is not None else HookRunner()
        self._running = False
        self._state: typing.Optional[State] = None
        self._timer: typing.Optional[Timer] = None
        self._error: typing.Optional[Exception] = None
        self._cycle_lock = Lock()

    @property
    def config(self) -> Config:
        """ Getter for the configuration """
        return self._config

    @property
    def source(self) -> CertificateSource:
        """ Getter for the certificate source """
        return self._source

    @property
    def pki(self) -> PKIFile:
        """ Getter for the bundle store """
        return self._pki

    @property
    def hook_runner(self) -> HookRunner:
        """ Getter for the hook runner """
        return self._hook_runner

    @property
    def error(self) -> typing.Optional[Exception]:
        """ The fatal error that stopped the state machine, if any """
        return self._error

    @property
    def status(self) -> typing.Optional[str]:
        """ Status of the current state """
        return getattr(self._state, 'status', None)

    @property
    def active_cert(self) -> typing.Optional[CertificateBundle]:
        """ The bundle installed on disk """
        return getattr(self._state, 'active', None)

    @property
    def second_cert(self) -> typing.Optional[CertificateBundle]:
        """ The standby bundle, fetched but not installed """
        return getattr(self._state, 'standby', None)

    def start(self) -> None:
        """ Starts the state machine """
        print('Starting the state machine')
        self._running = True
        self.change_state(StateStart(self), 0)

    def stop(self) -> None:
        """ Stops the state machine and cancels the pending cycle """
        print('Stopping the state machine')
        self._running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def running(self) -> bool:
        """ Indicates whether state machine is running """
        return self._running

    def wait_for_write(self, timeout: float) -> bool:
        """ Waits for an in-flight bundle write to finish """
        return self._pki.wait_for_write(timeout)

    def change_state(self, new_state: State, delay: float) -> None:
        """ Changes the state and schedules its next cycle after delay milliseconds """
        print(f'Changing state to {new_state.status}')

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        self._state = new_state

        if self._running:
            print(f'Scheduling next check in {round(delay / 1000)} seconds.')
            self._timer = Timer(delay / 1000, self.on_timeout)
            self._timer.daemon = True
            self._timer.start()

    def on_timeout(self) -> None:
        """ Handles the scheduled cycle """
        if self._running:
            self.run_cycle()

    def run_cycle(self) -> None:
        """ Runs the current state's cycle and applies the transition it returns """
        with self._cycle_lock:
            print(f'Entering cycle with status: "{self.status}"')
            try:
                if self.status not in STATUSES:
                    raise FatalError(f'Unknown status: {self.status}')
                transition = self._state.run()
            except FatalError as error:
                self._fail(error)
                return
            except Exception as error: # pylint: disable=broad-exception-caught
                traceback.print_exc()
                self._fail(error)
                return

            self.change_state(transition.state, transition.delay)

    def _fail(self, error: Exception) -> None:
        """ Records a fatal error and stops scheduling """
        print(f'FATAL: {repr(error)}. No further renewals will be attempted.', file=sys.stderr)
        self._error = error
        self.stop()
