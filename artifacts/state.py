# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Abstract base class for the states in the state machine
"""

import sys
import typing
from abc import ABC, abstractmethod
from certificate_bundle import CertificateBundle, now_ms
from certificate_source import CertificateSourceError
from hook_runner import HookError
if typing.TYPE_CHECKING:
    from state_machine import StateMachine # pragma: no cover

class FatalError(Exception):
    """ An error that must stop the daemon """

class Transition(typing.NamedTuple):
    """ The next state and the delay in milliseconds before it runs """
    state: 'State'
    delay: float

class State(ABC):
    """ Abstract base class for certificate renewal states """
    status = ''

    def __init__(self, context: 'StateMachine'):
        self._context = context

    @abstractmethod
    def run(self) -> Transition:
        """ Runs one renewal cycle and returns the next state """
        raise NotImplementedError

    def _fetch(self) -> typing.Optional[CertificateBundle]:
        """ Requests a certificate, returning None if the request fails """
        try:
            return self._context.source.fetch()
        except CertificateSourceError as error:
            print(f'({self.status}) Certificate request failed: {error}', file=sys.stderr)
            return None

    def _run_hooks(self, hooks, name: str) -> None:
        """ Runs hook commands. Exhausting the retries of any command is fatal. """
        try:
            self._context.hook_runner.run(hooks, name)
        except HookError as error:
            print(f"FATAL: error in '{name}' commands: {error}", file=sys.stderr)
            raise FatalError(str(error)) from error

    def _with_ttl(self, bundle: CertificateBundle) -> CertificateBundle:
        """ Annotates a bundle with its time-to-live, which must be positive """
        ttl = bundle.expiration_ms - now_ms() if bundle.expiration else None
        if not ttl or ttl <= 0:
            print('FATAL: unknown or invalid certificate expiration time.', file=sys.stderr)
            raise FatalError(f"Can't proceed, unknown/invalid expiration time {bundle.expiration}")
        return bundle.with_ttl(ttl)

    def _in_buffer_window(self, active: CertificateBundle) -> bool:
        """ Whether the active bundle is too close to expiry to wait for the next cycle """
        return active.remaining_ms() < active.ttl * self._context.config.intervals['buffer']

    def _retry_delay(self, active: CertificateBundle) -> float:
        return active.ttl * self._context.config.intervals['error']

    def _ok_delay(self, bundle: CertificateBundle) -> float:
        return bundle.ttl * self._context.config.intervals['ok']
