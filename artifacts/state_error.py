# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Cycle handler for the Error state
"""

import sys
import typing
from certificate_bundle import CertificateBundle, now_ms
from state import FatalError, State, Transition

class StateError(State):
    """ Certificate renewal state: Error (degraded, still retrying) """
    status = 'error'

    def __init__(self, context, active: CertificateBundle, standby: typing.Optional[CertificateBundle] = None):
        super().__init__(context)
        self.active = active
        self.standby = standby

    def run(self) -> Transition:
        # pylint: disable=import-outside-toplevel
        # StateOk transitions to StateError, so import it here to avoid a cycle
        from state_ok import StateOk

        print("Status is 'error'. Attempting to recover and obtain a new certificate...")

        # If the active certificate is already expired, we have no fallback
        if self.active.expiration_ms < now_ms():
            print('FATAL: the active certificate has expired. Cannot proceed.', file=sys.stderr)
            raise FatalError('Last certificate has expired, aborting.')

        retry_delay = self._retry_delay(self.active)

        fetched = self._fetch()
        if fetched is None:
            print('Failed to obtain certificate while in error state.', file=sys.stderr)
            next_state = self._fall_back_to_standby()
            print(f'Retrying in {round(retry_delay / 1000)} seconds.')
            return Transition(next_state, retry_delay)

        promoted = False
        if self._in_buffer_window(self.active):
            print('Active certificate is about to expire. Replacing with newly obtained certificate.')
            if not self._context.pki.write(fetched):
                print('Failed to write new certificate to file. Check permissions.', file=sys.stderr)
                print(f'Retrying in {round(retry_delay / 1000)} seconds.')
                return Transition(StateError(self._context, self.active, fetched), retry_delay)
            promoted = True

        if promoted:
            self._run_hooks(self._context.config.onreplace, 'onreplace')

        fetched = self._with_ttl(fetched)
        delay = self._ok_delay(fetched)

        print('Successfully recovered from error state! [ERROR:RESOLVED]')
        print(f'Next renewal in {round(delay / 1000)} seconds.')

        if promoted:
            return Transition(StateOk(self._context, fetched), delay)
        return Transition(StateOk(self._context, self.active, fetched), delay)

    def _fall_back_to_standby(self) -> 'StateError':
        """ Installs the standby certificate if the active one is about to expire """
        if self.standby is None or not self._in_buffer_window(self.active):
            return self

        print('Swapping to the backup certificate since the active one is about to expire.')
        if not self._context.pki.write(self.standby):
            print('Could not write backup certificate to file.', file=sys.stderr)
            return self

        # A standby retained after a failed write never had its ttl computed
        active = self.standby if self.standby.ttl else self._with_ttl(self.standby)
        self._run_hooks(self._context.config.onreplace, 'onreplace')
        return StateError(self._context, active)
