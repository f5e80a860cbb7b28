# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Cycle handler for the Ok state
"""

import sys
import typing
from certificate_bundle import CertificateBundle
from state import State, Transition
from state_error import StateError

class StateOk(State):
    """ Certificate renewal state: Ok (healthy, renewing in the background) """
    status = 'ok'

    def __init__(self, context, active: CertificateBundle, standby: typing.Optional[CertificateBundle] = None):
        super().__init__(context)
        self.active = active
        self.standby = standby

    def run(self) -> Transition:
        print("Status is 'ok'. Attempting to obtain a new certificate in background...")
        retry_delay = self._retry_delay(self.active)

        fetched = self._fetch()
        if fetched is None:
            print('Failed to obtain new certificate. Likely configuration error.', file=sys.stderr)
            print(f'Retrying in {round(retry_delay / 1000)} seconds.')
            return Transition(StateError(self._context, self.active, self.standby), retry_delay)

        promoted = False
        if self._in_buffer_window(self.active):
            print('The active certificate is close to expiration. Replacing with new certificate now.')
            if not self._context.pki.write(fetched):
                print("Couldn't write new certificate to file. Check permissions.", file=sys.stderr)
                print(f'Retrying in {round(retry_delay / 1000)} seconds.')
                return Transition(StateError(self._context, self.active, fetched), retry_delay)
            promoted = True

        if promoted:
            self._run_hooks(self._context.config.onreplace, 'onreplace')

        fetched = self._with_ttl(fetched)
        delay = self._ok_delay(fetched)
        print(f'New certificate obtained. Next renewal in {round(delay / 1000)} seconds.')

        if promoted:
            return Transition(StateOk(self._context, fetched), delay)
        return Transition(StateOk(self._context, self.active, fetched), delay)
