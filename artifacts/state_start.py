# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Cycle handler for the Start state
"""

import sys
from state import State, Transition
from state_ok import StateOk

class StateStart(State):
    """ Certificate renewal state: Start (no certificate installed yet) """
    status = 'start'

    def run(self) -> Transition:
        print("Status is 'start'. Attempting to obtain the first certificate...")
        retry_delay = self._context.config.intervals['default']

        bundle = self._fetch()
        if bundle is None:
            print('The initial certificate was not obtained. Likely configuration error.', file=sys.stderr)
            print(f'Retrying in {round(retry_delay / 1000)} seconds.')
            return Transition(self, retry_delay)

        if not self._context.pki.write(bundle):
            print("Couldn't write the initial certificate to file. Check permissions.", file=sys.stderr)
            print(f'Will retry in {round(retry_delay / 1000)} seconds.')
            return Transition(self, retry_delay)

        self._run_hooks(self._context.config.onstart, 'onstart')

        active = self._with_ttl(bundle)
        delay = self._ok_delay(active)
        print(f'Certificate obtained. Next renewal in {round(delay / 1000)} seconds.')
        return Transition(StateOk(self._context, active), delay)
