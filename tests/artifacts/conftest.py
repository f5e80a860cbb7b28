# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Shared fixtures for artifacts tests
"""

import time
import pytest
from certificate_bundle import CertificateBundle

INTERVALS = { 'ok': 0.2, 'error': 0.05, 'default': 30000, 'buffer': 0.25 }
ONSTART = [{ 'command': 'systemctl start nginx', 'onfail': { 'retry_every': 1000, 'retry_num': 3 } }]
ONREPLACE = [{ 'command': 'systemctl reload nginx', 'onfail': { 'retry_every': 1000, 'retry_num': 3 } }]

def make_bundle(expires_in: float, ttl=None, certificate='Ground control to Major Tom'):
    """ Creates a bundle that expires expires_in seconds from now """
    return CertificateBundle(certificate=certificate,
                             private_key='Take your protein pills and put your helmet on',
                             expiration=time.time() + expires_in,
                             ttl=ttl)

@pytest.fixture(name='state_machine')
def fixture_state_machine(mocker):
    """ Mocked state machine object """
    state_machine = mocker.patch('state_machine.StateMachine')
    state_machine.config.intervals = dict(INTERVALS)
    state_machine.config.onstart = ONSTART
    state_machine.config.onreplace = ONREPLACE
    state_machine.pki.write.return_value = True
    return state_machine
