# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Runs the certificate renewal daemon.

Usage: python3 main.py <config-file>
"""

import signal
import sys
import time
from config import Config, ConfigError
from state_machine import StateMachine

# Seconds to let an in-flight bundle write finish on shutdown
SHUTDOWN_GRACE = 1

try:
    config = Config(sys.argv[1] if len(sys.argv) > 1 else None)
except ConfigError as config_error:
    print(f'FATAL: invalid configuration: {config_error}', file=sys.stderr)
    sys.exit(1)

state_machine = StateMachine(config)

def on_signal(signum, _frame):
    """ Stops renewing on SIGINT or SIGTERM """
    print(f'{signal.Signals(signum).name} was received, shutting down...')
    state_machine.stop()

signal.signal(signal.SIGINT, on_signal)
signal.signal(signal.SIGTERM, on_signal)

state_machine.start()

# The process will exit if the state machine stops running, either
# because of a shutdown signal or because of a fatal error.
while state_machine.running():
    time.sleep(1)

if not state_machine.wait_for_write(SHUTDOWN_GRACE):
    print('Timed out waiting for the certificate write to finish.', file=sys.stderr)

if state_machine.error is not None:
    print('FATAL: certificate renewal stopped. Aborting.', file=sys.stderr)
    sys.exit(1)
