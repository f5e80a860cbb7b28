# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Runs a single external command through the shell
"""

import subprocess
import sys

def run_command(command: str) -> bool:
    """ Runs a command to completion with inherited standard streams. Returns True on exit code 0. """
    try:
        result = subprocess.run(command, shell=True, check=False)
    except OSError as error:
        print(f'Failed to start command [{command}]: {error}', file=sys.stderr)
        return False

    if result.returncode != 0:
        print(f'Command [{command}] exited with code {result.returncode}', file=sys.stderr)
        return False

    return True
