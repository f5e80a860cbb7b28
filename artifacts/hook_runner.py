# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Runs the operator's hook commands, each with its own retry policy
"""

import sys
import typing
from concurrent.futures import ThreadPoolExecutor, FIRST_EXCEPTION, wait
from threading import Event
from command_executor import run_command
from config import HookSpec, DEFAULT_RETRY_EVERY, DEFAULT_RETRY_NUM

class HookError(Exception):
    """ A hook command failed all of its attempts """

class HookAbandoned(HookError):
    """ A hook command stopped retrying because another command failed """

class HookRunner():
    """
    Runs a list of hook commands concurrently. The run succeeds when every
    command succeeds, and fails as soon as one command exhausts its attempts.
    Once a command is exhausted, the other commands make no further attempts,
    though an attempt that is already executing is left to finish.
    """
    def __init__(self, command_runner: typing.Callable[[str], bool] = run_command):
        self._run_command = command_runner

    def run(self, hooks: typing.Optional[typing.List[HookSpec]], name: str) -> None:
        """ Runs the hook commands. Raises HookError if any command fails permanently. """
        if not hooks:
            print(f"No '{name}' commands to run.")
            return

        print(f"Running '{name}' commands (with retry logic)...")
        abort = Event()

        # Leaving the with block joins every worker, so no attempt outlives the run
        with ThreadPoolExecutor(max_workers=len(hooks), thread_name_prefix=name) as executor:
            futures = [executor.submit(self._run_hook, hook, f'{name}[{index}]', abort)
                       for index, hook in enumerate(hooks)]
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            if any(future.exception() is not None for future in done):
                abort.set()

        failures = [future.exception() for future in futures if future.exception() is not None]
        if failures:
            # Report the command that ran out of attempts rather than one it cut short
            exhausted = [error for error in failures if not isinstance(error, HookAbandoned)]
            raise (exhausted or failures)[0]

        print(f"All '{name}' commands completed successfully.")

    def _run_hook(self, hook: HookSpec, label: str, abort: Event) -> None:
        """ Retry loop for a single hook command """
        command = hook['command']
        onfail = hook.get('onfail') or {}
        max_attempts = onfail.get('retry_num', DEFAULT_RETRY_NUM)
        interval = onfail.get('retry_every', DEFAULT_RETRY_EVERY)
        attempts = 0

        while True:
            if abort.is_set():
                raise HookAbandoned(f'Command [{command}] abandoned after {attempts} attempts '
                                    'because another command failed.')

            attempts += 1
            if hook.get('description'):
                print(f'({label}) {hook["description"]}')
            print(f'Attempting command [{command}] (attempt #{attempts})...')

            if self._run_command(command):
                print(f'Command succeeded [{command}]')
                return

            print(f'Command failed [{command}] ({label}, attempt {attempts} of {max_attempts})', file=sys.stderr)
            if attempts >= max_attempts:
                raise HookError(f'Command [{command}] failed after {attempts} attempts.')

            print(f'Retrying command [{command}] in {round(interval / 1000)} seconds.')
            abort.wait(interval / 1000)
