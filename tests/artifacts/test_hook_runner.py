# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for artifacts.hook_runner.py
"""

import threading
from unittest.mock import call
import pytest
from hook_runner import HookRunner, HookError

def hook(command, retry_num=3, retry_every=1000, description=None):
    """ Creates a hook spec """
    spec = { 'command': command, 'onfail': { 'retry_every': retry_every, 'retry_num': retry_num } }
    if description is not None:
        spec['description'] = description
    return spec

@pytest.fixture(name='abort_event')
def fixture_abort_event(mocker):
    """ Replace the abort event so that retry waits return immediately """
    event_class = mocker.patch('hook_runner.Event')
    event = event_class.return_value
    event.is_set.return_value = False
    event.wait.return_value = False
    return event

def test_empty_hooks_are_a_no_op(mocker):
    """ No commands means nothing runs and nothing fails """
    command_runner = mocker.Mock()
    runner = HookRunner(command_runner)
    runner.run([], 'onstart')
    runner.run(None, 'onreplace')
    command_runner.assert_not_called()

def test_all_commands_succeed(mocker):
    """ Every command runs once when they all succeed """
    command_runner = mocker.Mock(return_value=True)
    HookRunner(command_runner).run([hook('one'), hook('two', description='Reload the proxy')], 'onstart')
    command_runner.assert_has_calls([call('one'), call('two')], any_order=True)
    assert command_runner.call_count == 2

def test_retries_until_success(mocker, abort_event):
    """ A command that fails twice then succeeds is not a failure """
    command_runner = mocker.Mock(side_effect=[False, False, True])
    HookRunner(command_runner).run([hook('flaky', retry_num=3, retry_every=2000)], 'onreplace')
    assert command_runner.call_count == 3
    abort_event.wait.assert_has_calls([call(2.0), call(2.0)])

def test_exhausted_retries_fail(mocker, abort_event):
    """ retry_num attempts with retry_every waits in between, then a permanent failure """
    command_runner = mocker.Mock(return_value=False)

    with pytest.raises(HookError):
        HookRunner(command_runner).run([hook('broken', retry_num=3, retry_every=1000)], 'onstart')

    assert command_runner.call_count == 3
    assert abort_event.wait.call_args_list == [call(1.0), call(1.0)]
    abort_event.set.assert_called_once()

def test_single_attempt(mocker, abort_event):
    """ retry_num of one means no retry at all """
    command_runner = mocker.Mock(return_value=False)

    with pytest.raises(HookError):
        HookRunner(command_runner).run([hook('broken', retry_num=1)], 'onstart')

    assert command_runner.call_count == 1
    abort_event.wait.assert_not_called()

def test_one_failure_fails_the_run(mocker, abort_event):
    """ The run fails if any one command fails, even when the others succeed """
    command_runner = mocker.Mock(side_effect=lambda command: command != 'broken')

    with pytest.raises(HookError, match='broken'):
        HookRunner(command_runner).run([hook('fine'), hook('broken', retry_num=2), hook('also fine')], 'onreplace')

    assert call('fine') in command_runner.call_args_list
    assert call('also fine') in command_runner.call_args_list

def test_commands_run_concurrently():
    """ Commands run at the same time rather than one after another """
    barrier = threading.Barrier(3, timeout=5)

    def command_runner(command):
        # pylint: disable=unused-argument
        barrier.wait()
        return True

    HookRunner(command_runner).run([hook('a'), hook('b'), hook('c')], 'onstart')
    assert not barrier.broken

def test_failure_abandons_sibling_retries():
    """ Once a command is exhausted, the others stop retrying """
    attempts = {'slow': 0}
    lock = threading.Lock()

    def command_runner(command):
        if command == 'slow':
            with lock:
                attempts['slow'] += 1
        return False

    runner = HookRunner(command_runner)
    with pytest.raises(HookError):
        runner.run([hook('fast', retry_num=1), hook('slow', retry_num=1000, retry_every=1800000)], 'onstart')

    # The slow command got at most its first attempt before its wait was cut short
    assert attempts['slow'] <= 1

def test_no_attempt_after_abort(mocker, abort_event):
    """ A command whose retry wait ends as another command fails does not try again """
    command_runner = mocker.Mock(return_value=False)
    abort_event.is_set.side_effect = [False, True]

    with pytest.raises(HookError, match='abandoned'):
        HookRunner(command_runner).run([hook('flaky')], 'onreplace')

    command_runner.assert_called_once_with('flaky')

def test_exhausted_command_is_reported(mocker):
    """ The run reports the command that ran out of attempts, not the ones it cut short """
    runner = HookRunner(mocker.Mock(return_value=False))
    with pytest.raises(HookError, match=r'\[broken\] failed after 1 attempts'):
        runner.run([hook('waiting', retry_num=1000, retry_every=1800000), hook('broken', retry_num=1)],
                   'onreplace')

def test_default_retry_policy(mocker, abort_event):
    """ A hook without onfail gets seven attempts every sixty seconds """
    command_runner = mocker.Mock(return_value=False)

    with pytest.raises(HookError):
        HookRunner(command_runner).run([{ 'command': 'broken' }], 'onstart')

    assert command_runner.call_count == 7
    abort_event.wait.assert_called_with(60.0)
