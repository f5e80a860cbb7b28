# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for artifacts.main.py
"""

import runpy
import signal
import pytest
from config import ConfigError

CONFIG_PATH = 'nostromo/config.json'

@pytest.fixture(name='config_class')
def fixture_config_class(mocker):
    """ Mocked configuration loading """
    mocker.patch('sys.argv', ['main.py', CONFIG_PATH])
    return mocker.patch('config.Config')

@pytest.fixture(name='state_machine')
def fixture_state_machine(mocker):
    """ Mocked state machine that runs for one loop """
    state_machine_class = mocker.patch('state_machine.StateMachine')
    state_machine = state_machine_class.return_value
    state_machine.running.side_effect = [True, False]
    state_machine.wait_for_write.return_value = True
    state_machine.error = None
    return state_machine

@pytest.fixture(name='signal_handler')
def fixture_signal_handler(mocker):
    """ Mocked signal registration """
    return mocker.patch('signal.signal')

def test_main(mocker, config_class, state_machine, signal_handler):
    """ Main can sleep and exit when state machine stops running """
    time_sleep = mocker.patch('time.sleep')

    runpy.run_module('main')

    config_class.assert_called_once_with(CONFIG_PATH)
    state_machine.start.assert_called_once()
    assert state_machine.running.call_count == 2
    time_sleep.assert_called_once()
    state_machine.wait_for_write.assert_called_once()
    registered = [args[0][0] for args in signal_handler.call_args_list]
    assert registered == [signal.SIGINT, signal.SIGTERM]

def test_signal_stops_the_state_machine(mocker, config_class, state_machine, signal_handler):
    """ SIGTERM stops renewing """
    # pylint: disable=unused-argument
    mocker.patch('time.sleep')
    runpy.run_module('main')

    handler = signal_handler.call_args_list[1][0][1]
    handler(signal.SIGTERM, None)
    state_machine.stop.assert_called_once()

def test_fatal_error_exits_non_zero(mocker, config_class, state_machine, signal_handler):
    """ A fatal renewal error gives a non-zero exit status """
    # pylint: disable=unused-argument
    mocker.patch('time.sleep')
    state_machine.error = Exception('mocked error')

    with pytest.raises(SystemExit) as exit_info:
        runpy.run_module('main')

    assert exit_info.value.code == 1

def test_write_timeout_still_exits(mocker, config_class, state_machine, signal_handler):
    """ Shutdown does not hang on a stuck write """
    # pylint: disable=unused-argument
    mocker.patch('time.sleep')
    state_machine.wait_for_write.return_value = False
    runpy.run_module('main')
    state_machine.wait_for_write.assert_called_once()

def test_invalid_configuration_exits(mocker, config_class, signal_handler):
    """ An invalid configuration gives a non-zero exit status before anything starts """
    state_machine_class = mocker.patch('state_machine.StateMachine')
    config_class.side_effect = ConfigError('mocked error')

    with pytest.raises(SystemExit) as exit_info:
        runpy.run_module('main')

    assert exit_info.value.code == 1
    state_machine_class.assert_not_called()
    signal_handler.assert_not_called()

def test_missing_argument(mocker, config_class, state_machine, signal_handler):
    """ No argument is passed on as a missing path """
    # pylint: disable=unused-argument
    mocker.patch('sys.argv', ['main.py'])
    mocker.patch('time.sleep')
    runpy.run_module('main')
    config_class.assert_called_once_with(None)
