# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Daemon configuration management
"""

import json
import math
import os
import re
import typing
import yaml

DEFAULT_RETRY_EVERY = 60000
DEFAULT_RETRY_NUM = 7

YAML_EXTENSIONS = ('.yaml', '.yml')

REQUIRED_FIELDS = ['vault', 'cert', 'tls', 'onreplace', 'onstart', 'intervals']

# Inclusive ranges for the interval fractions
INTERVAL_RANGES = {
    'ok': (0.01, 0.45),
    'error': (0.01, 0.3),
    'buffer': (0.05, 0.8)
}

ADDRESS_REGEX = re.compile(r'([a-zA-Z0-9.-]+)(?::(\d{1,5}))?')

class ConfigError(Exception):
    """ The configuration is missing, unreadable or invalid """

class Intervals(typing.TypedDict):
    """ Type hints for the intervals dictionary """
    ok: float
    error: float
    default: float
    buffer: float

class OnFail(typing.TypedDict):
    """ Type hints for a hook retry policy """
    retry_every: float
    retry_num: int

class HookSpec(typing.TypedDict, total=False):
    """ Type hints for a hook command """
    command: str
    description: str
    onfail: OnFail

def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)

class Config():
    """ Validated, read-only daemon configuration """
    def __init__(self, path: typing.Optional[str]):
        if not path:
            raise ConfigError('No configuration file was provided')

        print(f'Loading configuration from {path}')
        try:
            with open(path, encoding='utf-8') as config_file:
                if path.lower().endswith(YAML_EXTENSIONS):
                    self._raw = yaml.safe_load(config_file)
                else:
                    self._raw = json.load(config_file)
        except OSError as error:
            raise ConfigError(f'Cannot read the configuration file {path}: {error}') from error
        except (json.JSONDecodeError, yaml.YAMLError) as error:
            raise ConfigError(f'Configuration file {path} is not valid: {error}') from error

        self._validate()

    @property
    def vault(self) -> dict:
        """ Getter for the Vault connection settings """
        return self._raw['vault']

    @property
    def cert_request(self) -> dict:
        """ Getter for the certificate request body """
        return self._raw['cert']

    @property
    def tls_ca(self) -> str:
        """ Getter for the CA file used to verify Vault """
        return self._raw['tls']['ca']

    @property
    def bundle_path(self) -> str:
        """ Getter for the certificate and private key bundle path """
        return self._raw['tls']['cert']

    @property
    def onstart(self) -> typing.List[HookSpec]:
        """ Getter for the commands run after the first certificate is installed """
        return self._raw['onstart']

    @property
    def onreplace(self) -> typing.List[HookSpec]:
        """ Getter for the commands run after the certificate is replaced """
        return self._raw['onreplace']

    @property
    def intervals(self) -> Intervals:
        """ Getter for the scheduling intervals """
        return self._raw['intervals']

    def _validate(self) -> None:
        if not isinstance(self._raw, dict):
            raise ConfigError('Configuration must be an object')

        for field in REQUIRED_FIELDS:
            if field not in self._raw:
                raise ConfigError(f"Missing mandatory top-level field '{field}'")

        self._validate_vault()

        if not isinstance(self._raw['cert'], dict):
            raise ConfigError("'cert' must be an object (it can be empty)")

        self._validate_tls()
        self._validate_hooks('onreplace')
        self._validate_hooks('onstart')
        self._validate_intervals()

    def _validate_vault(self) -> None:
        vault = self._raw['vault']
        if not isinstance(vault, dict):
            raise ConfigError("'vault' must be an object")

        if 'version' in vault and vault['version'] != 'v1':
            raise ConfigError("If 'vault.version' is provided, it must be 'v1'")
        vault.setdefault('version', 'v1')

        for field in ['pki_role', 'vault_role', 'pki_path', 'address']:
            if not vault.get(field) or not isinstance(vault[field], str):
                raise ConfigError(f"'vault.{field}' is mandatory and must be a non-empty string")

        if 'auth_path' in vault and (not vault['auth_path'] or not isinstance(vault['auth_path'], str)):
            raise ConfigError("'vault.auth_path' must be a non-empty string if provided")
        vault.setdefault('auth_path', 'aws')

        match = ADDRESS_REGEX.fullmatch(vault['address'])
        if not match:
            raise ConfigError(f"'vault.address' must look like 'domain' or 'domain:port', got '{vault['address']}'")
        if match.group(2) and not 1 <= int(match.group(2)) <= 65535:
            raise ConfigError(f"'vault.address' port must be in range 1-65535, got {match.group(2)}")

    def _validate_tls(self) -> None:
        tls = self._raw['tls']
        if not isinstance(tls, dict):
            raise ConfigError("'tls' must be an object")

        for field in ['ca', 'cert', 'key']:
            if not tls.get(field) or not isinstance(tls[field], str):
                raise ConfigError(f"'tls.{field}' is mandatory and must be a non-empty string (path)")

        if tls['cert'] != tls['key']:
            raise ConfigError("'tls.cert' and 'tls.key' must point to the same file (a bundle)")

        # The bundle is replaced by renaming a file into its directory
        bundle_path = os.path.abspath(tls['cert'])
        directory = os.path.dirname(bundle_path)
        if os.path.exists(bundle_path) and not os.access(bundle_path, os.W_OK):
            raise ConfigError(f"No write permission to 'tls.cert' (or 'tls.key') at: {tls['cert']}")
        if not os.access(directory, os.W_OK):
            raise ConfigError(f"No write permission to the directory of 'tls.cert' at: {directory}")

    def _validate_hooks(self, name: str) -> None:
        hooks = self._raw[name]
        if not isinstance(hooks, list):
            raise ConfigError(f"'{name}' must be an array")

        for index, hook in enumerate(hooks):
            if not isinstance(hook, dict):
                raise ConfigError(f"Each element of '{name}' must be an object. Found invalid at index {index}")
            if not hook.get('command') or not isinstance(hook['command'], str):
                raise ConfigError(f"'{name}[{index}].command' is mandatory and must be a string")
            if 'description' in hook and not isinstance(hook['description'], str):
                raise ConfigError(f"'{name}[{index}].description' must be a string if provided")

            onfail = hook.get('onfail', True)
            if onfail is True:
                onfail = {}
            elif not isinstance(onfail, dict):
                raise ConfigError(f"'{name}[{index}].onfail' must be either true or an object")

            retry_every = onfail.get('retry_every', DEFAULT_RETRY_EVERY)
            if not _is_number(retry_every) or not 1000 <= retry_every <= 1800000:
                raise ConfigError(f"'{name}[{index}].onfail.retry_every' must be a number of milliseconds "
                                  f"in range [1000, 1800000], got {retry_every}")

            retry_num = onfail.get('retry_num', DEFAULT_RETRY_NUM)
            if not _is_number(retry_num) or int(retry_num) != retry_num or not 1 <= retry_num <= 1000:
                raise ConfigError(f"'{name}[{index}].onfail.retry_num' must be a number between 1 and 1000, "
                                  f"got {retry_num}")

            hook['onfail'] = { 'retry_every': retry_every, 'retry_num': int(retry_num) }

    def _validate_intervals(self) -> None:
        intervals = self._raw['intervals']
        if not isinstance(intervals, dict):
            raise ConfigError("'intervals' must be an object")

        for field, (low, high) in INTERVAL_RANGES.items():
            if field not in intervals:
                raise ConfigError(f"Missing 'intervals.{field}'")
            if not _is_number(intervals[field]):
                raise ConfigError(f"'intervals.{field}' must be a number")
            if not low <= intervals[field] <= high:
                raise ConfigError(f"'intervals.{field}' must be in range [{low}, {high}]. Got {intervals[field]}")

        if 'default' not in intervals:
            raise ConfigError("Missing 'intervals.default'")
        if not _is_number(intervals['default']) or intervals['default'] < 0:
            raise ConfigError("'intervals.default' must be a number >= 0")
