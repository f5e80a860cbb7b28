# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Certificate bundle value type shared by the source, the store and the states
"""

import time
import typing
from dataclasses import dataclass, replace

def now_ms() -> float:
    """ Current time in milliseconds since the epoch """
    return time.time() * 1000

@dataclass(frozen=True)
class CertificateBundle():
    """ A certificate and its private key, installed as one unit """
    certificate: str
    private_key: str
    expiration: float
    ttl: typing.Optional[float] = None

    @property
    def expiration_ms(self) -> float:
        """ Expiration in milliseconds since the epoch """
        return self.expiration * 1000

    def remaining_ms(self) -> float:
        """ Milliseconds until this bundle expires """
        return self.expiration_ms - now_ms()

    def with_ttl(self, ttl: float) -> 'CertificateBundle':
        """ Copy of the bundle annotated with its time-to-live """
        return replace(self, ttl=ttl)

    def __repr__(self) -> str:
        # Never print the private key
        return f'CertificateBundle(expiration={self.expiration}, ttl={self.ttl})'
