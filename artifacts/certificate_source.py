# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Abstract base class for the certificate authority client
"""

from abc import ABC, abstractmethod
from certificate_bundle import CertificateBundle

class CertificateSourceError(Exception):
    """ A certificate could not be obtained """

class CertificateSource(ABC):
    """ Requests certificates from a certificate authority """

    @abstractmethod
    def fetch(self) -> CertificateBundle:
        """ Requests a new certificate. Raises CertificateSourceError on failure. """
        raise NotImplementedError
