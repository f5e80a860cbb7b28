# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Certificate source backed by a HashiCorp Vault PKI secrets engine. The daemon
logs in to Vault with the AWS IAM auth method, using the AWS credentials of
the host, and then asks the PKI role to issue a certificate.
"""

import base64
import json
import typing
import boto3
import requests
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.exceptions import BotoCoreError
from cryptography.x509 import load_pem_x509_certificate
from certificate_bundle import CertificateBundle
from certificate_source import CertificateSource, CertificateSourceError

STS_URL = 'https://sts.amazonaws.com/'
STS_BODY = 'Action=GetCallerIdentity&Version=2011-06-15'
STS_REGION = 'us-east-1'
REQUEST_TIMEOUT = 30

def _b64(value: str) -> str:
    return base64.b64encode(value.encode('utf-8')).decode('utf-8')

class VaultCertificateSource(CertificateSource):
    """ Issues certificates from Vault PKI """
    def __init__(self, vault: dict, cert_request: dict, ca_path: typing.Optional[str]):
        self._base_url = f'https://{vault["address"]}/{vault.get("version", "v1")}'
        self._vault_role = vault['vault_role']
        self._auth_path = vault.get('auth_path', 'aws').strip('/')
        self._issue_path = f'{vault["pki_path"].strip("/")}/issue/{vault["pki_role"]}'
        self._cert_request = cert_request
        self._session = requests.Session()
        self._session.verify = ca_path if ca_path else True

    def fetch(self) -> CertificateBundle:
        """ Logs in to Vault and issues a new certificate """
        print('Fetching certificate from vault...')

        try:
            token = self._login()
            response = self._session.post(f'{self._base_url}/{self._issue_path}',
                                          json=self._cert_request,
                                          headers={ 'X-Vault-Token': token },
                                          timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            bundle = self._to_bundle(response.json()['data'])
        except requests.exceptions.RequestException as error:
            raise CertificateSourceError(f'Vault request failed: {error}') from error
        except BotoCoreError as error:
            raise CertificateSourceError(f'Cannot sign the Vault login request: {error}') from error
        except (KeyError, TypeError, ValueError) as error:
            raise CertificateSourceError(f'Unexpected response from Vault: {repr(error)}') from error

        print('Certificate fetch successful!')
        return bundle

    def _login(self) -> str:
        """ Logs in with a signed STS GetCallerIdentity request and returns the client token """
        credentials = boto3.Session().get_credentials()
        if credentials is None:
            raise CertificateSourceError('No AWS credentials available for the Vault login')

        request = AWSRequest(method='POST', url=STS_URL, data=STS_BODY,
                             headers={ 'Content-Type': 'application/x-www-form-urlencoded; charset=utf-8' })
        SigV4Auth(credentials.get_frozen_credentials(), 'sts', STS_REGION).add_auth(request)

        payload = {
            'role': self._vault_role,
            'iam_http_request_method': 'POST',
            'iam_request_url': _b64(STS_URL),
            'iam_request_body': _b64(STS_BODY),
            'iam_request_headers': _b64(json.dumps({ key: [value] for key, value in request.headers.items() }))
        }

        response = self._session.post(f'{self._base_url}/auth/{self._auth_path}/login',
                                      json=payload, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()['auth']['client_token']

    @staticmethod
    def _to_bundle(data: dict) -> CertificateBundle:
        """ Maps the PKI issue response onto a bundle """
        certificate = data['certificate']
        private_key = data['private_key']
        expiration = data.get('expiration')

        if expiration is None:
            # Fall back to the certificate's own notAfter
            parsed = load_pem_x509_certificate(certificate.encode('utf-8'))
            expiration = parsed.not_valid_after_utc.timestamp()

        return CertificateBundle(certificate=certificate, private_key=private_key, expiration=float(expiration))
