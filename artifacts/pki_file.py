# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Certificate and private key bundle storage on disk
"""

import os
import tempfile
import threading
import traceback
from certificate_bundle import CertificateBundle

def _current_umask() -> int:
    """ The process umask, which can only be read by setting it """
    umask = os.umask(0o022)
    os.umask(umask)
    return umask

class PKIFile():
    """ Writes the certificate and private key bundle to a single file """

    TEMP_PREFIX = '.bundle-'

    def __init__(self, bundle_path: str):
        self._bundle_path = bundle_path
        self._lock = threading.Lock()

    @property
    def bundle_path(self) -> str:
        """ Getter for the bundle path """
        return self._bundle_path

    def write(self, bundle: CertificateBundle) -> bool:
        """ Atomically replaces the bundle file contents """
        print(f'Writing certificate to file: {self._bundle_path}')

        with self._lock:
            directory = os.path.dirname(os.path.abspath(self._bundle_path))
            temp_path = None
            try:
                # Write next to the bundle so the rename stays on one filesystem
                file_descriptor, temp_path = tempfile.mkstemp(prefix=PKIFile.TEMP_PREFIX, dir=directory)
                with os.fdopen(file_descriptor, 'w', encoding='utf-8') as bundle_file:
                    bundle_file.write(f'{bundle.certificate}\n{bundle.private_key}')
                    bundle_file.flush()
                    os.fsync(bundle_file.fileno())

                if os.path.exists(self._bundle_path):
                    os.chmod(temp_path, os.stat(self._bundle_path).st_mode & 0o777)
                else:
                    os.chmod(temp_path, 0o666 & ~_current_umask())

                os.replace(temp_path, self._bundle_path)
                temp_path = None
                success = True

            except OSError as error:
                print(f'Error writing the certificate bundle: {repr(error)}.')
                traceback.print_exc()
                success = False

            finally:
                if temp_path is not None and os.path.exists(temp_path):
                    os.remove(temp_path)

        if success:
            print('File write successful!')

        return success

    def wait_for_write(self, timeout: float) -> bool:
        """ Waits for an in-flight write to finish. Returns False on timeout. """
        acquired = self._lock.acquire(timeout=timeout)
        if acquired:
            self._lock.release()
        return acquired
