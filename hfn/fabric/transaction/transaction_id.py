# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging
import os

from cryptography.hazmat.primitives import hashes

_logger = logging.getLogger(__name__)

NONCE_SIZE = 24


class TransactionID(object):

    def __init__(self, identity):
        _logger.debug('constructor - start')

        if not identity:
            raise ValueError('Missing identity context parameter')

        self._nonce = os.urandom(NONCE_SIZE)
        creator_bytes = identity.serialize()
        digest = hashes.Hash(hashes.SHA256())
        digest.update(self._nonce + creator_bytes)
        self._transaction_id = digest.finalize().hex()
        self._creator = creator_bytes
        _logger.debug(f'const - transaction_id {self._transaction_id}')

    @property
    def transaction_id(self):
        return self._transaction_id

    @property
    def nonce(self):
        return self._nonce

    @property
    def creator(self):
        return self._creator

    def __str__(self):
        return self._transaction_id
