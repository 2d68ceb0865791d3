# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging

from hfn.fabric.errors import CommitError

_logger = logging.getLogger(__name__)

SUCCESS = 'SUCCESS'


class Commit(object):
    """Sends an endorsed transaction to the ordering service"""

    def __init__(self, transaction_id, transport, timeout=None):
        self._transaction_id = transaction_id
        self._transport = transport
        self._timeout = timeout

    async def send(self, signed_envelope, targets=None, handler=None):
        """Send to the orderers in turn until one accepts the transaction

        Returns:
            dict: the accepting orderer response, or else the last response
        Raises:
            CommitError: no orderer could be reached
        """
        method = 'send'

        if handler is not None:
            _logger.debug(f'{method} - committing {self._transaction_id} with the discovery handler')
            return await handler.commit(signed_envelope, {'timeout': self._timeout})

        if not targets:
            raise ValueError('Missing orderer targets parameter')

        last_response = None
        last_error = None
        for orderer in targets:
            try:
                response = await self._transport.send_commit(orderer, signed_envelope, self._timeout)
            except Exception as e:
                _logger.error(f'{method} - orderer {orderer.name} failed: {e}')
                last_error = e
                continue

            _logger.debug(f'{method} - orderer {orderer.name} response: {response}')
            if response.get('status') == SUCCESS:
                return response
            last_response = response

        if last_response is not None:
            return last_response

        raise CommitError(f'Failed to send transaction {self._transaction_id} to the orderer: {last_error}',
                          transaction_id=self._transaction_id)
