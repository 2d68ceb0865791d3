# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import asyncio
import logging

from hfn.fabric.transaction.endorsement import EndorsementResponse
from hfn.util.utils import get_config_setting

_logger = logging.getLogger(__name__)


class Query(object):
    """A signed query proposal that can be sent to any set of peers"""

    def __init__(self, signed_proposal, transport, timeout=None):
        self._signed_proposal = signed_proposal
        self._transport = transport
        if timeout is None:
            timeout = get_config_setting('query-timeout', 3)
        self._timeout = timeout

    async def evaluate(self, peers):
        """Send the query to the peers

        Returns:
            dict: peer name to :class:`EndorsementResponse`, transport
            failures are kept in the response ``error``
        """
        method = 'evaluate'
        _logger.debug(f'{method} - start')

        responses = await asyncio.gather(*[self._send(peer) for peer in peers])

        results = {}
        for peer, response in zip(peers, responses):
            results[peer.name] = response
            _logger.debug(f'{method} - peer: {peer.name} status: {response.status}')

        return results

    async def _send(self, peer):
        try:
            return await self._transport.send_proposal(peer, self._signed_proposal, self._timeout)
        except Exception as e:
            _logger.error(f'_send - problem with query to peer {peer.name} error: {e}')
            return EndorsementResponse(peer, message=str(e), error=e)
