# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging

from hfn.fabric.remote import Remote

_logger = logging.getLogger(__name__)

BROADCAST = '/orderer.AtomicBroadcast/Broadcast'


def _identity(value):
    return value


class Orderer(Remote):

    def __init__(self, url, opts=None):

        super(Orderer, self).__init__(url, opts)

        _logger.debug(f'Orderer.const - url: {url} timeout: {self._request_timeout}')

    async def broadcast(self, envelope, timeout=None):
        """Send a signed envelope and return the first encoded BroadcastResponse"""

        _logger.debug('broadcast - start')

        if not envelope:
            _logger.debug('broadcast ERROR - missing envelope')
            raise ValueError('Missing data - Nothing to broadcast')

        if timeout is None:
            timeout = self.request_timeout

        if self.use_wait_for_ready:
            await self.wait_for_ready()

        broadcast = self._get_channel().stream_stream(
            BROADCAST,
            request_serializer=_identity,
            response_deserializer=_identity)

        call = broadcast(iter([envelope]), timeout=timeout)
        try:
            async for response in call:
                return response
        finally:
            call.cancel()

        raise ConnectionError(f'Orderer {self.name} closed the broadcast stream without a response')

    def __str__(self):
        return f'Orderer: {self._url}'
