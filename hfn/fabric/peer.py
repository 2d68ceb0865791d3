# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging

from hfn.fabric.event.events import FILTERED_BLOCK, FULL_BLOCK, PRIVATE_BLOCK
from hfn.fabric.remote import Remote

_logger = logging.getLogger(__name__)

PROCESS_PROPOSAL = '/protos.Endorser/ProcessProposal'
DELIVER_METHODS = {
    FULL_BLOCK: '/protos.Deliver/Deliver',
    FILTERED_BLOCK: '/protos.Deliver/DeliverFiltered',
    PRIVATE_BLOCK: '/protos.Deliver/DeliverWithPrivateData',
}


def _identity(value):
    return value


class Peer(Remote):
    """An endorsing peer. Messages cross the wire as already encoded bytes."""

    def __init__(self, url, opts=None):

        super(Peer, self).__init__(url, opts)

        self._mspid = (opts or {}).get('mspid')

        _logger.debug(f'Peer.const - url: {url} timeout: {self._request_timeout} name: {self.name}')

    @property
    def mspid(self):
        return self._mspid

    async def send_proposal(self, proposal, timeout=None):
        _logger.debug(f'send_proposal - {self.name}')

        if not proposal:
            raise ValueError('Missing proposal to send to peer')

        if timeout is None:
            timeout = self.request_timeout

        if self.use_wait_for_ready:
            await self.wait_for_ready()

        process_proposal = self._get_channel().unary_unary(
            PROCESS_PROPOSAL,
            request_serializer=_identity,
            response_deserializer=_identity)

        return await process_proposal(proposal, timeout=timeout)

    def deliver(self, envelope, block_type=FILTERED_BLOCK):
        """Open a deliver stream for the given block type

        Returns:
            the grpc call, an async iterator of encoded DeliverResponse messages
        """
        _logger.debug(f'deliver - {self.name} block type {block_type}')

        if block_type not in DELIVER_METHODS:
            raise ValueError(f'Unsupported block type: {block_type}')

        deliver = self._get_channel().stream_stream(
            DELIVER_METHODS[block_type],
            request_serializer=_identity,
            response_deserializer=_identity)

        return deliver(iter([envelope]))

    def __str__(self):
        return f'Peer: {self._url}'
