# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import abc
import asyncio
import logging

import grpc

from hfn.fabric.errors import EventServiceError
from hfn.fabric.event.events import EventInfo
from hfn.fabric.transaction.endorsement import EndorsementResponse

_logger = logging.getLogger(__name__)


class Transport(abc.ABC):
    """Moves signed messages between the gateway and the network"""

    @abc.abstractmethod
    async def send_proposal(self, peer, signed_proposal, timeout=None):
        """Send a signed proposal

        Returns:
            EndorsementResponse: the peer response
        """

    @abc.abstractmethod
    async def send_commit(self, orderer, signed_envelope, timeout=None):
        """Broadcast a signed transaction

        Returns:
            dict: the orderer response, with at least a ``status`` key
        """

    @abc.abstractmethod
    async def start_event_service(self, event_service, start_block=None):
        """Open the block stream of an event service

        Decoded blocks are pushed with ``event_service.deliver(event_info)``
        and a broken stream is reported with ``event_service.stream_error(error)``.
        Raises when the stream cannot be opened.
        """

    @abc.abstractmethod
    async def stop_event_service(self, event_service):
        """Close the block stream of an event service, if open"""

    async def close(self):
        pass


class GrpcTransport(Transport):
    """Transport over the grpc channels of the peers and orderers

    Args:
        identity_context (IdentityContext): signs the deliver requests
        decoder: turns the encoded responses into dicts and EventInfo objects
    """

    def __init__(self, identity_context, decoder):
        self._identity_context = identity_context
        self._decoder = decoder
        self._streams = {}

    async def send_proposal(self, peer, signed_proposal, timeout=None):
        method = 'send_proposal'
        try:
            raw = await peer.send_proposal(signed_proposal, timeout)
        except grpc.aio.AioRpcError as e:
            _logger.error(f'{method} - peer {peer.name} failed: {e.code()} {e.details()}')
            return EndorsementResponse(peer, message=e.details(), error=e)

        response = self._decoder.decode_proposal_response(raw)
        _logger.debug(f'{method} - peer {peer.name} status: {response.get("status")}')
        return EndorsementResponse(
            peer,
            status=response.get('status'),
            message=response.get('message'),
            payload=response.get('payload'),
            endorsement=response.get('endorsement'))

    async def send_commit(self, orderer, signed_envelope, timeout=None):
        raw = await orderer.broadcast(signed_envelope, timeout)
        return self._decoder.decode_broadcast_response(raw)

    async def start_event_service(self, event_service, start_block=None):
        method = 'start_event_service'
        peer = event_service.peer

        await self.stop_event_service(event_service)

        envelope = self._identity_context.sign_seek_info(event_service.channel_name, event_service.block_type,
                                                         start_block)
        await peer.wait_for_ready()

        call = peer.deliver(envelope, event_service.block_type)
        task = asyncio.ensure_future(self._read_stream(event_service, call))
        self._streams[event_service] = (call, task)

        _logger.debug(f'{method} - {event_service.name} streaming from block {start_block}')

    async def stop_event_service(self, event_service):
        stream = self._streams.pop(event_service, None)
        if stream is None:
            return

        call, task = stream
        call.cancel()
        task.cancel()

    async def close(self):
        for event_service in list(self._streams):
            await self.stop_event_service(event_service)

    async def _read_stream(self, event_service, call):
        method = '_read_stream'
        try:
            async for raw in call:
                response = self._decoder.decode_deliver_response(raw, event_service.block_type)
                if isinstance(response, EventInfo):
                    response.event_service = event_service
                    event_service.deliver(response)
                else:
                    status = response.get('status')
                    _logger.debug(f'{method} - {event_service.name} status: {status}')
                    if status != 'SUCCESS':
                        raise EventServiceError(f'Event service {event_service.name} returned status {status}',
                                                peer=event_service.peer)
                    # the requested range ends here
                    self._streams.pop(event_service, None)
                    return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._streams.pop(event_service, None)
            event_service.stream_error(e if isinstance(e, EventServiceError) else EventServiceError(
                f'Event service {event_service.name} stream failed: {e}', peer=event_service.peer))
            return

        self._streams.pop(event_service, None)
        event_service.stream_error(EventServiceError(f'Event service {event_service.name} stream ended',
                                                     peer=event_service.peer))
