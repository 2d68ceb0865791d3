# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from hfn.fabric.errors import EndorsementError

_logger = logging.getLogger(__name__)

GRPC_STATUS = 'grpc'


@dataclass
class Proposal:
    """Chaincode invocation to be encoded and signed by the identity"""
    channel_name: str
    chaincode_id: str
    fcn: str
    tx_id: Any
    args: List[bytes] = field(default_factory=list)
    transient_map: Optional[Dict[str, bytes]] = None

    @property
    def transaction_id(self):
        return self.tx_id.transaction_id


class EndorsementResponse(object):
    """Response of one peer to a proposal.

    A transport failure leaves ``status`` unset and keeps the exception in
    ``error``.
    """

    def __init__(self, peer, status=None, message=None, payload=None, endorsement=None, error=None):
        self.peer = peer
        self.status = status
        self.message = message
        self.payload = payload
        self.endorsement = endorsement
        self.error = error

    @property
    def peer_name(self):
        return getattr(self.peer, 'name', self.peer)

    def is_valid(self):
        return self.error is None and self.status is not None and self.status < 400

    def __repr__(self):
        return f'EndorsementResponse(peer={self.peer_name}, status={self.status}, message={self.message})'


class EndorsementResult(object):

    def __init__(self, valid, invalid):
        self.valid = valid
        self.invalid = invalid

    @property
    def payload(self):
        return self.valid[0].payload


def validate_endorsement_responses(responses, transaction_id=None):
    """Split the responses into valid and invalid ones

    Raises:
        EndorsementError: no response is valid
    """
    valid = []
    invalid = []
    for response in responses:
        if response.is_valid():
            valid.append(response)
        else:
            invalid.append(response)

    _logger.debug(f'validate_endorsement_responses - valid: {len(valid)} invalid: {len(invalid)}')

    if not valid:
        error_infos = []
        for response in invalid:
            message = response.message
            if message is None and response.error is not None:
                message = str(response.error)
            error_infos.append({
                'peer': response.peer_name,
                'status': GRPC_STATUS if response.status is None else response.status,
                'message': message,
            })

        messages = ['No valid responses from any peers. Errors:']
        for error_info in error_infos:
            messages.append('peer={peer}, status={status}, message={message}'.format(**error_info))

        raise EndorsementError('\n    '.join(messages), responses=error_infos, transaction_id=transaction_id)

    return EndorsementResult(valid, invalid)


class Endorsement(object):
    """Sends a signed proposal to endorsing peers, or through a discovery handler"""

    def __init__(self, proposal, transport, timeout=None):
        self._proposal = proposal
        self._transport = transport
        self._timeout = timeout

    @property
    def proposal(self):
        return self._proposal

    async def send(self, signed_proposal, targets=None, handler=None, required_orgs=None):
        method = 'send'
        transaction_id = self._proposal.transaction_id

        if handler is not None:
            _logger.debug(f'{method} - endorsing {transaction_id} with the discovery handler')
            request = {'timeout': self._timeout, 'required_orgs': required_orgs}
            responses = await handler.endorse(signed_proposal, request)
        else:
            if not targets:
                raise ValueError('Missing targets parameter')

            _logger.debug(f'{method} - endorsing {transaction_id} on {[peer.name for peer in targets]}')
            responses = await asyncio.gather(*[self._send_to_peer(peer, signed_proposal) for peer in targets])

        return validate_endorsement_responses(responses, transaction_id)

    async def _send_to_peer(self, peer, signed_proposal):
        try:
            return await self._transport.send_proposal(peer, signed_proposal, self._timeout)
        except Exception as e:
            _logger.error(f'_send_to_peer - {peer.name} failed: {e}')
            return EndorsementResponse(peer, message=str(e), error=e)
