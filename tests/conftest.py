"""
Shared pytest fixtures for the gateway test suite.

The network is never contacted: a stub transport records what is sent and
lets the tests push decoded blocks into the event services, and a stub
identity stands in for the signing identity.
"""

import asyncio

import pytest
import pytest_asyncio

from hfn.fabric.config.config import Config
from hfn.fabric.event.events import ENDORSER_TRANSACTION, FILTERED_BLOCK, EventInfo
from hfn.fabric.gateway import Gateway
from hfn.fabric.msp.identity import IdentityContext
from hfn.fabric.orderer import Orderer
from hfn.fabric.peer import Peer
from hfn.fabric.transaction.endorsement import EndorsementResponse
from hfn.fabric.transport import Transport

CHANNEL_NAME = 'mychannel'
CHAINCODE_ID = 'fabcar'
ORG1 = 'Org1MSP'
ORG2 = 'Org2MSP'

# =============================================================================
# STUBS
# =============================================================================


class StubIdentity(IdentityContext):

    def __init__(self, mspid=ORG1):
        self._mspid = mspid

    @property
    def mspid(self):
        return self._mspid

    def serialize(self):
        return b'creator-' + self._mspid.encode()

    def sign_proposal(self, proposal):
        return ('signed-proposal', proposal)

    def sign_transaction(self, proposal, endorsement_responses):
        return ('signed-transaction', proposal.transaction_id, len(endorsement_responses))

    def sign_seek_info(self, channel_name, block_type, start_block=None):
        return ('seek-info', channel_name, block_type, start_block)


class StubTransport(Transport):
    """
    Records every call and answers from configurable tables.

    - ``proposal_responses[peer_name]`` is a dict of response fields or an
      exception to raise, peers without an entry endorse with status 200.
    - ``commit_status`` is the orderer answer.
    - with ``auto_commit`` a filtered block holding the transaction is pushed
      to every started filtered service once the orderer accepted it.
    - ``start_errors[peer_name]`` makes starting an event service fail.
    """

    def __init__(self):
        self.proposal_responses = {}
        self.proposals = []
        self.commit_status = 'SUCCESS'
        self.commit_error = None
        self.commits = []
        self.auto_commit = True
        self.commit_validation_code = 0
        self.start_errors = {}
        self.starts = []
        self.stops = []
        self.started = []
        self.next_block_number = 100
        self.closed = False

    async def send_proposal(self, peer, signed_proposal, timeout=None):
        self.proposals.append((peer.name, signed_proposal))
        response = self.proposal_responses.get(peer.name, {})
        if isinstance(response, Exception):
            raise response
        fields = {'status': 200, 'message': 'OK', 'payload': b'result', 'endorsement': b'endorsement'}
        fields.update(response)
        return EndorsementResponse(peer, **fields)

    async def send_commit(self, orderer, signed_envelope, timeout=None):
        self.commits.append((orderer.name, signed_envelope))
        if self.commit_error is not None:
            raise self.commit_error
        if self.commit_status == 'SUCCESS' and self.auto_commit:
            self.commit_transaction(signed_envelope[1], self.commit_validation_code)
        return {'status': self.commit_status}

    def commit_transaction(self, transaction_id, validation_code=0):
        block_number = self.next_block_number
        self.next_block_number += 1
        for service in list(self.started):
            if service.block_type == FILTERED_BLOCK:
                service.deliver(filtered_block(block_number, [(transaction_id, validation_code, [])]))

    async def start_event_service(self, event_service, start_block=None):
        self.starts.append((event_service, start_block))
        error = self.start_errors.get(event_service.peer.name)
        if error is not None:
            raise error
        if event_service not in self.started:
            self.started.append(event_service)

    async def stop_event_service(self, event_service):
        self.stops.append(event_service)
        if event_service in self.started:
            self.started.remove(event_service)

    async def close(self):
        self.closed = True

    def starts_for(self, peer_name):
        return [start_block for service, start_block in self.starts if service.peer.name == peer_name]

    def services(self, block_type=None):
        return [service for service in self.started if block_type is None or service.block_type == block_type]


class StubDiscoveryHandler(object):

    def __init__(self, peer):
        self.peer = peer
        self.endorse_requests = []
        self.commit_requests = []

    async def endorse(self, signed_proposal, request):
        self.endorse_requests.append((signed_proposal, request))
        return [EndorsementResponse(self.peer, status=200, message='OK', payload=b'discovered')]

    async def commit(self, signed_envelope, request):
        self.commit_requests.append((signed_envelope, request))
        return {'status': 'SUCCESS'}


# =============================================================================
# DECODED BLOCK BUILDERS
# =============================================================================


def filtered_block(block_number, transactions):
    """
    Build a filtered block.

    Args:
        transactions: (transaction id, validation code, [(chaincode id, event name)])
    """
    filtered_transactions = []
    for transaction_id, code, events in transactions:
        filtered_transactions.append({
            'txid': transaction_id,
            'tx_validation_code': code,
            'transaction_actions': {
                'chaincode_actions': [
                    {'chaincode_event': {'chaincode_id': chaincode_id, 'event_name': event_name, 'payload': b''}}
                    for chaincode_id, event_name in events
                ]
            },
        })

    return EventInfo(None, block_number, filtered_block={
        'channel_id': CHANNEL_NAME,
        'number': block_number,
        'filtered_transactions': filtered_transactions,
    })


def full_block(block_number, transactions, private_data=None):
    """
    Build a full block.

    Args:
        transactions: (transaction id, validation code, [(chaincode id, event name, payload)]),
            a transaction id of None stands for a config transaction
    """
    envelopes = []
    codes = []
    for transaction_id, code, events in transactions:
        header_type = ENDORSER_TRANSACTION if transaction_id is not None else 1
        actions = [
            {'payload': {'action': {'proposal_response_payload': {'extension': {'events': {
                'chaincode_id': chaincode_id, 'event_name': event_name, 'payload': payload}}}}}}
            for chaincode_id, event_name, payload in events
        ]
        envelopes.append({'payload': {
            'header': {'channel_header': {'type': header_type, 'tx_id': transaction_id or ''}},
            'data': {'actions': actions},
        }})
        codes.append(code)

    block = {
        'header': {'number': block_number},
        'data': {'data': envelopes},
        'metadata': {'metadata': [[], [], codes, []]},
    }
    return EventInfo(None, block_number, block=block, private_data=private_data)


def make_peer(name, mspid=ORG1):
    return Peer(f'grpc://{name}:7051', {'name': name, 'mspid': mspid})


def make_orderer(name='orderer.example.com'):
    return Orderer(f'grpc://{name}:7050', {'name': name})


async def settle(rounds=50):
    """Let the background block notifications run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_config():
    """Each test starts from the default configuration settings."""
    Config().reset()
    yield
    Config().reset()


@pytest.fixture
def transport():
    return StubTransport()


@pytest.fixture
def identity():
    return StubIdentity()


@pytest.fixture
def peers():
    return {
        'peer0.org1': make_peer('peer0.org1', ORG1),
        'peer1.org1': make_peer('peer1.org1', ORG1),
        'peer0.org2': make_peer('peer0.org2', ORG2),
    }


@pytest_asyncio.fixture
async def gateway(transport, identity, peers):
    gateway = Gateway()
    await gateway.connect(transport, identity, {'commit-timeout': 5})
    channel = gateway.new_channel(CHANNEL_NAME)
    for peer in peers.values():
        channel.add_peer(peer)
    channel.add_orderer(make_orderer())
    yield gateway
    await gateway.disconnect()


@pytest_asyncio.fixture
async def network(gateway):
    return await gateway.get_network(CHANNEL_NAME)


@pytest.fixture
def contract(network):
    return network.get_contract(CHAINCODE_ID)
