"""
Tests for transaction commit listeners.
"""

import pytest

from conftest import settle
from hfn.fabric.errors import EventServiceError
from hfn.fabric.event.events import FILTERED_BLOCK
from hfn.fabric.event.listener_session import ListenerOptions

MVCC_READ_CONFLICT = 11


class CommitRecorder(object):

    def __init__(self):
        self.events = []
        self.errors = []

    def __call__(self, error, commit_event):
        if error is not None:
            self.errors.append(error)
        else:
            self.events.append(commit_event)


@pytest.fixture
def commit_peers(peers):
    return [peers['peer0.org1'], peers['peer0.org2']]


class TestCommitListener:

    @pytest.mark.asyncio
    async def test_receives_commit_event_from_each_peer(self, network, transport, commit_peers):
        listener = CommitRecorder()
        await network.add_commit_listener(listener, commit_peers, 'tx1')

        transport.commit_transaction('tx1')

        assert sorted(event.peer.name for event in listener.events) == ['peer0.org1', 'peer0.org2']
        event = listener.events[0]
        assert event.transaction_id == 'tx1'
        assert event.is_valid
        assert event.status == 'VALID'
        assert event.block_number == 100
        assert event.get_transaction_event().transaction_id == 'tx1'
        assert event.get_block_event().block_number == 100

    @pytest.mark.asyncio
    async def test_other_transactions_ignored(self, network, transport, commit_peers):
        listener = CommitRecorder()
        await network.add_commit_listener(listener, commit_peers, 'tx1')

        transport.commit_transaction('tx2')

        assert listener.events == []

    @pytest.mark.asyncio
    async def test_invalid_commit(self, network, transport, commit_peers):
        listener = CommitRecorder()
        await network.add_commit_listener(listener, commit_peers, 'tx1')

        transport.commit_transaction('tx1', MVCC_READ_CONFLICT)

        assert [event.status for event in listener.events] == ['MVCC_READ_CONFLICT', 'MVCC_READ_CONFLICT']
        assert not listener.events[0].is_valid

    @pytest.mark.asyncio
    async def test_uses_filtered_event_services(self, network, transport, commit_peers):
        await network.add_commit_listener(CommitRecorder(), commit_peers, 'tx1')

        assert sorted(service.peer.name for service in transport.services(FILTERED_BLOCK)) == \
            ['peer0.org1', 'peer0.org2']

    @pytest.mark.asyncio
    async def test_shares_event_service_with_block_listener(self, network, transport, commit_peers):
        await network.add_block_listener(lambda block_event: None, ListenerOptions(type=FILTERED_BLOCK))
        await network.add_commit_listener(CommitRecorder(), commit_peers, 'tx1')

        assert len(transport.services(FILTERED_BLOCK)) == 2
        assert transport.starts_for('peer0.org1') == [None]

    @pytest.mark.asyncio
    async def test_removed_listener_releases_services(self, network, transport, commit_peers):
        listener = CommitRecorder()
        await network.add_commit_listener(listener, commit_peers, 'tx1')

        await network.remove_commit_listener(listener)
        transport.commit_transaction('tx1')

        assert listener.events == []
        assert transport.services() == []

    @pytest.mark.asyncio
    async def test_remove_keeps_service_used_by_block_listener(self, network, transport, commit_peers):
        await network.add_block_listener(lambda block_event: None, ListenerOptions(type=FILTERED_BLOCK))
        listener = CommitRecorder()
        await network.add_commit_listener(listener, commit_peers, 'tx1')

        await network.remove_commit_listener(listener)

        assert [service.peer.name for service in transport.services()] == ['peer0.org1']

    @pytest.mark.asyncio
    async def test_start_failure_reported_as_peer_error(self, network, transport, peers, commit_peers):
        transport.start_errors['peer0.org2'] = Exception('UNAVAILABLE')
        listener = CommitRecorder()

        await network.add_commit_listener(listener, commit_peers, 'tx1')
        transport.commit_transaction('tx1')

        assert len(listener.errors) == 1
        assert isinstance(listener.errors[0], EventServiceError)
        assert listener.errors[0].peer is peers['peer0.org2']
        assert [event.peer.name for event in listener.events] == ['peer0.org1']

    @pytest.mark.asyncio
    async def test_stream_error_reported_as_peer_error(self, network, transport, peers, commit_peers):
        listener = CommitRecorder()
        await network.add_commit_listener(listener, commit_peers, 'tx1')
        service = [s for s in transport.services() if s.peer.name == 'peer0.org1'][0]

        service.stream_error(Exception('STREAM_BROKEN'))
        await settle()

        assert len(listener.errors) == 1
        assert listener.errors[0].peer is peers['peer0.org1']
        assert 'STREAM_BROKEN' in str(listener.errors[0])

    @pytest.mark.asyncio
    async def test_async_listener(self, network, transport, commit_peers):
        received = []

        async def listener(error, commit_event):
            received.append(commit_event.peer.name)

        await network.add_commit_listener(listener, commit_peers, 'tx1')
        transport.commit_transaction('tx1')
        await settle()

        assert sorted(received) == ['peer0.org1', 'peer0.org2']
