"""
Tests for contract event listeners.
"""

import pytest

from conftest import CHAINCODE_ID, filtered_block, full_block, settle
from hfn.fabric.event.checkpointer import InMemoryCheckpointer
from hfn.fabric.event.events import FILTERED_BLOCK, FULL_BLOCK
from hfn.fabric.event.listener_session import ListenerOptions

MVCC_READ_CONFLICT = 11

# =============================================================================
# HELPERS
# =============================================================================


class ContractRecorder(object):

    def __init__(self, fail_on=()):
        self.events = []
        self._fail_on = fail_on

    def __call__(self, contract_event):
        transaction_id = contract_event.get_transaction_event().transaction_id
        if transaction_id in self._fail_on:
            raise RuntimeError(f'LISTENER_ERROR {transaction_id}')
        self.events.append(contract_event)

    @property
    def summary(self):
        return [(event.get_transaction_event().transaction_id, event.event_name) for event in self.events]


def service_for(transport, block_type=FULL_BLOCK, replay=False):
    return [service for service in transport.services(block_type) if service.replay == replay][0]


# =============================================================================
# CONTRACT EVENTS
# =============================================================================


class TestContractListener:

    @pytest.mark.asyncio
    async def test_receives_events_of_contract_chaincode(self, contract, transport):
        listener = ContractRecorder()
        await contract.add_contract_listener(listener)

        service_for(transport).deliver(full_block(1, [
            ('tx1', 0, [(CHAINCODE_ID, 'created', b'car'), ('other', 'created', b'boat')]),
        ]))
        await settle()

        assert len(listener.events) == 1
        event = listener.events[0]
        assert event.chaincode_id == CHAINCODE_ID
        assert event.event_name == 'created'
        assert event.payload == b'car'
        assert event.get_block_event().block_number == 1

    @pytest.mark.asyncio
    async def test_filtered_events_have_no_payload(self, contract, transport):
        listener = ContractRecorder()
        await contract.add_contract_listener(listener, ListenerOptions(type=FILTERED_BLOCK))

        service_for(transport, FILTERED_BLOCK).deliver(filtered_block(1, [('tx1', 0, [(CHAINCODE_ID, 'created')])]))
        await settle()

        assert listener.summary == [('tx1', 'created')]
        assert listener.events[0].payload is None

    @pytest.mark.asyncio
    async def test_event_name_filter(self, contract, transport):
        listener = ContractRecorder()
        await contract.add_contract_listener(listener, event_name='sold')

        service_for(transport).deliver(full_block(1, [
            ('tx1', 0, [(CHAINCODE_ID, 'created', b'')]),
            ('tx2', 0, [(CHAINCODE_ID, 'sold', b'')]),
        ]))
        await settle()

        assert listener.summary == [('tx2', 'sold')]

    @pytest.mark.asyncio
    async def test_invalid_transactions_skipped(self, contract, transport):
        listener = ContractRecorder()
        await contract.add_contract_listener(listener)

        service_for(transport).deliver(full_block(1, [
            ('tx1', MVCC_READ_CONFLICT, [(CHAINCODE_ID, 'created', b'')]),
            ('tx2', 0, [(CHAINCODE_ID, 'created', b'')]),
        ]))
        await settle()

        assert listener.summary == [('tx2', 'created')]

    @pytest.mark.asyncio
    async def test_config_transactions_skipped(self, contract, transport):
        listener = ContractRecorder()
        await contract.add_contract_listener(listener)

        service_for(transport).deliver(full_block(1, [
            (None, 0, []),
            ('tx1', 0, [(CHAINCODE_ID, 'created', b'')]),
        ]))
        await settle()

        assert listener.summary == [('tx1', 'created')]

    @pytest.mark.asyncio
    async def test_each_event_delivered_in_block_order(self, contract, transport):
        listener = ContractRecorder()
        await contract.add_contract_listener(listener)

        service = service_for(transport)
        service.deliver(full_block(2, [('tx3', 0, [(CHAINCODE_ID, 'sold', b'')])]))
        service.deliver(full_block(1, [
            ('tx1', 0, [(CHAINCODE_ID, 'created', b''), (CHAINCODE_ID, 'priced', b'')]),
            ('tx2', 0, [(CHAINCODE_ID, 'created', b'')]),
        ]))
        await settle()

        # block 2 arrived first and fixed the starting point
        assert listener.summary == [('tx3', 'sold')]

        service.deliver(full_block(3, [
            ('tx4', 0, [(CHAINCODE_ID, 'created', b''), (CHAINCODE_ID, 'priced', b'')]),
            ('tx5', 0, [(CHAINCODE_ID, 'sold', b'')]),
        ]))
        await settle()

        assert listener.summary == [('tx3', 'sold'), ('tx4', 'created'), ('tx4', 'priced'), ('tx5', 'sold')]

    @pytest.mark.asyncio
    async def test_async_listener(self, contract, transport):
        received = []

        async def listener(contract_event):
            received.append(contract_event.event_name)

        await contract.add_contract_listener(listener)
        service_for(transport).deliver(full_block(1, [('tx1', 0, [(CHAINCODE_ID, 'created', b'')])]))
        await settle()

        assert received == ['created']

    @pytest.mark.asyncio
    async def test_removed_listener_receives_no_events(self, contract, transport):
        listener = ContractRecorder()
        await contract.add_contract_listener(listener)
        service = service_for(transport)
        await contract.remove_contract_listener(listener)

        service.deliver(full_block(1, [('tx1', 0, [(CHAINCODE_ID, 'created', b'')])]))
        await settle()

        assert listener.events == []

    @pytest.mark.asyncio
    async def test_listener_removed_while_delivering_block(self, contract, transport):
        received = []

        async def listener(contract_event):
            received.append(contract_event.event_name)
            await contract.remove_contract_listener(listener)

        await contract.add_contract_listener(listener)
        service_for(transport).deliver(full_block(1, [
            ('tx1', 0, [(CHAINCODE_ID, 'created', b''), (CHAINCODE_ID, 'priced', b'')]),
        ]))
        await settle()

        assert received == ['created']

    @pytest.mark.asyncio
    async def test_adding_same_listener_twice_delivers_once(self, contract, transport):
        listener = ContractRecorder()
        await contract.add_contract_listener(listener)
        await contract.add_contract_listener(listener)

        service_for(transport).deliver(full_block(1, [('tx1', 0, [(CHAINCODE_ID, 'created', b'')])]))
        await settle()

        assert len(listener.events) == 1

    @pytest.mark.asyncio
    async def test_failing_listener_keeps_receiving(self, contract, transport):
        listener = ContractRecorder(fail_on=('tx1',))
        await contract.add_contract_listener(listener)

        service = service_for(transport)
        service.deliver(full_block(1, [
            ('tx1', 0, [(CHAINCODE_ID, 'created', b'')]),
            ('tx2', 0, [(CHAINCODE_ID, 'created', b'')]),
        ]))
        service.deliver(full_block(2, [('tx3', 0, [(CHAINCODE_ID, 'created', b'')])]))
        await settle()

        assert listener.summary == [('tx2', 'created'), ('tx3', 'created')]

    @pytest.mark.asyncio
    async def test_replay_from_start_block(self, contract, transport):
        listener = ContractRecorder()
        await contract.add_contract_listener(listener, ListenerOptions(start_block=3))

        service = service_for(transport, replay=True)
        service.deliver(full_block(3, [('tx1', 0, [(CHAINCODE_ID, 'created', b'')])]))
        await settle()

        assert transport.starts == [(service, 3)]
        assert listener.summary == [('tx1', 'created')]


# =============================================================================
# CHECKPOINTING
# =============================================================================


class TestCheckpointContractListener:

    @pytest.mark.asyncio
    async def test_checkpoint_follows_delivered_blocks(self, contract, transport):
        checkpointer = InMemoryCheckpointer()
        listener = ContractRecorder()
        await contract.add_contract_listener(listener, ListenerOptions(checkpointer=checkpointer))

        service_for(transport).deliver(full_block(1, [('tx1', 0, [(CHAINCODE_ID, 'created', b'')])]))
        await settle()

        assert listener.summary == [('tx1', 'created')]
        assert await checkpointer.get_block_number() == 2
        assert await checkpointer.get_transaction_ids() == set()

    @pytest.mark.asyncio
    async def test_resumes_from_checkpoint_block(self, contract, transport):
        checkpointer = InMemoryCheckpointer()
        await checkpointer.set_block_number(5)
        listener = ContractRecorder()
        await contract.add_contract_listener(listener, ListenerOptions(start_block=1, checkpointer=checkpointer))

        service = service_for(transport, replay=True)
        assert transport.starts == [(service, 5)]

    @pytest.mark.asyncio
    async def test_skips_transactions_already_processed(self, contract, transport):
        checkpointer = InMemoryCheckpointer()
        await checkpointer.set_block_number(5)
        await checkpointer.add_transaction_id('tx1')
        listener = ContractRecorder()
        await contract.add_contract_listener(listener, ListenerOptions(checkpointer=checkpointer))

        service_for(transport, replay=True).deliver(full_block(5, [
            ('tx1', 0, [(CHAINCODE_ID, 'created', b'')]),
            ('tx2', 0, [(CHAINCODE_ID, 'created', b'')]),
        ]))
        await settle()

        assert listener.summary == [('tx2', 'created')]
        assert await checkpointer.get_block_number() == 6

    @pytest.mark.asyncio
    async def test_failure_stops_at_failed_transaction(self, contract, transport):
        checkpointer = InMemoryCheckpointer()
        listener = ContractRecorder(fail_on=('tx2',))
        await contract.add_contract_listener(listener, ListenerOptions(checkpointer=checkpointer))

        service_for(transport).deliver(full_block(1, [
            ('tx1', 0, [(CHAINCODE_ID, 'created', b'')]),
            ('tx2', 0, [(CHAINCODE_ID, 'created', b'')]),
            ('tx3', 0, [(CHAINCODE_ID, 'created', b'')]),
        ]))
        await settle()

        assert listener.summary == [('tx1', 'created')]
        assert await checkpointer.get_block_number() == 1
        assert await checkpointer.get_transaction_ids() == {'tx1'}

    @pytest.mark.asyncio
    async def test_transactions_without_events_are_checkpointed(self, contract, transport):
        checkpointer = InMemoryCheckpointer()
        listener = ContractRecorder(fail_on=('tx2',))
        await contract.add_contract_listener(listener, ListenerOptions(checkpointer=checkpointer))

        service_for(transport).deliver(full_block(1, [
            ('tx1', 0, [('other', 'created', b'')]),
            ('tx2', 0, [(CHAINCODE_ID, 'created', b'')]),
        ]))
        await settle()

        assert await checkpointer.get_transaction_ids() == {'tx1'}
