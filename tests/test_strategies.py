"""
Tests for the commit event strategies and the named handler factories.
"""

import pytest

from hfn.fabric.errors import TransactionError
from hfn.fabric.event import default_event_handler_strategies as strategies
from hfn.fabric.event.strategies import AllForTxStrategy, AnyForTxStrategy, TransactionEventStrategy
from hfn.fabric.event.transaction_event_handler import TransactionEventHandler

from conftest import make_peer


class Outcome:

    def __init__(self):
        self.successes = 0
        self.errors = []

    def success(self):
        self.successes += 1

    def fail(self, error):
        self.errors.append(error)


@pytest.fixture
def two_peers():
    return [make_peer('peer1'), make_peer('peer2')]


@pytest.fixture
def outcome():
    return Outcome()


class TestTransactionEventStrategy:

    def test_base_strategy_is_abstract(self, two_peers):
        with pytest.raises(TypeError):
            TransactionEventStrategy(two_peers)


class TestAllForTxStrategy:

    def test_rejects_empty_peers(self):
        with pytest.raises(ValueError):
            AllForTxStrategy([])

    def test_get_peers(self, two_peers):
        assert AllForTxStrategy(two_peers).get_peers() == two_peers

    def test_waits_for_all_peers(self, two_peers, outcome):
        strategy = AllForTxStrategy(two_peers)

        strategy.event_received(outcome.success, outcome.fail)

        assert outcome.successes == 0
        assert outcome.errors == []

    def test_succeeds_when_all_peers_commit(self, two_peers, outcome):
        strategy = AllForTxStrategy(two_peers)

        strategy.event_received(outcome.success, outcome.fail)
        strategy.event_received(outcome.success, outcome.fail)

        assert outcome.successes == 1

    def test_succeeds_with_one_event_and_one_error(self, two_peers, outcome):
        strategy = AllForTxStrategy(two_peers)

        strategy.error_received(outcome.success, outcome.fail)
        strategy.event_received(outcome.success, outcome.fail)

        assert outcome.successes == 1
        assert outcome.errors == []

    def test_fails_when_all_peers_error(self, two_peers, outcome):
        strategy = AllForTxStrategy(two_peers)

        strategy.error_received(outcome.success, outcome.fail)
        strategy.error_received(outcome.success, outcome.fail)

        assert outcome.successes == 0
        assert len(outcome.errors) == 1
        assert isinstance(outcome.errors[0], TransactionError)


class TestAnyForTxStrategy:

    def test_rejects_empty_peers(self):
        with pytest.raises(ValueError):
            AnyForTxStrategy([])

    def test_succeeds_on_first_event(self, two_peers, outcome):
        strategy = AnyForTxStrategy(two_peers)

        strategy.event_received(outcome.success, outcome.fail)

        assert outcome.successes == 1

    def test_succeeds_after_an_error(self, two_peers, outcome):
        strategy = AnyForTxStrategy(two_peers)

        strategy.error_received(outcome.success, outcome.fail)
        assert outcome.successes == 0
        assert outcome.errors == []

        strategy.event_received(outcome.success, outcome.fail)
        assert outcome.successes == 1

    def test_fails_when_all_peers_error(self, two_peers, outcome):
        strategy = AnyForTxStrategy(two_peers)

        strategy.error_received(outcome.success, outcome.fail)
        strategy.error_received(outcome.success, outcome.fail)

        assert len(outcome.errors) == 1


class TestEventHandlerFactories:

    def test_mspid_scope_uses_organization_peers(self, network):
        handler = strategies.MSPID_SCOPE_ALLFORTX('tx1', network)

        assert isinstance(handler, TransactionEventHandler)
        assert sorted(peer.name for peer in handler._strategy.get_peers()) == ['peer0.org1', 'peer1.org1']
        assert isinstance(handler._strategy, AllForTxStrategy)

    def test_network_scope_uses_all_peers(self, network):
        handler = strategies.NETWORK_SCOPE_ANYFORTX('tx1', network)

        assert len(handler._strategy.get_peers()) == 3
        assert isinstance(handler._strategy, AnyForTxStrategy)

    def test_prefer_mspid_scope_falls_back_to_network(self, network, gateway):
        gateway._identity._mspid = 'Org3MSP'

        handler = strategies.PREFER_MSPID_SCOPE_ALLFORTX('tx1', network)

        assert len(handler._strategy.get_peers()) == 3

    def test_mspid_scope_without_organization_peers_fails(self, network, gateway):
        gateway._identity._mspid = 'Org3MSP'

        with pytest.raises(ValueError):
            strategies.MSPID_SCOPE_ANYFORTX('tx1', network)

    def test_factory_by_name(self):
        assert strategies.get_event_handler_factory('NETWORK_SCOPE_ALLFORTX') is strategies.NETWORK_SCOPE_ALLFORTX

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            strategies.get_event_handler_factory('EVERYONE')

    def test_strategy_value_is_copied_for_each_transaction(self, network, two_peers):
        strategy = AnyForTxStrategy(two_peers)
        factory = strategies.get_event_handler_factory(strategy)

        first = factory('tx1', network)
        second = factory('tx2', network)

        assert isinstance(first._strategy, AnyForTxStrategy)
        assert first._strategy.get_peers() == two_peers
        assert first._strategy is not strategy
        assert second._strategy is not first._strategy
