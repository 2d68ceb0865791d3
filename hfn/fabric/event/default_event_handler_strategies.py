# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
"""Named commit event handler factories.

A factory is called as ``factory(transaction_id, network, commit_timeout)``
and returns the event handler of one transaction.
"""
import logging

from hfn.fabric.event.strategies import AllForTxStrategy, AnyForTxStrategy, TransactionEventStrategy
from hfn.fabric.event.transaction_event_handler import TransactionEventHandler

_logger = logging.getLogger(__name__)


def get_organization_peers(network):
    return network.channel.get_endorsers(network.mspid)


def get_network_peers(network):
    return network.channel.get_endorsers()


def get_preferred_peers(network):
    peers = get_organization_peers(network)
    if len(peers) == 0:
        peers = get_network_peers(network)
    return peers


class TxEventHandlerFactory(object):

    def __init__(self, name, strategy_class, get_peers):
        self.name = name
        self._strategy_class = strategy_class
        self._get_peers = get_peers

    def __call__(self, transaction_id, network, commit_timeout=None):
        strategy = self._strategy_class(self._get_peers(network))
        return TransactionEventHandler(transaction_id, network, strategy, commit_timeout)

    def __str__(self):
        return self.name


class NoOpEventHandler(object):
    """Returns as soon as the transaction was sent to the orderer"""

    def __init__(self, transaction_id):
        self.transaction_id = transaction_id

    async def start_listening(self):
        pass

    async def wait_for_events(self):
        pass

    async def cancel_listening(self):
        pass


class NoneFactory(object):

    name = 'NONE'

    def __call__(self, transaction_id, network, commit_timeout=None):
        return NoOpEventHandler(transaction_id)

    def __str__(self):
        return self.name


MSPID_SCOPE_ALLFORTX = TxEventHandlerFactory('MSPID_SCOPE_ALLFORTX', AllForTxStrategy, get_organization_peers)
MSPID_SCOPE_ANYFORTX = TxEventHandlerFactory('MSPID_SCOPE_ANYFORTX', AnyForTxStrategy, get_organization_peers)
NETWORK_SCOPE_ALLFORTX = TxEventHandlerFactory('NETWORK_SCOPE_ALLFORTX', AllForTxStrategy, get_network_peers)
NETWORK_SCOPE_ANYFORTX = TxEventHandlerFactory('NETWORK_SCOPE_ANYFORTX', AnyForTxStrategy, get_network_peers)
PREFER_MSPID_SCOPE_ALLFORTX = TxEventHandlerFactory('PREFER_MSPID_SCOPE_ALLFORTX', AllForTxStrategy,
                                                    get_preferred_peers)
PREFER_MSPID_SCOPE_ANYFORTX = TxEventHandlerFactory('PREFER_MSPID_SCOPE_ANYFORTX', AnyForTxStrategy,
                                                    get_preferred_peers)
NONE = NoneFactory()

STRATEGIES = {
    factory.name: factory for factory in (
        MSPID_SCOPE_ALLFORTX, MSPID_SCOPE_ANYFORTX,
        NETWORK_SCOPE_ALLFORTX, NETWORK_SCOPE_ANYFORTX,
        PREFER_MSPID_SCOPE_ALLFORTX, PREFER_MSPID_SCOPE_ANYFORTX,
        NONE,
    )
}


def get_event_handler_factory(strategy):
    """Resolve a strategy value, a factory or a factory name into a factory"""
    if isinstance(strategy, TransactionEventStrategy):
        # strategies count responses, each transaction needs its own copy
        def strategy_factory(transaction_id, network, commit_timeout=None):
            tx_strategy = type(strategy)(strategy.get_peers())
            return TransactionEventHandler(transaction_id, network, tx_strategy, commit_timeout)
        return strategy_factory

    if isinstance(strategy, str):
        if strategy not in STRATEGIES:
            raise ValueError(f'Unknown event handler strategy: {strategy}')
        return STRATEGIES[strategy]

    if callable(strategy):
        return strategy

    raise ValueError(f'Invalid event handler strategy: {strategy}')
