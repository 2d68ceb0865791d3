# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging

from hfn.fabric.event.listener_session import ContractListenerSession, ListenerOptions, add_listener, \
    remove_listener
from hfn.fabric.transaction.transaction import Transaction

_logger = logging.getLogger(__name__)


class Contract(object):
    """A chaincode deployed on a network, optionally a named contract within it"""

    def __init__(self, network, chaincode_id, namespace=''):
        method = 'constructor'
        _logger.debug(f'{method} - start - chaincode_id: {chaincode_id} namespace: {namespace}')

        if not chaincode_id:
            raise ValueError('Missing chaincode_id parameter')

        self._network = network
        self._chaincode_id = chaincode_id
        self._namespace = namespace
        self._contract_listeners = {}

    @property
    def network(self):
        return self._network

    @property
    def chaincode_id(self):
        return self._chaincode_id

    @property
    def namespace(self):
        return self._namespace

    def _get_qualified_name(self, name):
        if self._namespace:
            return f'{self._namespace}:{name}'
        return name

    def create_transaction(self, name):
        return Transaction(self, self._get_qualified_name(name))

    async def submit_transaction(self, name, *args):
        return await self.create_transaction(name).submit(*args)

    async def evaluate_transaction(self, name, *args):
        return await self.create_transaction(name).evaluate(*args)

    async def add_contract_listener(self, listener, options=None, event_name=None):
        """Listen for the events emitted by this chaincode

        Args:
            listener: called with each matching contract event
            options (ListenerOptions): block type, start block and checkpointer
            event_name (str): only deliver events with this name
        """
        async def session_supplier():
            return ContractListenerSession(listener, self._chaincode_id, self._network,
                                           options or ListenerOptions(), event_name)

        return await add_listener(listener, self._contract_listeners, session_supplier)

    async def remove_contract_listener(self, listener):
        await remove_listener(listener, self._contract_listeners)
