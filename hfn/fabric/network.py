# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging

from hfn.fabric.contract import Contract
from hfn.fabric.event.block_event_source import BlockEventSource
from hfn.fabric.event.commit_listener_session import CommitListenerSession
from hfn.fabric.event.default_event_handler_strategies import get_event_handler_factory
from hfn.fabric.event.event_service_manager import EventServiceManager
from hfn.fabric.event.listener_session import ListenerOptions, IsolatedBlockListenerSession, \
    SharedBlockListenerSession, add_listener, remove_listener
from hfn.fabric.event.listeners import checkpoint_block_listener
from hfn.fabric.query.query_handler import get_query_handler_factory

_logger = logging.getLogger(__name__)


class Network(object):
    """A channel as seen through a gateway.

    Hands out contracts and owns the event services, block sources and
    listener sessions of the channel.
    """

    def __init__(self, gateway, channel):
        method = 'constructor'
        _logger.debug(f'{method} - start - channel: {channel.name}')

        self._gateway = gateway
        self._channel = channel
        self._contracts = {}
        self._initialized = False
        self._query_handler = None

        self._event_service_manager = EventServiceManager(
            channel.name, gateway.transport, gateway.options.get('event-reconnect-delay'))
        self._commit_listeners = {}
        self._block_listeners = {}
        self._realtime_block_sources = {}

    async def _initialize(self):
        method = '_initialize'
        _logger.debug(f'{method} - start')

        if self._initialized:
            return

        # after the channel is populated, the handler keeps its peers
        query_strategy = self._gateway.options.get('query-handler-strategy')
        self._query_handler = get_query_handler_factory(query_strategy)(self)
        self._initialized = True

        _logger.debug(f'{method} - end')

    @property
    def gateway(self):
        return self._gateway

    @property
    def channel(self):
        return self._channel

    @property
    def identity(self):
        return self._gateway.identity

    @property
    def mspid(self):
        return self._gateway.identity.mspid

    @property
    def transport(self):
        return self._gateway.transport

    @property
    def gateway_options(self):
        return self._gateway.options

    @property
    def event_handler_factory(self):
        return get_event_handler_factory(self._gateway.options.get('event-handler-strategy'))

    @property
    def query_handler(self):
        return self._query_handler

    @property
    def event_service_manager(self):
        return self._event_service_manager

    def get_contract(self, chaincode_id, name=''):
        method = 'get_contract'
        _logger.debug(f'{method} - start - name {name}')

        if not self._initialized:
            raise ValueError('Unable to get contract as this network has failed to initialize')

        key = f'{chaincode_id}:{name}'
        contract = self._contracts.get(key)
        if contract is None:
            _logger.debug(f'{method} - create new contract {chaincode_id}')
            contract = Contract(self, chaincode_id, name)
            self._contracts[key] = contract
        return contract

    async def add_commit_listener(self, listener, peers, transaction_id):
        """Listen for the commit of a transaction on the given peers

        The listener is called as ``listener(error, commit_event)``.
        """
        async def session_supplier():
            return CommitListenerSession(listener, self._event_service_manager, peers, transaction_id)

        return await add_listener(listener, self._commit_listeners, session_supplier)

    async def remove_commit_listener(self, listener):
        await remove_listener(listener, self._commit_listeners)

    async def add_block_listener(self, listener, options=None):
        """Listen for block events

        Args:
            listener: called with each block event, in block order
            options (ListenerOptions): block type, start block and checkpointer
        """
        async def session_supplier():
            return await self._new_block_listener_session(listener, options or ListenerOptions())

        return await add_listener(listener, self._block_listeners, session_supplier)

    async def remove_block_listener(self, listener):
        await remove_listener(listener, self._block_listeners)

    async def _new_block_listener_session(self, listener, options):
        start_block = options.start_block
        if options.checkpointer is not None:
            checkpoint_block = await options.checkpointer.get_block_number()
            if checkpoint_block is not None:
                start_block = checkpoint_block
            listener = checkpoint_block_listener(listener, options.checkpointer)

        if start_block is not None:
            _logger.debug(f'_new_block_listener_session - replay from block {start_block}')
            peer = self._get_event_peer()
            return IsolatedBlockListenerSession(
                listener,
                lambda: BlockEventSource(self._event_service_manager, peer, options.type, start_block))

        return SharedBlockListenerSession(listener, self._get_realtime_block_source(options.type))

    def _get_realtime_block_source(self, block_type):
        block_source = self._realtime_block_sources.get(block_type)
        if block_source is None:
            block_source = BlockEventSource(self._event_service_manager, self._get_event_peer(), block_type)
            self._realtime_block_sources[block_type] = block_source
        return block_source

    def _get_event_peer(self):
        peers = self._channel.get_event_peers(self.mspid)
        if not peers:
            peers = self._channel.get_event_peers()
        if not peers:
            raise ValueError(f'No event source peers found on channel {self._channel.name}')
        return peers[0]

    async def close(self):
        method = 'close'
        _logger.debug(f'{method} - start')

        self._contracts.clear()

        for listener in list(self._commit_listeners):
            await remove_listener(listener, self._commit_listeners)

        for listener in list(self._block_listeners):
            await remove_listener(listener, self._block_listeners)

        for block_source in self._realtime_block_sources.values():
            await block_source.close()
        self._realtime_block_sources.clear()

        await self._event_service_manager.close()
        await self._channel.close()

        self._initialized = False
