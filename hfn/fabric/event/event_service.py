# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging

from hfn.fabric.event.events import BLOCK_TYPES, get_transaction_statuses

_logger = logging.getLogger(__name__)

BLOCK_LISTENER = 'block'
TX_LISTENER = 'tx'

ALL_TRANSACTIONS = 'all'


class EventListener(object):
    """A registration on an event service.

    The callback is a plain function called as ``callback(error, event_info)``,
    exactly one of the two arguments is not None.
    """

    def __init__(self, event_service, listener_type, callback, transaction_id=None):
        self._event_service = event_service
        self.listener_type = listener_type
        self.callback = callback
        self.transaction_id = transaction_id

    def matches(self, transaction_id):
        return self.transaction_id == ALL_TRANSACTIONS or self.transaction_id == transaction_id

    def on_event(self, error, event_info):
        try:
            self.callback(error, event_info)
        except Exception as e:
            _logger.error(f'on_event - {self.listener_type} listener callback failed: {e}')

    def unregister(self):
        self._event_service.unregister_event_listener(self)

    def __str__(self):
        return f'EventListener: {self.listener_type} transaction_id: {self.transaction_id}'


class EventService(object):
    """Block stream of one peer for one block type.

    The transport pushes decoded blocks with :meth:`deliver` and reports a
    broken stream with :meth:`stream_error`; starting and stopping the
    stream is left to the manager owning the service.
    """

    def __init__(self, name, peer, block_type, channel_name, transport, start_block=None, replay=False):
        if block_type not in BLOCK_TYPES:
            raise ValueError(f'Invalid block type: {block_type}')

        self._name = name
        self._peer = peer
        self._block_type = block_type
        self._channel_name = channel_name
        self._transport = transport
        self._start_block = start_block
        self._replay = replay

        self._started = False
        self._last_block_number = None
        self._block_listeners = []
        self._transaction_listeners = []
        self._stream_error_handler = None

        _logger.debug(f'EventService.const - name: {name} peer: {peer.name} block type: {block_type}')

    @property
    def name(self):
        return self._name

    @property
    def peer(self):
        return self._peer

    @property
    def block_type(self):
        return self._block_type

    @property
    def channel_name(self):
        return self._channel_name

    @property
    def start_block(self):
        return self._start_block

    @property
    def replay(self):
        return self._replay

    @property
    def last_block_number(self):
        return self._last_block_number

    def set_stream_error_handler(self, handler):
        self._stream_error_handler = handler

    def is_started(self):
        return self._started

    def has_listeners(self):
        return len(self._block_listeners) > 0 or len(self._transaction_listeners) > 0

    async def start(self, start_block=None):
        method = 'start'
        _logger.debug(f'{method} - {self._name} start block: {start_block}')

        await self._transport.start_event_service(self, start_block)
        self._started = True

    async def stop(self):
        _logger.debug(f'stop - {self._name}')
        self._started = False
        await self._transport.stop_event_service(self)

    async def close(self):
        await self.stop()
        self._block_listeners = []
        self._transaction_listeners = []

    def register_block_listener(self, callback):
        listener = EventListener(self, BLOCK_LISTENER, callback)
        self._block_listeners.append(listener)
        return listener

    def register_transaction_listener(self, transaction_id, callback):
        if not transaction_id:
            raise ValueError('Missing transaction_id parameter')

        listener = EventListener(self, TX_LISTENER, callback, transaction_id)
        self._transaction_listeners.append(listener)
        return listener

    def unregister_event_listener(self, listener):
        if listener in self._block_listeners:
            self._block_listeners.remove(listener)
        if listener in self._transaction_listeners:
            self._transaction_listeners.remove(listener)

    def deliver(self, event_info):
        """Dispatch one decoded block to the registered listeners"""
        method = 'deliver'
        _logger.debug(f'{method} - {self._name} block {event_info.block_number}')

        if event_info.event_service is None:
            event_info.event_service = self

        if self._last_block_number is None or event_info.block_number > self._last_block_number:
            self._last_block_number = event_info.block_number

        block_listeners = list(self._block_listeners)
        for listener in block_listeners:
            if listener in self._block_listeners:
                listener.on_event(None, event_info)

        if not self._transaction_listeners:
            return

        for transaction_id, status in get_transaction_statuses(event_info):
            tx_listeners = list(self._transaction_listeners)
            for listener in tx_listeners:
                if listener in self._transaction_listeners and listener.matches(transaction_id):
                    listener.on_event(None, event_info.for_transaction(transaction_id, status))

    def notify_error(self, error):
        """Deliver an error event to every registered listener"""
        _logger.debug(f'notify_error - {self._name} {error}')

        for listener in list(self._block_listeners) + list(self._transaction_listeners):
            listener.on_event(error, None)

    def stream_error(self, error):
        """The stream broke after a successful start"""
        _logger.error(f'stream_error - {self._name} {error}')

        self._started = False
        self.notify_error(error)
        if self._stream_error_handler:
            self._stream_error_handler(self, error)

    def __str__(self):
        return f'EventService: {self._name}'
