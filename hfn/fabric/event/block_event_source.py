# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import asyncio
import contextvars
import logging

from hfn.fabric.event.events import FULL_BLOCK, new_block_event
from hfn.fabric.event.listener_session import add_listener_to_list, remove_listener_from_list
from hfn.fabric.event.ordered_block_queue import OrderedBlockQueue
from hfn.util.utils import call_listener

_logger = logging.getLogger(__name__)

# the notifier whose items the current task, or a task it spawned, is processing
_running_notifier = contextvars.ContextVar('_running_notifier', default=None)


class AsyncNotifier(object):
    """Drains a source one item at a time in a background task.

    ``notify()`` may be called any number of times, items are processed
    sequentially, each one fully before the next is read.
    """

    def __init__(self, read_next, process):
        self._read_next = read_next
        self._process = process
        self._task = None
        self._stopped = False

    def notify(self):
        if self._stopped:
            return
        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self._run())

    async def _run(self):
        _running_notifier.set(self)
        while not self._stopped:
            item = self._read_next()
            if item is None:
                break
            await self._process(item)

    def cancel(self):
        self._stopped = True
        task = self._task
        self._task = None
        # cancelled from a listener, the running item finishes and the loop exits
        if task is not None and _running_notifier.get() is not self:
            task.cancel()


class BlockEventSource(object):
    """In-order block events of one event service for a set of listeners.

    The event service is acquired when the first listener is added and
    released again when the last one is removed.
    """

    def __init__(self, event_service_manager, peer, block_type=FULL_BLOCK, start_block=None):
        self._event_service_manager = event_service_manager
        self._peer = peer
        self._block_type = block_type
        self._start_block = start_block

        self._listeners = []
        self._event_service = None
        self._event_listener = None
        self._lock = None
        self._closed = False

        self._new_queue()

    @property
    def block_type(self):
        return self._block_type

    @property
    def event_service(self):
        return self._event_service

    async def add_block_listener(self, listener):
        add_listener_to_list(self._listeners, listener)
        await self._start()
        return listener

    async def remove_block_listener(self, listener):
        remove_listener_from_list(self._listeners, listener)
        if not self._listeners and not self._closed:
            await self._release()

    async def close(self):
        method = 'close'
        _logger.debug(f'{method} - start')

        self._closed = True
        self._listeners = []
        self._notifier.cancel()

        if self._event_listener is not None:
            self._event_listener.unregister()
            self._event_listener = None

        if self._event_service is not None:
            event_service = self._event_service
            self._event_service = None
            await self._event_service_manager.release(event_service)

    def _new_queue(self):
        self._block_queue = OrderedBlockQueue(self._start_block)
        self._notifier = AsyncNotifier(self._block_queue.get_next_block, self._notify_listeners)

    def _get_lock(self):
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def _start(self):
        async with self._get_lock():
            if self._closed:
                raise ValueError('Block event source is closed')

            if self._event_service is None:
                replay = self._start_block is not None
                self._event_service = await self._event_service_manager.acquire(
                    self._peer, self._block_type, start_block=self._start_block, replay=replay, start=False)
                # register before start so no event is missed
                self._event_listener = self._event_service.register_block_listener(self._block_event_callback)
            event_service = self._event_service

        await self._event_service_manager.start_event_service(event_service)

    async def _release(self):
        method = '_release'
        async with self._get_lock():
            if self._listeners or self._event_service is None:
                return

            _logger.debug(f'{method} - releasing {self._block_type} event service of {self._peer.name}')
            self._notifier.cancel()
            self._event_listener.unregister()
            self._event_listener = None
            event_service = self._event_service
            self._event_service = None
            # a later service starts from its own first block
            self._new_queue()

            await self._event_service_manager.release(event_service)

    def _block_event_callback(self, error, event_info):
        if error is not None:
            _logger.warning(f'_block_event_callback - event service error: {error}')
            return

        self._block_queue.add_block(new_block_event(event_info))
        if self._block_queue.size() > 0:
            self._notifier.notify()

    async def _notify_listeners(self, block_event):
        listeners = list(self._listeners)

        async def notify(listener):
            # may have been removed by a listener called earlier
            if listener not in self._listeners:
                return
            try:
                await call_listener(listener, block_event)
            except Exception as e:
                _logger.error(f'_notify_listeners - error notifying listener of block '
                              f'{block_event.block_number}: {e}')

        await asyncio.gather(*[notify(listener) for listener in listeners])
