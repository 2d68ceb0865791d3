# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import asyncio
import inspect
import logging
from functools import partial

from hfn.fabric.errors import EventServiceError
from hfn.fabric.event.events import FILTERED_BLOCK, new_commit_event

_logger = logging.getLogger(__name__)


class CommitListenerSession(object):
    """Commit events of one transaction from a set of peers.

    The listener is called as ``listener(error, commit_event)``, once per
    peer with the commit event, or with an :class:`EventServiceError`
    naming the peer when its event service fails.
    """

    def __init__(self, listener, event_service_manager, peers, transaction_id):
        self._listener = listener
        self._event_service_manager = event_service_manager
        self._peers = list(peers)
        self._transaction_id = transaction_id
        self._event_services = []
        self._event_listeners = []
        self._pending = set()

    async def start(self):
        method = 'start'
        _logger.debug(f'{method} - transaction {self._transaction_id} peers: {[p.name for p in self._peers]}')

        for peer in self._peers:
            event_service = await self._event_service_manager.acquire(peer, FILTERED_BLOCK, start=False)
            self._event_services.append(event_service)
            # register before start so no event is missed
            self._event_listeners.append(event_service.register_transaction_listener(
                self._transaction_id, partial(self._on_event, peer)))

        await asyncio.gather(*[self._event_service_manager.start_event_service(event_service)
                               for event_service in self._event_services])

    async def close(self):
        for event_listener in self._event_listeners:
            event_listener.unregister()
        self._event_listeners = []

        event_services = self._event_services
        self._event_services = []
        for event_service in event_services:
            await self._event_service_manager.release(event_service)

    def _on_event(self, peer, error, event_info):
        if error is not None:
            if not isinstance(error, EventServiceError) or error.peer is not peer:
                error = EventServiceError(f'Event service error from peer {peer.name}: {error}', peer=peer)
            self._notify(error, None)
        else:
            self._notify(None, new_commit_event(peer, event_info))

    def _notify(self, error, commit_event):
        result = self._listener(error, commit_event)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task):
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            _logger.error(f'_on_listener_done - commit listener failed: {task.exception()}')
