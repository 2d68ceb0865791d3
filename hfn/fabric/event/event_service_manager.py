# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import asyncio
import logging

from hfn.fabric.errors import EventServiceError
from hfn.fabric.event.event_service import EventService
from hfn.fabric.event.events import FILTERED_BLOCK
from hfn.util.utils import get_config_setting

_logger = logging.getLogger(__name__)


class EventServiceManager(object):
    """Owns the event services of one network.

    Shared services are keyed by peer and block type and live while they
    have consumers; replay services belong to the single consumer that
    acquired them.
    """

    def __init__(self, channel_name, transport, reconnect_delay=None):
        self._channel_name = channel_name
        self._transport = transport
        if reconnect_delay is None:
            reconnect_delay = get_config_setting('event-reconnect-delay', 0)
        self._reconnect_delay = reconnect_delay

        self._services = {}
        self._consumers = {}
        self._start_tasks = {}
        self._reconnect_tasks = set()
        self._replay_count = 0

        _logger.debug(f'EventServiceManager.const - channel: {channel_name}')

    @property
    def channel_name(self):
        return self._channel_name

    async def acquire(self, peer, block_type=FILTERED_BLOCK, start_block=None, replay=False, start=True):
        """Get an event service for the peer, started unless start is False

        A replay service is never shared, it is started at start_block.
        """
        method = 'acquire'
        _logger.debug(f'{method} - start - peer: {peer.name} block type: {block_type} replay: {replay}')

        if replay:
            self._replay_count += 1
            name = f'{peer.name}-{block_type}-replay-{self._replay_count}'
            service = self._new_service(name, peer, block_type, start_block, replay=True)
        else:
            key = (peer.name, block_type)
            service = self._services.get(key)
            if service is None:
                service = self._new_service(f'{peer.name}-{block_type}', peer, block_type, None)
                self._services[key] = service

        self._consumers[service] = self._consumers.get(service, 0) + 1

        if start:
            await self.start_event_service(service)

        return service

    def _new_service(self, name, peer, block_type, start_block, replay=False):
        service = EventService(name, peer, block_type, self._channel_name, self._transport,
                               start_block=start_block, replay=replay)
        service.set_stream_error_handler(self._on_stream_error)
        return service

    async def start_event_service(self, service):
        """Start the service unless it is running, concurrent callers share one start

        A start failure is delivered to the service listeners as an error
        event and leaves the service stopped.
        """
        if service.is_started():
            return

        task = self._start_tasks.get(service)
        if task is None:
            task = asyncio.ensure_future(self._start(service, service.start_block))
            self._start_tasks[service] = task

        await task

    async def _start(self, service, start_block):
        method = '_start'
        try:
            await service.start(start_block)
            _logger.debug(f'{method} - {service.name} started at {start_block}')
        except Exception as e:
            _logger.error(f'{method} - {service.name} failed to start: {e}')
            error = e if isinstance(e, EventServiceError) else EventServiceError(
                f'Event service {service.name} failed to start: {e}', peer=service.peer)
            service.notify_error(error)
        finally:
            self._start_tasks.pop(service, None)

    def _on_stream_error(self, service, error):
        if service not in self._consumers:
            return

        task = asyncio.ensure_future(self.reconnect(service))
        self._reconnect_tasks.add(task)
        task.add_done_callback(self._reconnect_tasks.discard)

    async def reconnect(self, service):
        """Restart a broken service after the last block it delivered"""
        method = 'reconnect'

        if self._reconnect_delay:
            await asyncio.sleep(self._reconnect_delay)

        if service not in self._consumers or service.is_started():
            return

        if service.last_block_number is not None:
            start_block = service.last_block_number + 1
        else:
            start_block = service.start_block

        _logger.info(f'{method} - restarting {service.name} at block {start_block}')

        task = self._start_tasks.get(service)
        if task is None:
            task = asyncio.ensure_future(self._start(service, start_block))
            self._start_tasks[service] = task

        await task

    async def release(self, service):
        """Drop one consumer, the last one stops the service"""
        count = self._consumers.get(service, 0) - 1
        if count > 0:
            self._consumers[service] = count
            return

        self._consumers.pop(service, None)
        key = (service.peer.name, service.block_type)
        if self._services.get(key) is service:
            del self._services[key]

        _logger.debug(f'release - closing {service.name}')
        await service.close()

    def is_active(self, service):
        return service in self._consumers

    async def close(self):
        for task in list(self._reconnect_tasks):
            task.cancel()
        self._reconnect_tasks.clear()

        services = list(self._consumers)
        self._consumers.clear()
        self._services.clear()
        for service in services:
            await service.close()
