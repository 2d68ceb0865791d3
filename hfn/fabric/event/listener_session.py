# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging
from dataclasses import dataclass
from typing import Optional

from hfn.fabric.event.checkpointer import Checkpointer
from hfn.fabric.event.events import BLOCK_TYPES, FULL_BLOCK
from hfn.fabric.event.listeners import block_from_contract_listener

_logger = logging.getLogger(__name__)


@dataclass
class ListenerOptions:
    """How a block or contract listener receives events.

    A checkpointer block number takes precedence over ``start_block``. Any
    start block gives the listener its own replay event service, without
    one the shared realtime service for ``type`` is used.
    """
    type: str = FULL_BLOCK
    start_block: Optional[int] = None
    checkpointer: Optional[Checkpointer] = None

    def __post_init__(self):
        if self.type not in BLOCK_TYPES:
            raise ValueError(f'Invalid listener type: {self.type}')
        if self.start_block is not None and (isinstance(self.start_block, bool)
                                             or not isinstance(self.start_block, int)
                                             or self.start_block < 0):
            raise ValueError(f'Invalid start block: {self.start_block}')


async def add_listener(listener, listener_sessions, session_supplier):
    """Start a session for the listener unless it already has one"""
    if listener not in listener_sessions:
        session = await session_supplier()
        if listener in listener_sessions:
            return listener
        listener_sessions[listener] = session
        try:
            await session.start()
        except Exception:
            listener_sessions.pop(listener, None)
            await session.close()
            raise
    return listener


async def remove_listener(listener, listener_sessions):
    session = listener_sessions.pop(listener, None)
    if session is not None:
        await session.close()


def add_listener_to_list(listeners, listener):
    if listener not in listeners:
        listeners.append(listener)


def remove_listener_from_list(listeners, listener):
    if listener in listeners:
        listeners.remove(listener)


class SharedBlockListenerSession(object):

    def __init__(self, listener, block_source):
        self._listener = listener
        self._block_source = block_source

    async def start(self):
        await self._block_source.add_block_listener(self._listener)

    async def close(self):
        await self._block_source.remove_block_listener(self._listener)


class IsolatedBlockListenerSession(object):
    """A listener with a block source and replay event service of its own"""

    def __init__(self, listener, block_source_supplier):
        self._listener = listener
        self._block_source_supplier = block_source_supplier
        self._block_source = None

    async def start(self):
        self._block_source = self._block_source_supplier()
        await self._block_source.add_block_listener(self._listener)

    async def close(self):
        if self._block_source is not None:
            await self._block_source.close()
            self._block_source = None


class ContractListenerSession(object):
    """Contract events of one chaincode, delivered through a block listener"""

    def __init__(self, listener, chaincode_id, network, options, event_name=None):
        self._listener = listener
        self._chaincode_id = chaincode_id
        self._network = network
        self._options = options
        self._event_name = event_name
        self._block_listener = None
        self._closed = False

    async def start(self):
        checkpointer = self._options.checkpointer
        start_block = self._options.start_block
        if checkpointer is not None:
            checkpoint_block = await checkpointer.get_block_number()
            if checkpoint_block is not None:
                start_block = checkpoint_block

        self._block_listener = block_from_contract_listener(
            self._listener, self._chaincode_id, event_name=self._event_name,
            checkpointer=checkpointer, is_active=self.is_active)

        _logger.debug(f'start - contract listener {self._chaincode_id} start block: {start_block}')
        await self._network.add_block_listener(
            self._block_listener, ListenerOptions(type=self._options.type, start_block=start_block))

    def is_active(self):
        return not self._closed

    async def close(self):
        self._closed = True
        if self._block_listener is not None:
            await self._network.remove_block_listener(self._block_listener)
