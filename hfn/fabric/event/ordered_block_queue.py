# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging

_logger = logging.getLogger(__name__)


class OrderedBlockQueue(object):
    """Hands out block events in contiguous block number order.

    The first block added, or start_block when given, fixes the next
    expected number. Older blocks are dropped and later ones are held
    until the gap before them is filled.
    """

    def __init__(self, start_block=None):
        self._queue = {}
        self._next_block_number = start_block

    @property
    def next_block_number(self):
        return self._next_block_number

    def add_block(self, event):
        block_number = event.block_number
        if not self._is_new_block_number(block_number):
            _logger.debug(f'add_block - ignoring block {block_number}, expecting {self._next_block_number}')
            return

        self._queue[block_number] = event
        if self._next_block_number is None:
            self._next_block_number = block_number

    def get_next_block(self):
        if self._next_block_number is None:
            return None

        event = self._queue.pop(self._next_block_number, None)
        if event is not None:
            self._next_block_number += 1
        return event

    def size(self):
        return len(self._queue)

    def _is_new_block_number(self, block_number):
        return self._next_block_number is None or block_number >= self._next_block_number
