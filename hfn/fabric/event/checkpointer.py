# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import abc
import json
import logging
import os

_logger = logging.getLogger(__name__)


class Checkpointer(abc.ABC):
    """Progress of one listener through the ledger.

    The block number is the next block to process. The transaction ids
    are those already delivered from that block, setting a new block
    number clears them.
    """

    @abc.abstractmethod
    async def get_block_number(self):
        pass

    @abc.abstractmethod
    async def set_block_number(self, block_number):
        pass

    @abc.abstractmethod
    async def add_transaction_id(self, transaction_id):
        pass

    @abc.abstractmethod
    async def get_transaction_ids(self):
        pass


class InMemoryCheckpointer(Checkpointer):

    def __init__(self):
        self._block_number = None
        self._transaction_ids = set()

    async def get_block_number(self):
        return self._block_number

    async def set_block_number(self, block_number):
        self._block_number = block_number
        self._transaction_ids = set()

    async def add_transaction_id(self, transaction_id):
        self._transaction_ids.add(transaction_id)

    async def get_transaction_ids(self):
        return set(self._transaction_ids)


class FileCheckpointer(InMemoryCheckpointer):
    """Checkpointer persisted to a JSON file after every update

    Raises:
        ValueError: the file exists but does not hold a checkpoint
        OSError: the file cannot be written
    """

    def __init__(self, path):
        super(FileCheckpointer, self).__init__()

        if not path:
            raise ValueError('Missing path parameter')

        self._path = path
        self._load()
        self._save()

        _logger.debug(f'FileCheckpointer.const - path: {path} block number: {self._block_number}')

    @property
    def path(self):
        return self._path

    async def set_block_number(self, block_number):
        await super(FileCheckpointer, self).set_block_number(block_number)
        self._save()

    async def add_transaction_id(self, transaction_id):
        await super(FileCheckpointer, self).add_transaction_id(transaction_id)
        self._save()

    def _load(self):
        if not os.path.exists(self._path):
            return

        with open(self._path, 'r') as f:
            content = f.read()

        try:
            state = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f'Invalid checkpoint data in {self._path}: {e}') from e

        if not isinstance(state, dict):
            raise ValueError(f'Invalid checkpoint data in {self._path}')

        block_number = state.get('blockNumber')
        self._block_number = int(block_number) if block_number is not None else None
        self._transaction_ids = set(state.get('transactionIds') or [])

    def _save(self):
        state = {
            'blockNumber': self._block_number,
            'transactionIds': sorted(self._transaction_ids),
        }
        with open(self._path, 'w') as f:
            json.dump(state, f)
