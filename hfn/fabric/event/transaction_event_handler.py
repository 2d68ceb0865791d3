# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import asyncio
import logging

from hfn.fabric.errors import CommitTimeoutError, TransactionError
from hfn.util.utils import get_config_setting

_logger = logging.getLogger(__name__)


class TransactionEventHandler(object):
    """Waits for the commit events of one submitted transaction.

    Listening starts before the transaction is sent to the orderer. The
    strategy judges the events, an invalid commit fails the transaction
    straight away and the commit listener is removed once the outcome is
    known or listening is cancelled.
    """

    def __init__(self, transaction_id, network, strategy, commit_timeout=None):
        method = 'constructor'
        _logger.debug(f'{method} - transaction_id: {transaction_id}')

        self._transaction_id = transaction_id
        self._network = network
        self._strategy = strategy
        if commit_timeout is None:
            commit_timeout = get_config_setting('commit-timeout', 300)
        self._commit_timeout = commit_timeout

        self._peers = strategy.get_peers()
        self._unresponded_peers = list(self._peers)
        self._future = None
        self._timeout_handle = None
        self._listening = False

    @property
    def transaction_id(self):
        return self._transaction_id

    async def start_listening(self):
        method = 'start_listening'
        self._future = asyncio.get_event_loop().create_future()

        if not self._peers:
            _logger.debug(f'{method} - no peers to wait for, transaction {self._transaction_id}')
            self._resolve()
            return

        self._set_listen_timeout()
        self._listening = True
        await self._network.add_commit_listener(self._on_commit, self._peers, self._transaction_id)

    async def wait_for_events(self):
        method = 'wait_for_events'
        _logger.debug(f'{method} - transaction {self._transaction_id}')

        try:
            await self._future
        finally:
            await self.cancel_listening()

    async def cancel_listening(self):
        self._cancel_timeout()
        if self._listening:
            self._listening = False
            await self._network.remove_commit_listener(self._on_commit)

    def _set_listen_timeout(self):
        if not self._commit_timeout or self._commit_timeout <= 0:
            return

        self._timeout_handle = asyncio.get_event_loop().call_later(self._commit_timeout, self._timeout_fail)

    def _cancel_timeout(self):
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _timeout_fail(self):
        self._timeout_handle = None
        names = ', '.join([peer.name for peer in self._unresponded_peers])
        message = f'Event strategy not satisfied within the timeout period. No response received from peers: {names}'
        _logger.error(f'_timeout_fail - transaction {self._transaction_id}: {message}')
        self._fail(CommitTimeoutError(message, peers=list(self._unresponded_peers),
                                      transaction_id=self._transaction_id))

    def _on_commit(self, error, commit_event):
        if self._is_done():
            return

        peer = error.peer if error is not None else commit_event.peer
        if peer not in self._unresponded_peers:
            # only the first response of a peer counts
            return
        self._unresponded_peers.remove(peer)

        if error is not None:
            _logger.warning(f'_on_commit - peer {peer.name} error: {error}')
            self._strategy.error_received(self._resolve, self._fail)
        elif not commit_event.is_valid:
            message = f'Commit of transaction {self._transaction_id} failed on peer {peer.name} ' \
                      f'with status {commit_event.status}'
            self._fail(TransactionError(message, transaction_id=self._transaction_id,
                                        transaction_code=commit_event.status, peer=peer))
        else:
            _logger.debug(f'_on_commit - peer {peer.name} committed transaction {self._transaction_id}')
            self._strategy.event_received(self._resolve, self._fail)

    def _is_done(self):
        return self._future is None or self._future.done()

    def _resolve(self):
        self._cancel_timeout()
        if not self._future.done():
            self._future.set_result(None)

    def _fail(self, error):
        self._cancel_timeout()
        if isinstance(error, TransactionError) and error.transaction_id is None:
            error.transaction_id = self._transaction_id
        if not self._future.done():
            self._future.set_exception(error)
