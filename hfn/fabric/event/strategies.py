# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import abc
import logging

from hfn.fabric.errors import TransactionError

_logger = logging.getLogger(__name__)


class TransactionEventStrategy(abc.ABC):
    """Decides when enough commit events were seen for a transaction.

    Each peer reports once, either an event or an error, and the strategy
    calls ``success_fn()`` or ``fail_fn(error)`` when the outcome is known.
    """

    def __init__(self, peers):
        if not peers:
            raise ValueError('No peers for strategy')

        self._peers = list(peers)
        self._counts = {
            'success': 0,
            'fail': 0,
            'expected': len(self._peers),
        }

    def get_peers(self):
        return list(self._peers)

    def event_received(self, success_fn, fail_fn):
        self._counts['success'] += 1
        self.check_completion(self._counts, success_fn, fail_fn)

    def error_received(self, success_fn, fail_fn):
        self._counts['fail'] += 1
        self.check_completion(self._counts, success_fn, fail_fn)

    @abc.abstractmethod
    def check_completion(self, counts, success_fn, fail_fn):
        pass


class AllForTxStrategy(TransactionEventStrategy):
    """Wait for every peer to respond, succeed if at least one committed"""

    def check_completion(self, counts, success_fn, fail_fn):
        _logger.debug(f'check_completion - counts: {counts}')

        is_all_responses_received = counts['success'] + counts['fail'] == counts['expected']
        if is_all_responses_received:
            if counts['success'] > 0:
                success_fn()
            else:
                fail_fn(TransactionError('No successful events received'))


class AnyForTxStrategy(TransactionEventStrategy):
    """Succeed on the first commit event"""

    def check_completion(self, counts, success_fn, fail_fn):
        _logger.debug(f'check_completion - counts: {counts}')

        is_all_responses_received = counts['fail'] == counts['expected']
        if counts['success'] > 0:
            success_fn()
        elif is_all_responses_received:
            fail_fn(TransactionError('No successful events received'))
