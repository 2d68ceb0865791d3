# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0


class FabricError(Exception):
    pass


class DuplicatePeer(FabricError):
    pass


class DuplicateOrderer(FabricError):
    pass


class TransactionError(FabricError):
    """Failure of a transaction, carries the transaction id and, when the
    ledger reported one, the validation code and the reporting peer.
    """

    def __init__(self, message, transaction_id=None, transaction_code=None, peer=None):
        super(TransactionError, self).__init__(message)
        self.transaction_id = transaction_id
        self.transaction_code = transaction_code
        self.peer = peer


class EndorsementError(TransactionError):
    """No endorsing peer returned a valid response.

    ``responses`` holds one entry per failed peer as a dict with the
    ``peer``, ``status`` and ``message`` keys.
    """

    def __init__(self, message, responses=None, transaction_id=None):
        super(EndorsementError, self).__init__(message, transaction_id)
        self.responses = responses or []


class CommitError(TransactionError):
    """The ordering service did not accept the transaction, it will never commit."""

    def __init__(self, message, status=None, transaction_id=None):
        super(CommitError, self).__init__(message, transaction_id)
        self.status = status


class CommitTimeoutError(TransactionError):
    """The commit strategy was not satisfied in time, the outcome is unknown."""

    def __init__(self, message, peers=None, transaction_id=None):
        super(CommitTimeoutError, self).__init__(message, transaction_id)
        self.peers = peers or []


class EventServiceError(FabricError):

    def __init__(self, message, peer=None):
        super(EventServiceError, self).__init__(message)
        self.peer = peer


class QueryError(FabricError):

    def __init__(self, message, responses=None):
        super(QueryError, self).__init__(message)
        self.responses = responses or {}
