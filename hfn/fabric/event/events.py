# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging

_logger = logging.getLogger(__name__)

FULL_BLOCK = 'full'
FILTERED_BLOCK = 'filtered'
PRIVATE_BLOCK = 'private'

BLOCK_TYPES = (FULL_BLOCK, FILTERED_BLOCK, PRIVATE_BLOCK)

# common.HeaderType.ENDORSER_TRANSACTION
ENDORSER_TRANSACTION = 3
# common.BlockMetadataIndex.TRANSACTIONS_FILTER
TRANSACTIONS_FILTER = 2

VALID = 'VALID'

# protos.TxValidationCode
TX_VALIDATION_CODES = {
    0: 'VALID',
    1: 'NIL_ENVELOPE',
    2: 'BAD_PAYLOAD',
    3: 'BAD_COMMON_HEADER',
    4: 'BAD_CREATOR_SIGNATURE',
    5: 'INVALID_ENDORSER_TRANSACTION',
    6: 'INVALID_CONFIG_TRANSACTION',
    7: 'UNSUPPORTED_TX_PAYLOAD',
    8: 'BAD_PROPOSAL_TXID',
    9: 'DUPLICATE_TXID',
    10: 'ENDORSEMENT_POLICY_FAILURE',
    11: 'MVCC_READ_CONFLICT',
    12: 'PHANTOM_READ_CONFLICT',
    13: 'UNKNOWN_TX_TYPE',
    14: 'TARGET_CHAIN_NOT_FOUND',
    15: 'MARSHAL_TX_ERROR',
    16: 'NIL_TXACTION',
    17: 'EXPIRED_CHAINCODE',
    18: 'CHAINCODE_VERSION_CONFLICT',
    19: 'BAD_HEADER_EXTENSION',
    20: 'BAD_CHANNEL_HEADER',
    21: 'BAD_RESPONSE_PAYLOAD',
    22: 'BAD_RWSET',
    23: 'ILLEGAL_WRITESET',
    24: 'INVALID_WRITESET',
    25: 'INVALID_CHAINCODE',
    254: 'NOT_VALIDATED',
    255: 'INVALID_OTHER_REASON',
}


def get_status_for_code(code):
    """Validation code name for a numeric code, names are returned unchanged"""
    if isinstance(code, str):
        return code
    return TX_VALIDATION_CODES.get(code, str(code))


class EventInfo(object):
    """One decoded deliver response, or one transaction of it.

    Produced by the decoder for every block received on an event service;
    transaction listeners get a copy carrying the transaction id and status.
    """

    def __init__(self, event_service, block_number, block=None, filtered_block=None, private_data=None,
                 transaction_id=None, status=None, endorsed_by=None):
        self.event_service = event_service
        self.block_number = block_number
        self.block = block
        self.filtered_block = filtered_block
        self.private_data = private_data
        self.transaction_id = transaction_id
        self.status = status
        self.endorsed_by = endorsed_by

    def for_transaction(self, transaction_id, status):
        return EventInfo(self.event_service, self.block_number, block=self.block,
                         filtered_block=self.filtered_block, private_data=self.private_data,
                         transaction_id=transaction_id, status=status, endorsed_by=self.endorsed_by)

    def __repr__(self):
        return f'EventInfo(block_number={self.block_number}, transaction_id={self.transaction_id})'


def get_transaction_statuses(event_info):
    """(transaction id, status name) pairs of a block in block order"""
    if event_info.filtered_block is not None:
        filtered_transactions = event_info.filtered_block.get('filtered_transactions') or []
        return [(tx.get('txid'), get_status_for_code(tx.get('tx_validation_code')))
                for tx in filtered_transactions]

    if event_info.block is not None:
        statuses = []
        block = event_info.block
        codes = _get_transaction_codes(block)
        for index, envelope in enumerate(_get_envelopes(block)):
            channel_header = envelope['payload']['header']['channel_header']
            if channel_header.get('type') == ENDORSER_TRANSACTION:
                statuses.append((channel_header.get('tx_id'), get_status_for_code(codes[index])))
        return statuses

    return []


def _get_envelopes(block):
    return (block.get('data') or {}).get('data') or []


def _get_transaction_codes(block):
    metadata = (block.get('metadata') or {}).get('metadata') or []
    if len(metadata) > TRANSACTIONS_FILTER:
        return metadata[TRANSACTIONS_FILTER]
    return []


class BlockEvent(object):

    type = None

    def __init__(self, event_info):
        self._event_info = event_info
        self._transaction_events = None

    @property
    def block_number(self):
        return self._event_info.block_number

    @property
    def block_data(self):
        raise NotImplementedError

    def get_transaction_events(self):
        if self._transaction_events is None:
            self._transaction_events = self._new_transaction_events()
        return self._transaction_events

    def _new_transaction_events(self):
        raise NotImplementedError

    def __repr__(self):
        return f'{self.__class__.__name__}(block_number={self.block_number})'


class FilteredBlockEvent(BlockEvent):

    type = FILTERED_BLOCK

    @property
    def block_data(self):
        return self._event_info.filtered_block

    def _new_transaction_events(self):
        filtered_transactions = self.block_data.get('filtered_transactions') or []
        return [TransactionEvent(self, tx.get('txid'), get_status_for_code(tx.get('tx_validation_code')), tx)
                for tx in filtered_transactions]


class FullBlockEvent(BlockEvent):

    type = FULL_BLOCK

    @property
    def block_data(self):
        return self._event_info.block

    def _new_transaction_events(self):
        transaction_events = []
        codes = _get_transaction_codes(self.block_data)
        for index, envelope in enumerate(_get_envelopes(self.block_data)):
            payload = envelope['payload']
            channel_header = payload['header']['channel_header']
            if channel_header.get('type') != ENDORSER_TRANSACTION:
                continue
            transaction_events.append(
                TransactionEvent(self, channel_header.get('tx_id'), get_status_for_code(codes[index]),
                                 payload.get('data'), self._get_private_data(index)))
        return transaction_events

    def _get_private_data(self, index):
        return None


class PrivateBlockEvent(FullBlockEvent):

    type = PRIVATE_BLOCK

    @property
    def private_data(self):
        return self._event_info.private_data

    def _get_private_data(self, index):
        private_data = self._event_info.private_data or {}
        return private_data.get(index)


class TransactionEvent(object):

    def __init__(self, block_event, transaction_id, status, transaction_data, private_data=None):
        self._block_event = block_event
        self.transaction_id = transaction_id
        self.status = status
        self.transaction_data = transaction_data
        self.private_data = private_data
        self._contract_events = None

    @property
    def is_valid(self):
        return self.status == VALID

    def get_block_event(self):
        return self._block_event

    def get_contract_events(self):
        if self._contract_events is None:
            self._contract_events = [ContractEvent(self, chaincode_event)
                                     for chaincode_event in self._get_chaincode_events()]
        return self._contract_events

    def _get_chaincode_events(self):
        data = self.transaction_data or {}
        if self._block_event.type == FILTERED_BLOCK:
            chaincode_actions = (data.get('transaction_actions') or {}).get('chaincode_actions') or []
            return [action['chaincode_event'] for action in chaincode_actions if action.get('chaincode_event')]

        chaincode_events = []
        for action in data.get('actions') or []:
            events = action['payload']['action']['proposal_response_payload']['extension'].get('events')
            if isinstance(events, dict):
                chaincode_events.append(events)
            elif events:
                chaincode_events.extend(events)
        return chaincode_events

    def __repr__(self):
        return f'TransactionEvent(transaction_id={self.transaction_id}, status={self.status})'


class ContractEvent(object):

    def __init__(self, transaction_event, chaincode_event):
        self._transaction_event = transaction_event
        self.chaincode_id = chaincode_event.get('chaincode_id')
        self.event_name = chaincode_event.get('event_name')
        if transaction_event.get_block_event().type == FILTERED_BLOCK:
            # filtered blocks carry no payload
            self.payload = None
        else:
            self.payload = chaincode_event.get('payload')

    def get_transaction_event(self):
        return self._transaction_event

    def get_block_event(self):
        return self._transaction_event.get_block_event()

    def __repr__(self):
        return f'ContractEvent(chaincode_id={self.chaincode_id}, event_name={self.event_name})'


class CommitEvent(object):
    """A transaction committed, as seen by one peer"""

    def __init__(self, peer, event_info):
        self.peer = peer
        self.transaction_id = event_info.transaction_id
        self.status = event_info.status
        self.block_number = event_info.block_number
        self._event_info = event_info
        self._block_event = None

    @property
    def is_valid(self):
        return self.status == VALID

    def get_block_event(self):
        if self._block_event is None:
            self._block_event = new_block_event(self._event_info)
        return self._block_event

    def get_transaction_event(self):
        for transaction_event in self.get_block_event().get_transaction_events():
            if transaction_event.transaction_id == self.transaction_id:
                return transaction_event
        return None

    def get_contract_events(self):
        transaction_event = self.get_transaction_event()
        return transaction_event.get_contract_events() if transaction_event else []

    def __repr__(self):
        return f'CommitEvent(peer={self.peer.name}, transaction_id={self.transaction_id}, status={self.status})'


def new_block_event(event_info):
    if event_info.filtered_block is not None:
        return FilteredBlockEvent(event_info)
    if event_info.block is None:
        raise ValueError(f'No block data found: {event_info}')
    block_type = getattr(event_info.event_service, 'block_type', None)
    if event_info.private_data is not None or block_type == PRIVATE_BLOCK:
        return PrivateBlockEvent(event_info)
    return FullBlockEvent(event_info)


def new_commit_event(peer, event_info):
    return CommitEvent(peer, event_info)
