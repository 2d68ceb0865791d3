# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging

from hfn.fabric.errors import CommitError
from hfn.fabric.event.default_event_handler_strategies import get_event_handler_factory
from hfn.fabric.query.query import Query
from hfn.fabric.transaction.commit import Commit, SUCCESS
from hfn.fabric.transaction.endorsement import Endorsement, Proposal
from hfn.fabric.transaction.transaction_id import TransactionID
from hfn.util.utils import proto_b

_logger = logging.getLogger(__name__)


class Transaction(object):
    """One invocation of a chaincode function.

    The transaction id is generated when the transaction is created, it can
    be read before sending. A transaction is sent at most once, either with
    :meth:`submit` or with :meth:`evaluate`.
    """

    def __init__(self, contract, name):
        method = f'constructor[{name}]'
        _logger.debug(f'{method} - start')

        if not name:
            raise ValueError('Missing transaction name parameter')

        self._contract = contract
        self._name = name
        self._network = contract.network
        self._identity = self._network.identity
        self._transaction_id = TransactionID(self._identity)
        self._transient_map = None
        self._endorsing_peers = None
        self._endorsing_orgs = None
        self._event_handler_factory = None
        self._sent = False

    @property
    def name(self):
        return self._name

    @property
    def transaction_id(self):
        return self._transaction_id.transaction_id

    def get_name(self):
        return self._name

    def get_transaction_id(self):
        return self._transaction_id.transaction_id

    def set_transient(self, transient_map):
        self._transient_map = transient_map
        return self

    def set_endorsing_peers(self, peers):
        """Endorse on these peers only, discovery is not used"""
        self._endorsing_peers = self._network.channel.get_targets(peers)
        self._endorsing_orgs = None
        return self

    def set_endorsing_organizations(self, *mspids):
        """Endorse on the peers of these organizations

        With discovery the organizations are required in the endorsement
        plan, otherwise their peers are the targets.
        """
        if not mspids:
            raise ValueError('Missing endorsing organizations parameter')

        self._endorsing_orgs = list(mspids)
        self._endorsing_peers = None
        return self

    def set_event_handler(self, strategy):
        """Commit strategy for this transaction

        Args:
            strategy: a strategy value such as ``AllForTxStrategy(peers)``, an
                event handler factory or a factory name
        """
        self._event_handler_factory = get_event_handler_factory(strategy)
        return self

    def _set_sent(self):
        if self._sent:
            raise ValueError(f'Transaction {self.transaction_id} has already been sent')
        self._sent = True

    def _new_proposal(self, args):
        return Proposal(
            channel_name=self._network.channel.name,
            chaincode_id=self._contract.chaincode_id,
            fcn=self._name,
            tx_id=self._transaction_id,
            args=[proto_b(arg) for arg in args],
            transient_map=self._transient_map,
        )

    def _get_endorsement_targets(self, method):
        channel = self._network.channel

        if self._endorsing_peers:
            _logger.debug(f'{method} - user has assigned targets')
            return self._endorsing_peers, None

        if channel.discovery_handler is not None:
            _logger.debug(f'{method} - discovery handler will be used for endorsing')
            return None, channel.discovery_handler

        if self._endorsing_orgs:
            _logger.debug(f'{method} - user has assigned endorsing orgs {self._endorsing_orgs}')
            targets = []
            for mspid in self._endorsing_orgs:
                targets.extend(channel.get_endorsers(mspid))
            return targets, None

        _logger.debug(f'{method} - targets will default to all that are assigned to this channel')
        return channel.get_endorsers(), None

    async def submit(self, *args):
        """Endorse the transaction, send it to the orderer and wait for it to commit

        Returns:
            bytes: payload of the first valid endorsement
        Raises:
            EndorsementError: no peer endorsed the transaction
            CommitError: the orderer did not accept the transaction
            TransactionError: the transaction was committed as invalid
            CommitTimeoutError: the commit strategy was not satisfied in time
        """
        method = f'submit[{self._name}]'
        _logger.debug(f'{method} - start')

        self._set_sent()

        network = self._network
        options = network.gateway_options
        transport = network.transport

        proposal = self._new_proposal(args)
        signed_proposal = self._identity.sign_proposal(proposal)

        # ------- S E N D   P R O P O S A L
        targets, handler = self._get_endorsement_targets(method)
        required_orgs = self._endorsing_orgs if handler is not None else None
        if handler is None and not targets:
            raise ValueError(f'No endorsing peers found for transaction {self.transaction_id}')

        endorsement = Endorsement(proposal, transport, options.get('endorse-timeout'))
        result = await endorsement.send(signed_proposal, targets=targets, handler=handler,
                                        required_orgs=required_orgs)

        # ------- E V E N T   M O N I T O R
        factory = self._event_handler_factory or network.event_handler_factory
        event_handler = factory(self.transaction_id, network, options.get('commit-timeout'))
        await event_handler.start_listening()

        # -----  C O M M I T   E N D O R S E M E N T
        signed_envelope = self._identity.sign_transaction(proposal, result.valid)
        commit = Commit(self.transaction_id, transport, options.get('request-timeout', 30000) / 1000)
        try:
            if handler is not None:
                _logger.debug(f'{method} - use discovery to commit')
                commit_response = await commit.send(signed_envelope, handler=handler)
            else:
                _logger.debug(f'{method} - use the orderers assigned to the channel')
                commit_response = await commit.send(signed_envelope, targets=network.channel.get_committers())
        except Exception:
            await event_handler.cancel_listening()
            raise

        _logger.debug(f'{method} - commit response {commit_response}')

        status = commit_response.get('status')
        if status != SUCCESS:
            msg = f'Failed to commit transaction {self.transaction_id}, orderer response status: {status}'
            _logger.error(f'{method} - {msg}')
            await event_handler.cancel_listening()
            raise CommitError(msg, status=status, transaction_id=self.transaction_id)

        _logger.debug(f'{method} - wait for the transaction to be committed on the peer')
        await event_handler.wait_for_events()

        return result.payload

    async def evaluate(self, *args):
        """Run the transaction function on one peer without committing it

        Returns:
            bytes: payload of the query response
        """
        method = f'evaluate[{self._name}]'
        _logger.debug(f'{method} - start')

        self._set_sent()

        network = self._network
        proposal = self._new_proposal(args)
        signed_proposal = self._identity.sign_proposal(proposal)

        query = Query(signed_proposal, network.transport, network.gateway_options.get('query-timeout'))

        _logger.debug(f'{method} - handler will send')
        return await network.query_handler.evaluate(query, peers=self._endorsing_peers)
