# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
"""Query handlers pick the peers a query is evaluated on.

A chaincode error (status 400 and above) is the answer to the query and is
raised at once, transport failures move on to the next peer.
"""
import abc
import logging

from hfn.fabric.errors import QueryError

_logger = logging.getLogger(__name__)


class QueryHandler(abc.ABC):

    def __init__(self, peers):
        self._peers = list(peers)

    @property
    def peers(self):
        return list(self._peers)

    @abc.abstractmethod
    def _start_index(self):
        pass

    def _on_success(self, index):
        pass

    async def evaluate(self, query, peers=None):
        """Evaluate the query, trying the peers in turn

        Args:
            query: :class:`~hfn.fabric.query.query.Query`
            peers: use these peers instead of the handler's own
        Returns:
            the payload of the first successful response
        """
        method = 'evaluate'
        candidates = list(peers) if peers else self._peers
        if not candidates:
            raise QueryError('No peers available to query')

        start_index = 0 if peers else self._start_index()
        errors = {}
        for offset in range(len(candidates)):
            index = (start_index + offset) % len(candidates)
            peer = candidates[index]

            results = await query.evaluate([peer])
            response = results[peer.name]
            if response.error is not None:
                _logger.warning(f'{method} - query failed on peer {peer.name}: {response.error}')
                errors[peer.name] = response
                continue

            if response.status is not None and response.status >= 400:
                _logger.debug(f'{method} - peer {peer.name} returned error status {response.status}')
                raise QueryError(response.message, responses={peer.name: response})

            if not peers:
                self._on_success(index)
            return response.payload

        messages = ['Query failed. Errors:']
        for name, response in errors.items():
            messages.append(f'peer={name}, message={response.message}')
        raise QueryError('\n    '.join(messages), responses=errors)


class SingleQueryHandler(QueryHandler):
    """Keeps to one peer until it fails"""

    def __init__(self, peers):
        super(SingleQueryHandler, self).__init__(peers)
        self._current_index = 0

    def _start_index(self):
        return self._current_index

    def _on_success(self, index):
        self._current_index = index


class RoundRobinQueryHandler(QueryHandler):
    """Starts each query on the next peer"""

    def __init__(self, peers):
        super(RoundRobinQueryHandler, self).__init__(peers)
        self._current_index = -1

    def _start_index(self):
        self._current_index = (self._current_index + 1) % max(len(self._peers), 1)
        return self._current_index


def get_organization_peers(network):
    return network.channel.get_query_peers(network.mspid)


def get_preferred_peers(network):
    peers = get_organization_peers(network)
    if len(peers) == 0:
        peers = network.channel.get_query_peers()
    return peers


class QueryHandlerFactory(object):

    def __init__(self, name, handler_class, get_peers):
        self.name = name
        self._handler_class = handler_class
        self._get_peers = get_peers

    def __call__(self, network):
        return self._handler_class(self._get_peers(network))

    def __str__(self):
        return self.name


MSPID_SCOPE_SINGLE = QueryHandlerFactory('MSPID_SCOPE_SINGLE', SingleQueryHandler, get_organization_peers)
MSPID_SCOPE_ROUND_ROBIN = QueryHandlerFactory('MSPID_SCOPE_ROUND_ROBIN', RoundRobinQueryHandler,
                                              get_organization_peers)
PREFER_MSPID_SCOPE_SINGLE = QueryHandlerFactory('PREFER_MSPID_SCOPE_SINGLE', SingleQueryHandler,
                                                get_preferred_peers)
PREFER_MSPID_SCOPE_ROUND_ROBIN = QueryHandlerFactory('PREFER_MSPID_SCOPE_ROUND_ROBIN', RoundRobinQueryHandler,
                                                     get_preferred_peers)

QUERY_HANDLERS = {
    factory.name: factory for factory in (
        MSPID_SCOPE_SINGLE, MSPID_SCOPE_ROUND_ROBIN,
        PREFER_MSPID_SCOPE_SINGLE, PREFER_MSPID_SCOPE_ROUND_ROBIN,
    )
}


def get_query_handler_factory(strategy):
    if isinstance(strategy, str):
        if strategy not in QUERY_HANDLERS:
            raise ValueError(f'Unknown query handler strategy: {strategy}')
        return QUERY_HANDLERS[strategy]

    if callable(strategy):
        return strategy

    raise ValueError(f'Invalid query handler strategy: {strategy}')
