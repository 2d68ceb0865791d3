# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import json
import logging
import re

from hfn.fabric.errors import DuplicatePeer, DuplicateOrderer
from ..orderer import Orderer
from ..organization import Organization
from ..peer import Peer

_logger = logging.getLogger(__name__)

ENDORSING_PEER_ROLE = 'endorsingPeer'
CHAINCODE_QUERY_ROLE = 'chaincodeQuery'
LEDGER_QUERY_ROLE = 'ledgerQuery'
EVENT_SOURCE_ROLE = 'eventSource'

PEER_ROLES = (ENDORSING_PEER_ROLE, CHAINCODE_QUERY_ROLE, LEDGER_QUERY_ROLE, EVENT_SOURCE_ROLE)


class Channel(object):
    """The class represents of the channel.

    A client-side-only view of the channel membership: the peers with their
    organization and roles, the orderers, and an optional discovery handler
    used as endorsement and commit target.
    """

    def __init__(self, name):
        """Construct channel instance

        Args:
            name (str): a unique name serves as the identifier of the channel
        """
        pat = "^[a-z][a-z0-9.-]*$"  # matching patter for regex checker
        if not name or not re.match(pat, name):
            raise ValueError(f'Failed to create Channel. channel name should'
                             f' match Regex {pat}, but got {name}')

        self._name = name
        self._channel_peers = {}
        self._orderers = {}
        self._organizations = {}
        self._discovery_handler = None

        _logger.debug(f'Constructed Channel instance name - {self._name}')

    @property
    def name(self):
        return self._name

    @property
    def discovery_handler(self):
        return self._discovery_handler

    def set_discovery_handler(self, handler):
        """Use an endorsement plan handler from the discovery service

        The handler is opaque, it must provide ``endorse()`` and ``commit()``
        coroutines.
        """
        self._discovery_handler = handler

    async def close(self):
        _logger.debug('close - closing connections')
        for channel_peer in self._channel_peers.values():
            await channel_peer.close()

        for orderer in self._orderers.values():
            await orderer.close()

    def add_peer(self, peer, mspid=None, roles=None, replace=False):
        name = peer.name

        if name in self._channel_peers:
            if replace:
                _logger.debug(f'removing old peer  --name: {name} --URL: {peer.url}')
                self.remove_peer(self._channel_peers[name].peer)
            else:
                msg = f'Peer {name} already exists'
                _logger.error(msg)
                raise DuplicatePeer(msg)

        _logger.debug(f'adding a new peer  --name: {name} --URL: {peer.url}')

        channel_peer = ChannelPeer(mspid or peer.mspid, self, peer, roles)
        self._channel_peers[name] = channel_peer

        if channel_peer.mspid:
            organization = self._organizations.get(channel_peer.mspid)
            if organization is None:
                organization = Organization(channel_peer.mspid)
                self._organizations[channel_peer.mspid] = organization
            organization.add_peer(channel_peer)

        return channel_peer

    def remove_peer(self, peer):
        channel_peer = self._channel_peers.pop(peer.name, None)
        if channel_peer and channel_peer.mspid in self._organizations:
            self._organizations[channel_peer.mspid].remove_peer(channel_peer)

    def get_channel_peer(self, name):
        channel_peer = self._channel_peers.get(name)

        if not channel_peer:
            raise ValueError(f'Peer with name "{name}" not assigned to this channel')

        return channel_peer

    def get_peer(self, name):
        return self.get_channel_peer(name).peer

    def get_channel_peers(self):
        _logger.debug(f'get_channel_peers - list size: {len(self._channel_peers)}')
        return list(self._channel_peers.values())

    def get_organizations(self):
        return [{'id': mspid} for mspid in self._organizations]

    def _get_peers_in_role(self, role, mspid=None):
        if mspid:
            organization = self._organizations.get(mspid)
            channel_peers = organization.get_peers() if organization else []
        else:
            channel_peers = self._channel_peers.values()

        return [channel_peer.peer for channel_peer in channel_peers if channel_peer.is_in_role(role)]

    def get_endorsers(self, mspid=None):
        """Peers in the endorsing role, optionally restricted to one organization"""
        return self._get_peers_in_role(ENDORSING_PEER_ROLE, mspid)

    def get_query_peers(self, mspid=None):
        return self._get_peers_in_role(CHAINCODE_QUERY_ROLE, mspid)

    def get_event_peers(self, mspid=None):
        return self._get_peers_in_role(EVENT_SOURCE_ROLE, mspid)

    def add_orderer(self, orderer, replace=False):
        name = orderer.name

        if name in self._orderers:
            if replace:
                self.remove_orderer(self._orderers[name])
            else:
                msg = f'Orderer {name} already exists'
                _logger.error(msg)
                raise DuplicateOrderer(msg)

        self._orderers[name] = orderer

    def remove_orderer(self, orderer):
        self._orderers.pop(orderer.name, None)

    def get_orderer(self, name):
        orderer = self._orderers.get(name)

        if not orderer:
            raise ValueError(f'Orderer with name "{name}" not assigned to this channel')

        return orderer

    def get_committers(self):
        _logger.debug(f'get_committers - list size: {len(self._orderers)}')
        return list(self._orderers.values())

    def get_targets(self, request_targets, role=ENDORSING_PEER_ROLE):
        """Resolve peer names, Peer or ChannelPeer objects into peers

        Without request targets all the peers in the role are returned.
        """
        targets = []

        if request_targets:
            targets_temp = request_targets
            if not isinstance(request_targets, (list, tuple)):
                targets_temp = [request_targets]

            for target_peer in targets_temp:
                if isinstance(target_peer, str):
                    targets.append(self.get_peer(target_peer))
                elif isinstance(target_peer, ChannelPeer):
                    targets.append(target_peer.peer)
                elif isinstance(target_peer, Peer):
                    targets.append(target_peer)
                else:
                    raise ValueError('Target peer is not a valid peer object instance')
        else:
            targets = self._get_peers_in_role(role)

        if len(targets) == 0:
            raise ValueError('targets parameter not specified and no peers are set on this Channel instance')

        return targets

    def get_target_committers(self, request_orderers):
        committers = []
        for request_orderer in request_orderers:
            if isinstance(request_orderer, str):
                committers.append(self.get_orderer(request_orderer))
            elif isinstance(request_orderer, Orderer):
                committers.append(request_orderer)
            else:
                raise ValueError('Orderer is not a valid orderer object instance')

        return committers

    def __str__(self):
        orderers = [str(orderer) for orderer in self._orderers.values()]
        peers = [str(channel_peer) for channel_peer in self._channel_peers.values()]

        state = {
            'name': self._name,
            'orderers': 'N/A' if len(orderers) <= 0 else orderers,
            'peers': 'N/A' if len(peers) <= 0 else peers
        }

        return json.dumps(state)


class ChannelPeer(object):

    def __init__(self, mspid, channel, peer, roles=None):
        if not isinstance(channel, Channel):
            raise ValueError('Missing Channel parameter')
        if not isinstance(peer, Peer):
            raise ValueError('Missing Peer parameter')

        self._mspid = mspid
        self._channel = channel
        self._name = peer.name
        self._peer = peer
        self._roles = {role: True for role in PEER_ROLES}
        _logger.debug(f'ChannelPeer.const - url: {peer.url}')
        if roles and isinstance(roles, dict):
            self._roles.update(roles)

    async def close(self):
        await self._peer.close()

    @property
    def mspid(self):
        return self._mspid

    @property
    def name(self):
        return self._name

    @property
    def url(self):
        return self._peer.url

    @property
    def peer(self):
        return self._peer

    def set_role(self, role, is_in):
        self._roles[role] = is_in

    def is_in_role(self, role):
        if not role:
            raise ValueError('Missing "role" parameter')

        return self._roles.get(role, True)

    def is_in_org(self, mspid):
        if not mspid or not self._mspid:
            return True
        else:
            return mspid == self._mspid

    def __str__(self):
        return str(self._peer)
