# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging


_logger = logging.getLogger(__name__)


class Organization(object):
    """Members of one MSP on a channel"""

    def __init__(self, mspid):
        _logger.debug(f'Organization.const - mspid: {mspid}')

        if not mspid:
            raise ValueError('Missing mspid parameter')

        self._mspid = mspid
        self._peers = []

    @property
    def mspid(self):
        return self._mspid

    def add_peer(self, channel_peer):
        if channel_peer not in self._peers:
            self._peers.append(channel_peer)

    def remove_peer(self, channel_peer):
        if channel_peer in self._peers:
            self._peers.remove(channel_peer)

    def get_peers(self):
        return list(self._peers)

    def __str__(self):
        peers = ', '.join([str(peer) for peer in self._peers])

        return f'Organization {self._mspid}, peers {peers}'
