# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging

from hfn.fabric.channel.channel import Channel
from hfn.fabric.config.config import DEFAULT_SETTINGS
from hfn.fabric.network import Network
from hfn.util.utils import get_config_setting

_logger = logging.getLogger(__name__)

GATEWAY_OPTIONS = (
    'request-timeout',
    'endorse-timeout',
    'commit-timeout',
    'query-timeout',
    'event-reconnect-delay',
    'event-handler-strategy',
    'query-handler-strategy',
)


class Gateway(object):
    """
        Entry point of an application to a Fabric network.
        The gateway acts as one identity over one transport and keeps a
        network per channel.
    """

    def __init__(self):
        self._transport = None
        self._identity = None
        self._options = {}
        self._channels = {}
        self._networks = {}

    async def connect(self, transport, identity, options=None):
        """Connect the gateway

        Args:
            transport (Transport): sends proposals, transactions and deliver requests
            identity (IdentityContext): the identity the gateway acts as
            options (dict): overrides of the configuration settings
        """
        method = 'connect'
        _logger.debug(f'{method} - start')

        if transport is None:
            raise ValueError('A transport must be given')
        if identity is None:
            raise ValueError('An identity must be given')

        options = options or {}
        unknown = [name for name in options if name not in GATEWAY_OPTIONS]
        if unknown:
            raise ValueError(f'Unknown gateway options: {unknown}')

        merged = {name: get_config_setting(name, DEFAULT_SETTINGS.get(name)) for name in GATEWAY_OPTIONS}
        merged.update(options)

        self._transport = transport
        self._identity = identity
        self._options = merged

        _logger.debug(f'{method} - end - mspid: {identity.mspid} options: {merged}')

    @property
    def transport(self):
        return self._transport

    @property
    def identity(self):
        return self._identity

    @property
    def options(self):
        return self._options

    def new_channel(self, name):
        if name in self._channels:
            raise ValueError(f'Channel {name} already exists')

        channel = Channel(name)
        self._channels[name] = channel
        return channel

    def get_channel(self, name):
        channel = self._channels.get(name)
        if channel is None:
            raise ValueError(f'Channel {name} not found')
        return channel

    async def get_network(self, name):
        method = 'get_network'
        _logger.debug(f'{method} - start - name: {name}')

        if self._transport is None:
            raise ValueError('Gateway must be connected before getting a network')

        network = self._networks.get(name)
        if network is None:
            channel = self._channels.get(name) or self.new_channel(name)
            network = Network(self, channel)
            await network._initialize()
            self._networks[name] = network
        return network

    async def disconnect(self):
        method = 'disconnect'
        _logger.debug(f'{method} - start')

        for network in self._networks.values():
            await network.close()
        self._networks.clear()
        self._channels.clear()

        if self._transport is not None:
            await self._transport.close()
