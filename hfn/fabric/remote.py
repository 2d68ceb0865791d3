# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
from urllib.parse import urlparse

import grpc

from hfn.util.utils import get_config_setting, check_integer_config

MAX_SEND = 'grpc.max_send_message_length'
MAX_RECEIVE = 'grpc.max_receive_message_length'
MAX_SEND_V10 = 'grpc-max-send-message-length'
MAX_RECEIVE_V10 = 'grpc-max-receive-message-length'

USE_WAIT_FOR_READY = 'useWaitForReady'

# options consumed by the endpoint, never handed to grpc
_ENDPOINT_OPTIONS = ('pem', 'clientKey', 'clientCert', 'name', 'mspid', 'ssl-target-name-override',
                     'request-timeout', 'grpc-wait-for-ready-timeout', MAX_SEND_V10, MAX_RECEIVE_V10)

_logger = logging.getLogger(__name__)


class Endpoint(object):

    def __init__(self, url, pem=None, client_key=None, client_cert=None):

        purl = urlparse(url)
        self.protocol = purl.scheme

        if self.protocol == 'grpc':
            self.creds = None
        elif self.protocol == 'grpcs':
            if not pem:
                raise ValueError('PEM encoded certificate is required.')

            pem = _as_bytes(pem)
            if client_cert and client_key:
                self.creds = grpc.ssl_channel_credentials(pem,
                                                          private_key=_as_bytes(client_key),
                                                          certificate_chain=_as_bytes(client_cert))
            else:
                self.creds = grpc.ssl_channel_credentials(pem)
        else:
            raise ValueError(f'Invalid protocol: {self.protocol}. URLs must begin with grpc:// or grpcs://')

        if not purl.hostname or not purl.port:
            raise ValueError(f'Invalid url: {url}. Expected grpc[s]://host:port')

        self.addr = f'{purl.hostname}:{purl.port}'

    def is_tls(self):
        return self.protocol == 'grpcs'


class Remote(object):
    """Base class of the remote endpoints a channel talks to.

    Holds the url, the grpc channel options and the request timeouts,
    the grpc channel itself is only opened on first use.
    """

    def __init__(self, url, opts=None):

        if opts is None:
            opts = {}

        self._options = {}

        # default
        self.use_wait_for_ready = False

        for key, value in opts.items():

            if key == USE_WAIT_FOR_READY:
                if isinstance(value, bool):
                    self.use_wait_for_ready = value
                continue
            if key in _ENDPOINT_OPTIONS:
                continue
            if value and not isinstance(value, (str, int)):
                raise ValueError(f'invalid grpc option value:{key}-> {value} expected string|integer')
            self._options[key] = value

        self.client_cert = opts.get('clientCert')

        # connection options

        if isinstance(opts.get('ssl-target-name-override'), str):
            self._options['grpc.ssl_target_name_override'] = opts['ssl-target-name-override']
            self._options['grpc.default_authority'] = opts['ssl-target-name-override']

        self._options[MAX_RECEIVE] = self._message_size(opts, MAX_RECEIVE_V10, MAX_RECEIVE)
        self._options[MAX_SEND] = self._message_size(opts, MAX_SEND_V10, MAX_SEND)

        self._url = url
        self._endpoint = Endpoint(url, opts.get('pem'), opts.get('clientKey'), self.client_cert)

        if 'name' in opts:
            self._name = opts['name']
        else:
            split = url.split('//')
            self._name = split[1]

        if check_integer_config(opts, 'request-timeout'):
            self._request_timeout = opts['request-timeout']
        else:
            self._request_timeout = get_config_setting('request-timeout', 30000)  # default 30 seconds

        if check_integer_config(opts, 'grpc-wait-for-ready-timeout'):
            self._grpc_wait_for_ready_timeout = opts['grpc-wait-for-ready-timeout']
        else:
            self._grpc_wait_for_ready_timeout = get_config_setting('grpc-wait-for-ready-timeout', 3000)

        self._channel = None

        _logger.debug(f' ** Remote instance url: {self._url}, name: {self._name}, options loaded are:: {self._options}')

    @staticmethod
    def _message_size(opts, v10_name, name):
        if v10_name in opts:
            return opts[v10_name]
        if name in opts:
            return opts[name]

        size = get_config_setting(v10_name)
        if size is None:
            size = get_config_setting(name)
        if size is None:
            size = -1  # default is unlimited

        return size

    @property
    def name(self):
        return self._name

    @property
    def url(self):
        return self._url

    @property
    def request_timeout(self):
        """Default request timeout in seconds"""
        return self._request_timeout / 1000

    def _get_channel(self):
        if self._channel is None:
            options = list(self._options.items())
            if self._endpoint.creds is None:
                _logger.debug(f'_get_channel - create insecure connection {self._endpoint.addr}')
                self._channel = grpc.aio.insecure_channel(self._endpoint.addr, options)
            else:
                _logger.debug(f'_get_channel - create secure connection {self._endpoint.addr}')
                self._channel = grpc.aio.secure_channel(self._endpoint.addr, self._endpoint.creds, options)

        return self._channel

    async def wait_for_ready(self):
        channel = self._get_channel()
        timeout = self._grpc_wait_for_ready_timeout / 1000
        try:
            await asyncio.wait_for(channel.channel_ready(), timeout)
        except Exception as e:
            _logger.error(f'wait_for_ready - {self._url} failed to connect within {timeout}s')
            raise ConnectionError(f'Failed to connect before the deadline on {self._name} {self._url}') from e

    async def close(self):
        if self._channel is not None:
            _logger.debug(f'close - closing connection {self._endpoint.addr}')
            await self._channel.close()
            self._channel = None

    def get_characteristics(self):
        characteristics = {
            'url': self._url,
            'name': self._name,
            'options': dict(self._options),
        }

        return characteristics

    def is_tls(self):
        return self._endpoint.is_tls()

    def __str__(self):
        return f'Remote: {self._url}'


def _as_bytes(value):
    if isinstance(value, bytes):
        return value
    return value.encode()
