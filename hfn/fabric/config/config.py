# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging
import os

import yaml

_logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    'request-timeout': 30000,  # ms, per grpc request
    'grpc-wait-for-ready-timeout': 3000,  # ms
    'endorse-timeout': 30,  # seconds
    'commit-timeout': 300,  # seconds
    'query-timeout': 3,  # seconds
    'event-reconnect-delay': 0,  # seconds
    'event-handler-strategy': 'PREFER_MSPID_SCOPE_ALLFORTX',
    'query-handler-strategy': 'PREFER_MSPID_SCOPE_SINGLE',
}


# config is a singleton object
class Config(object):

    class __Config:
        def __init__(self):
            self._file_stores = []
            self._file_settings = {}
            self._settings = {}

    instance = None

    def __init__(self):

        if not Config.instance:
            Config.instance = Config.__Config()

    def _reorder_file_stores(self, path, bottom=None):
        if path in self.instance._file_stores:
            self.instance._file_stores.remove(path)

        if bottom is not None:
            self.instance._file_stores.insert(0, path)
        else:
            self.instance._file_stores.append(path)

        # later stores override earlier ones
        merged = {}
        for file_store in self.instance._file_stores:
            merged.update(self._load(file_store))
        self.instance._file_settings = merged

    @staticmethod
    def _load(path):
        _logger.debug(f'_load - reading config file {path}')
        with open(path, 'r') as f:
            content = yaml.safe_load(f)

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ValueError(f'Config file {path} must contain a mapping of settings')

        return content

    def file(self, path, bottom=None):
        if not isinstance(path, str):
            raise ValueError('The "path" parameter must be a string')
        if not os.path.exists(path):
            raise ValueError(f'Config file {path} does not exist')

        self._reorder_file_stores(path, bottom)

    def get(self, name, default_value=None):
        if name in self.instance._settings:
            return self.instance._settings[name]
        if name in self.instance._file_settings:
            return self.instance._file_settings[name]
        if name in DEFAULT_SETTINGS:
            return DEFAULT_SETTINGS[name]
        return default_value

    def set(self, name, value):
        self.instance._settings[name] = value

    def reset(self):
        Config.instance = Config.__Config()
