# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import inspect
import logging

from hfn.fabric.config.config import Config

_logger = logging.getLogger(__name__)


def get_config_setting(name, default_value=None):
    return Config().get(name, default_value)


def set_config_setting(name, value):
    Config().set(name, value)


def add_config_file(path, bottom=None):
    Config().file(path, bottom)


def check_integer_config(opts, name):
    """Check a numeric option, raising for non-integer values

    Returns:
        bool: True when the option is present and valid
    """
    if not opts or name not in opts:
        return False

    value = opts[name]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f'Expect an integer value of {name}, found {type(value).__name__}')

    return True


def proto_b(value):
    if isinstance(value, bytes):
        return value
    return str(value).encode('utf-8')


async def call_listener(listener, *args):
    """Invoke a plain or coroutine listener and wait for its result."""
    result = listener(*args)
    if inspect.isawaitable(result):
        result = await result
    return result
