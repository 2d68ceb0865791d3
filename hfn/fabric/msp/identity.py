# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import abc
import logging

_logger = logging.getLogger(__name__)


class IdentityContext(abc.ABC):
    """The client identity a gateway acts as.

    Encoding and signing of wire messages belong to the identity, every
    sign_* method returns the bytes that are handed to the transport.
    """

    @property
    @abc.abstractmethod
    def mspid(self):
        """MSP id of the organization the identity belongs to"""

    @abc.abstractmethod
    def serialize(self):
        """Serialized identity (creator) bytes"""

    @abc.abstractmethod
    def sign_proposal(self, proposal):
        """Encode and sign a :class:`~hfn.fabric.transaction.endorsement.Proposal`"""

    @abc.abstractmethod
    def sign_transaction(self, proposal, endorsement_responses):
        """Encode and sign the transaction envelope built from valid endorsements"""

    @abc.abstractmethod
    def sign_seek_info(self, channel_name, block_type, start_block=None):
        """Encode and sign a deliver request, newest block when start_block is None"""
