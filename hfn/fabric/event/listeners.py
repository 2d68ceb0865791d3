# Copyright 281165273@qq.com. All Rights Reserved.
#
# SPDX-License-Identifier: Apache-2.0
import logging

from hfn.util.utils import call_listener

_logger = logging.getLogger(__name__)


def checkpoint_block_listener(listener, checkpointer):
    """Wrap a block listener so the checkpointer follows its progress

    Blocks before the checkpoint are skipped. The checkpoint moves to the
    next block only once the listener returned, a failing listener leaves
    it on the current block.
    """

    async def block_listener(block_event):
        checkpoint_block = await checkpointer.get_block_number()
        if checkpoint_block is not None and block_event.block_number < checkpoint_block:
            _logger.debug(f'block_listener - skipping block {block_event.block_number}, '
                          f'checkpoint at {checkpoint_block}')
            return

        await call_listener(listener, block_event)
        await checkpointer.set_block_number(block_event.block_number + 1)

    return block_listener


def _matches(contract_event, chaincode_id, event_name):
    if contract_event.chaincode_id != chaincode_id:
        return False
    return event_name is None or contract_event.event_name == event_name


def block_from_contract_listener(listener, chaincode_id, event_name=None, checkpointer=None, is_active=None):
    """Block listener delivering the contract events of one chaincode

    Only valid transactions are considered and each matching event is
    delivered on its own, in block order. With a checkpointer, transactions
    already delivered from the checkpoint block are skipped and a failing
    listener stops the block so the checkpoint stays behind the failed event.
    """

    async def deliver(contract_event):
        if checkpointer is not None:
            await call_listener(listener, contract_event)
            return

        try:
            await call_listener(listener, contract_event)
        except Exception as e:
            _logger.error(f'deliver - contract listener failed on transaction '
                          f'{contract_event.get_transaction_event().transaction_id}: {e}')

    async def block_listener(block_event):
        block_number = block_event.block_number
        processed = set()

        if checkpointer is not None:
            checkpoint_block = await checkpointer.get_block_number()
            if checkpoint_block is not None and block_number < checkpoint_block:
                return
            if checkpoint_block != block_number:
                await checkpointer.set_block_number(block_number)
            processed = await checkpointer.get_transaction_ids()

        for transaction_event in block_event.get_transaction_events():
            if not transaction_event.is_valid:
                continue
            if transaction_event.transaction_id in processed:
                continue

            for contract_event in transaction_event.get_contract_events():
                if is_active is not None and not is_active():
                    return
                if _matches(contract_event, chaincode_id, event_name):
                    await deliver(contract_event)

            if checkpointer is not None:
                await checkpointer.add_transaction_id(transaction_event.transaction_id)

        if checkpointer is not None:
            await checkpointer.set_block_number(block_number + 1)

    return block_listener
