"""Process boundary for the token program.

Hosts call ``process_instruction`` for exception semantics or ``invoke``
for the integer result a host reports (0 on success).
"""

from collections.abc import Sequence

from solders.pubkey import Pubkey

from .account_info import AccountInfo
from .error import ProgramError
from .logging import get_logger
from .processor import Processor

logger = get_logger("entrypoint")

SUCCESS = 0


def process_instruction(
    processor: Processor | Pubkey,
    accounts: Sequence[AccountInfo],
    data: bytes | bytearray,
) -> None:
    """Run one instruction, logging the error kind if it fails.

    Args:
        processor: A configured ``Processor``, or a program id to build a
            default one for.
        accounts: Accounts in the order the instruction expects.
        data: Encoded instruction.

    Raises:
        ProgramError: Whatever the handler raised, unchanged.
    """
    if isinstance(processor, Pubkey):
        processor = Processor(processor)
    try:
        processor.process(accounts, data)
    except ProgramError as e:
        logger.info("Instruction failed: %s (%s)", e.kind, e)
        raise


def invoke(
    processor: Processor | Pubkey,
    accounts: Sequence[AccountInfo],
    data: bytes | bytearray,
) -> int:
    """Like ``process_instruction`` but reports the boundary error code."""
    try:
        process_instruction(processor, accounts, data)
    except ProgramError as e:
        return e.code
    return SUCCESS
