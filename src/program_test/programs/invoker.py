"""
Program Invoker

The thin layer a test scenario uses to call an external program: it
resolves any PDA placeholders in the account list, wraps the call in a
single-instruction transaction, signs it, and submits it with Confirmed
commitment. What the program does with the accounts and payload is the
program's business; the invoker never looks inside the payload.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple, Union

from ..core.accounts import AccountMeta
from ..core.commitment import CommitmentLevel
from ..core.identity import Keypair, Signer
from ..core.transactions import Instruction, build_transaction
from .pda import DerivedAddress, derive, normalize_seeds

if TYPE_CHECKING:
    from ..core.bank import Bank, TransactionStatus


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PdaMeta:
    """
    Account list entry for an address the invoker should derive.

    The seeds are resolved against the invoked program's id.
    """
    seeds: Tuple[bytes, ...]
    is_signer: bool = False
    is_writable: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'seeds', normalize_seeds(self.seeds))

    def resolve(self, program_id: str) -> Tuple[AccountMeta, DerivedAddress]:
        derived = derive(self.seeds, program_id)
        return AccountMeta(derived.address, self.is_signer, self.is_writable), derived


AccountSpec = Union[AccountMeta, PdaMeta]


@dataclass
class InvocationResult:
    """What an invocation produced."""
    signature: str
    status: 'TransactionStatus'
    derived_addresses: List[DerivedAddress] = field(default_factory=list)

    @property
    def address(self) -> Optional[str]:
        """The first derived address, typically the account the call created."""
        return self.derived_addresses[0].address if self.derived_addresses else None


class ProgramInvoker:
    """Submits single-instruction calls to programs registered on a bank."""

    def __init__(self, bank: 'Bank'):
        self.bank = bank

    def instruction(self, program_id: str, accounts: Sequence[AccountSpec],
                    data: bytes) -> Tuple[Instruction, List[DerivedAddress]]:
        """Resolve PDA placeholders and build the instruction."""
        metas = []
        derived = []
        for entry in accounts:
            if isinstance(entry, PdaMeta):
                meta, pda = entry.resolve(program_id)
                derived.append(pda)
                metas.append(meta)
            else:
                metas.append(entry)
        return Instruction(program_id=program_id, accounts=metas, data=data), derived

    def invoke(self, program_id: str, accounts: Sequence[AccountSpec], data: bytes,
               signers: Sequence[Signer], payer: Optional[Keypair] = None) -> InvocationResult:
        """
        Call program_id once and wait for Confirmed commitment.

        The payer defaults to the first Keypair in signers. Submission
        errors propagate unchanged.
        """
        if payer is None:
            payer = next((s for s in signers if isinstance(s, Keypair)), None)
            if payer is None:
                raise ValueError("No keypair available to pay for the invocation")

        instruction, derived = self.instruction(program_id, accounts, data)
        transaction = build_transaction([instruction], payer, signers, self.bank.latest_blockhash())
        transaction.sign()

        logger.debug("Invoking %s... (%d derived addresses)", program_id[:8], len(derived))
        status = self.bank.process_transaction(transaction, CommitmentLevel.CONFIRMED)
        return InvocationResult(signature=status.signature, status=status, derived_addresses=derived)
