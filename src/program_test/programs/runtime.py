"""
Program Runtime

Programs are stateless: a program is a processor function registered under
a program id, and all state it touches arrives as AccountInfo views.

    processor(ctx, program_id, accounts, data) -> None

A processor signals failure by raising. When it returns, the runtime checks
what it did against Solana's account rules before anything reaches the
store:
- readonly and executable accounts are unchanged
- only the owner may debit lamports, change data, or reassign an account
- the lamport total over the instruction's accounts is unchanged

Programs call other programs through InvokeContext.invoke_signed, which is
also how a program signs for its own PDAs.

Based on: https://solana.com/docs/core/programs
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..config import MAX_INVOKE_DEPTH, NATIVE_LOADER_ID, SYSTEM_PROGRAM_ID, BPF_LOADER_ID
from ..core.accounts import AccountInfo, AccountMeta, AccountStore, rent_exempt_minimum
from ..core.clock import Clock, ClockController
from ..core.errors import ProgramTestError
from ..core.transactions import Instruction, TransactionMessage
from .pda import Seed, create_program_address
from .system import SystemProgram


logger = logging.getLogger(__name__)
program_logger = logging.getLogger("program_test.programs")


class ProgramError(ProgramTestError):
    """A program failed, or broke the runtime's account rules."""

    def __init__(self, message: str, program_id: Optional[str] = None, code: Optional[int] = None):
        super().__init__(message)
        self.program_id = program_id
        self.code = code


Processor = Callable[['InvokeContext', str, List[AccountInfo], bytes], None]


@dataclass(frozen=True)
class _AccountState:
    lamports: int
    data: bytes
    owner: str
    executable: bool

    @classmethod
    def of(cls, info: AccountInfo) -> '_AccountState':
        return cls(info.lamports, bytes(info.data), info.owner, info.executable)


class InvokeContext:
    """
    What a running program can see besides its accounts.

    One context exists per program invocation, including nested ones.
    """

    def __init__(self, runtime: 'ProgramRuntime', program_id: str,
                 accounts: Dict[str, AccountInfo], logs: List[str], depth: int):
        self.runtime = runtime
        self.program_id = program_id
        self.accounts = accounts
        self.logs = logs
        self.depth = depth
        self._baseline: Dict[str, _AccountState] = {}
        self.rebaseline()

    @property
    def clock(self) -> Clock:
        """The Clock sysvar at the current slot."""
        return self.runtime.clock.get_clock()

    def log(self, message: str) -> None:
        """Record a program log line."""
        self.logs.append(f"Program log: {message}")
        program_logger.debug("%s...: %s", self.program_id[:8], message)

    def invoke(self, instruction: Instruction) -> None:
        """Call another program with this program's privileges."""
        self.invoke_signed(instruction, ())

    def invoke_signed(self, instruction: Instruction, signer_seeds: Iterable[Sequence[Seed]]) -> None:
        """
        Call another program, signing for PDAs of this program.

        Each entry of signer_seeds is the full seed list (bump included) of
        a PDA owned by the calling program; those addresses count as
        signers for the inner instruction. Every account the inner
        instruction names must already be available to this invocation.
        """
        pda_signers = {create_program_address(seeds, self.program_id) for seeds in signer_seeds}

        metas = _merge_metas(instruction.accounts)
        for meta in metas:
            outer = self.accounts.get(meta.pubkey)
            if outer is None:
                raise ProgramError(f"Account {meta.pubkey[:8]}... not passed to {self.program_id[:8]}...",
                                   self.program_id)
            if meta.is_writable and not outer.is_writable:
                raise ProgramError(f"Writable privilege escalated for {meta.pubkey[:8]}...", self.program_id)
            if meta.is_signer and not (outer.is_signer or meta.pubkey in pda_signers):
                raise ProgramError(f"Signer privilege escalated for {meta.pubkey[:8]}...", self.program_id)

        # Settle our own changes so the callee sees them, then pick up its changes
        self.runtime.settle(self)
        self.runtime.invoke(instruction.program_id, metas, instruction.data, self.logs, self.depth + 1)
        self.runtime.reload(self)

    def rebaseline(self) -> None:
        self._baseline = {key: _AccountState.of(info) for key, info in self.accounts.items()}

    def baseline(self, key: str) -> _AccountState:
        return self._baseline[key]


def _merge_metas(metas: Iterable[AccountMeta]) -> List[AccountMeta]:
    """Collapse repeated accounts, keeping the strongest privileges, in first-seen order."""
    merged: Dict[str, AccountMeta] = {}
    for meta in metas:
        seen = merged.get(meta.pubkey)
        if seen is None:
            merged[meta.pubkey] = meta
        else:
            merged[meta.pubkey] = AccountMeta(meta.pubkey,
                                              is_signer=seen.is_signer or meta.is_signer,
                                              is_writable=seen.is_writable or meta.is_writable)
    return list(merged.values())


class ProgramRuntime:
    """
    Registry of programs plus the machinery that runs their instructions.

    The system program is always present. Other programs are registered
    with add_program, which also creates their executable account.
    """

    def __init__(self, accounts: AccountStore, clock: ClockController):
        self.accounts = accounts
        self.clock = clock
        self._processors: Dict[str, Processor] = {}
        self._names: Dict[str, str] = {}
        self.add_builtin("system_program", SYSTEM_PROGRAM_ID, SystemProgram.process)

    def add_builtin(self, name: str, program_id: str, processor: Processor) -> None:
        self._register(name, program_id, processor, NATIVE_LOADER_ID)

    def add_program(self, name: str, program_id: str, processor: Processor) -> None:
        """Register an external program under program_id."""
        self._register(name, program_id, processor, BPF_LOADER_ID)

    def _register(self, name: str, program_id: str, processor: Processor, loader: str) -> None:
        if program_id in self._processors:
            raise ValueError(f"Program {program_id[:8]}... already registered")
        self.accounts.create_account(program_id, lamports=rent_exempt_minimum(len(name)),
                                     owner=loader, executable=True, data=name.encode())
        self._processors[program_id] = processor
        self._names[program_id] = name
        logger.info("Registered program %s at %s...", name, program_id[:8])

    def program_name(self, program_id: str) -> Optional[str]:
        return self._names.get(program_id)

    def is_registered(self, program_id: str) -> bool:
        return program_id in self._processors

    def process_message_instruction(self, message: TransactionMessage, index: int, logs: List[str]) -> None:
        """Run instruction index of a message with the message's account privileges."""
        compiled = message.instructions[index]
        program_id = message.account_keys[compiled.program_id_index]
        metas = [
            AccountMeta(message.account_keys[i], message.is_signer(i), message.is_writable(i))
            for i in compiled.accounts
        ]
        self.invoke(program_id, _merge_metas(metas), compiled.data, logs, depth=1)

    def invoke(self, program_id: str, metas: Sequence[AccountMeta], data: bytes,
               logs: List[str], depth: int) -> None:
        """Run one program invocation and commit its account changes."""
        if depth > MAX_INVOKE_DEPTH:
            raise ProgramError("Call depth exceeded", program_id)

        processor = self._processors.get(program_id)
        program_account = self.accounts.get_account(program_id)
        if processor is None or program_account is None or not program_account.executable:
            raise ProgramError(f"Program {program_id[:8]}... not found", program_id)

        infos = {
            meta.pubkey: AccountInfo.from_account(meta.pubkey, self.accounts.get_account(meta.pubkey),
                                                  meta.is_signer, meta.is_writable)
            for meta in metas
        }
        ctx = InvokeContext(self, program_id, infos, logs, depth)

        logs.append(f"Program {program_id} invoke [{depth}]")
        logger.debug("Invoking %s... with %d accounts, %d data bytes", program_id[:8], len(infos), len(data))
        try:
            processor(ctx, program_id, [infos[meta.pubkey] for meta in metas], data)
            self.settle(ctx)
        except Exception as e:
            logs.append(f"Program {program_id} failed: {e}")
            raise
        logs.append(f"Program {program_id} success")

    def settle(self, ctx: InvokeContext) -> None:
        """Check an invocation's changes so far and write them to the store."""
        self._verify(ctx)
        updates = {
            key: info.to_account()
            for key, info in ctx.accounts.items()
            if info.is_writable and not info.is_untouched_empty()
        }
        self.accounts.commit(updates)
        for key in updates:
            ctx.accounts[key].exists = True
        ctx.rebaseline()

    def reload(self, ctx: InvokeContext) -> None:
        """Refresh an invocation's account views from the store."""
        for key, info in ctx.accounts.items():
            account = self.accounts.get_account(key)
            fresh = AccountInfo.from_account(key, account, info.is_signer, info.is_writable)
            info.lamports = fresh.lamports
            if isinstance(info.data, bytearray):
                info.data[:] = fresh.data
            else:
                # The processor replaced the buffer with immutable bytes
                info.data = bytearray(fresh.data)
            info.owner = fresh.owner
            info.executable = fresh.executable
            info.rent_epoch = fresh.rent_epoch
            info.exists = fresh.exists
        ctx.rebaseline()

    def _verify(self, ctx: InvokeContext) -> None:
        program_id = ctx.program_id
        before_total = 0
        after_total = 0

        for key, info in ctx.accounts.items():
            before = ctx.baseline(key)
            after = _AccountState.of(info)
            before_total += before.lamports
            after_total += after.lamports
            if after == before:
                continue

            if not info.is_writable:
                raise ProgramError(f"Readonly account {key[:8]}... modified", program_id)
            if before.executable or after.executable:
                raise ProgramError(f"Executable account {key[:8]}... modified", program_id)
            if after.lamports < before.lamports and before.owner != program_id:
                raise ProgramError(f"Account {key[:8]}... debited by non-owner", program_id)
            if after.data != before.data and before.owner != program_id:
                raise ProgramError(f"Account {key[:8]}... data modified by non-owner", program_id)
            if after.owner != before.owner:
                if before.owner != program_id:
                    raise ProgramError(f"Account {key[:8]}... reassigned by non-owner", program_id)
                if any(after.data):
                    raise ProgramError(f"Account {key[:8]}... reassigned with non-zero data", program_id)

        if before_total != after_total:
            raise ProgramError(
                f"Unbalanced instruction: {before_total} lamports before, {after_total} after", program_id
            )
