"""
Programs

- System Program: account creation, transfers, assignment, allocation
- Program Derived Addresses (PDA) utilities
- The runtime that executes programs and enforces account rules
- The invoker tests use to call external programs

Programs are stateless and operate on accounts they own or are authorized
to modify.
"""

from .system import (
    SystemProgram,
    SystemInstruction,
    create_transfer_instruction,
    create_account_instruction,
    assign_instruction,
    allocate_instruction,
)
from .pda import (
    DerivedAddress,
    PDAGenerator,
    create_program_address,
    find_program_address,
    derive,
    seed_from_address,
    seed_from_u64,
)
from .runtime import ProgramRuntime, InvokeContext, ProgramError, Processor
from .invoker import ProgramInvoker, PdaMeta, InvocationResult
from .encoding import anchor_discriminator, encode_u64, encode_string, PayloadReader

__all__ = [
    'SystemProgram',
    'SystemInstruction',
    'create_transfer_instruction',
    'create_account_instruction',
    'assign_instruction',
    'allocate_instruction',
    'DerivedAddress',
    'PDAGenerator',
    'create_program_address',
    'find_program_address',
    'derive',
    'seed_from_address',
    'seed_from_u64',
    'ProgramRuntime',
    'InvokeContext',
    'ProgramError',
    'Processor',
    'ProgramInvoker',
    'PdaMeta',
    'InvocationResult',
    'anchor_discriminator',
    'encode_u64',
    'encode_string',
    'PayloadReader',
]
