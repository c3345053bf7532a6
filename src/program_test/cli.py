#!/usr/bin/env python3
"""
Program Test CLI

A command-line front end for the in-memory test ledger. It has no node to
talk to: every command builds its own bank, does its work and exits.

Usage:
    program-test demo                                  # Run the reference scenario
    program-test derive ai_agent --program-id <hex>    # Derive a PDA
    program-test keygen                                # Print a fresh address
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import INITIAL_LAMPORTS, LAMPORTS_PER_SOL, TEST_STAKE_AMOUNT, HarnessConfig
from .context import (
    ProgramTest,
    ProgramTestContext,
    create_test_user,
    fund_account,
    get_account_balance,
    get_current_slot,
    advance_slot,
)
from .core.errors import InstructionError, ProgramTestError
from .core.identity import Keypair
from .programs.pda import derive


def _sol(lamports: int) -> str:
    return f"{lamports / LAMPORTS_PER_SOL:.6f} SOL ({lamports:,} lamports)"


async def run_demo(config: HarnessConfig) -> ProgramTestContext:
    """Walk through the reference scenario and print what happens."""
    print("🎮 Program Test Demo")
    print("=" * 40)

    ctx = ProgramTest(config).start_with_context()
    print(f"💰 Payer {ctx.payer.pubkey[:16]}... starts with {_sol(ctx.bank.get_balance(ctx.payer.pubkey))}")

    user = await create_test_user(ctx)
    print(f"🆕 Created user {user.pubkey[:16]}... with {_sol(await get_account_balance(ctx, user.pubkey))}")

    recipient = Keypair.generate()
    await fund_account(ctx, recipient.pubkey, TEST_STAKE_AMOUNT)
    print(f"💸 Funded {recipient.pubkey[:16]}... with {_sol(TEST_STAKE_AMOUNT)}")

    ctx.get_new_latest_blockhash()
    try:
        await fund_account(ctx, user.pubkey, ctx.bank.get_balance(ctx.payer.pubkey) + 1)
    except InstructionError as e:
        print(f"❌ Overdraft rejected as expected: {e}")

    slot = await advance_slot(ctx, 10)
    print(f"⏱️  Advanced to slot {slot} (clock reads {await get_current_slot(ctx)})")

    first = derive(["agent", bytes.fromhex(user.pubkey), (1).to_bytes(8, 'little')], user.pubkey)
    second = derive(["agent", bytes.fromhex(user.pubkey), (1).to_bytes(8, 'little')], user.pubkey)
    print(f"🔑 Derived {first.address[:16]}... (bump {first.bump}), "
          f"again: {'same' if first == second else 'DIFFERENT'}")

    print("\n📊 Final balances:")
    for name, pubkey in (("payer", ctx.payer.pubkey), ("user", user.pubkey), ("recipient", recipient.pubkey)):
        print(f"   {name:<10} {_sol(ctx.bank.get_balance(pubkey))}")

    stats = ctx.bank.get_stats()
    print(f"\n✅ {stats['transactions_processed']} transactions confirmed, "
          f"{stats['transactions_failed']} failed, supply {stats['total_lamports']:,} lamports")
    return ctx


def derive_command(seeds: List[str], program_id: str, hex_seeds: bool) -> None:
    raw = [bytes.fromhex(seed) for seed in seeds] if hex_seeds else seeds
    derived = derive(raw, program_id)
    print(f"🔑 Address: {derived.address}")
    print(f"   Bump:    {derived.bump}")


def keygen_command(seed: Optional[str]) -> None:
    keypair = Keypair.from_seed(bytes.fromhex(seed)) if seed else Keypair.generate()
    print(f"🆕 Address: {keypair.pubkey}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="program-test",
        description="In-memory ledger test harness",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  program-test demo                              # Reference scenario
  program-test demo --genesis-seed other         # Same, different blockhash chain
  program-test derive agent --program-id <hex>   # Derive a PDA from UTF-8 seeds
  program-test keygen --seed <64 hex chars>      # Reproducible address
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Demo command
    demo_parser = subparsers.add_parser('demo', help='Run the reference scenario')
    demo_parser.add_argument('--genesis-seed', default=HarnessConfig.genesis_seed, help='Blockhash chain seed')
    demo_parser.add_argument('--slots-per-epoch', type=int, default=HarnessConfig.slots_per_epoch,
                             help='Slots per epoch')
    demo_parser.add_argument('--payer-funding-multiple', type=int,
                             default=HarnessConfig.payer_funding_multiple,
                             help=f'Payer balance in units of {INITIAL_LAMPORTS:,} lamports')

    # Derive command
    derive_parser = subparsers.add_parser('derive', help='Derive a program address')
    derive_parser.add_argument('seeds', nargs='+', help='Seeds (UTF-8 unless --hex)')
    derive_parser.add_argument('--program-id', required=True, help='Program id as 64 hex chars')
    derive_parser.add_argument('--hex', action='store_true', help='Treat seeds as hex bytes')

    # Keygen command
    keygen_parser = subparsers.add_parser('keygen', help='Generate an address')
    keygen_parser.add_argument('--seed', help='32-byte secret seed as hex')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.command == 'demo':
            config = HarnessConfig(
                genesis_seed=args.genesis_seed,
                slots_per_epoch=args.slots_per_epoch,
                payer_funding_multiple=args.payer_funding_multiple,
            )
            asyncio.run(run_demo(config))

        elif args.command == 'derive':
            derive_command(args.seeds, args.program_id, args.hex)

        elif args.command == 'keygen':
            keygen_command(args.seed)

        else:
            parser.print_help()

    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        return 0

    except (ProgramTestError, ValueError) as e:
        print(f"❌ Error: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
