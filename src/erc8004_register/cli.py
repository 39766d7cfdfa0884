#!/usr/bin/env python3
"""
ERC-8004 Registration CLI

Registers an agent on an ERC-8004 identity registry using its registration
file as on-chain metadata, then records the resulting agentId in that file.

Usage:
    erc8004-register register                      # registration.json on Base Sepolia
    erc8004-register register -f agent.json --network base
    erc8004-register register --dry-run            # offline, writes registration.dry-run.json
    erc8004-register decode data:application/json;base64,eyJuYW1lIjoiQSJ9
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .chain_client import ChainClient, DummyChainClient, Web3ChainClient
from .config import DEFAULT_METADATA_PATH, RegistrationSettings, load_settings
from .encoding import JSON_CONTENT_TYPE, parse_data_uri
from .events import Resolved
from .exceptions import RegistrationError
from .workflow import RegistrationOutcome, RegistrationWorkflow

logger = logging.getLogger("erc8004.cli")

_PHASE_ICONS = {
    "preflight": "📄",
    "submit": "📝",
    "confirm": "⏳",
}


def _preview(value: str, limit: int = 80) -> str:
    return value[:limit] + "..." if len(value) > limit else value


def _progress(phase: str, message: str) -> None:
    print(f"{_PHASE_ICONS.get(phase, '•')} {message}")


def dry_run_output_path(metadata_path: str) -> str:
    """Default output file for dry runs, next to the metadata file."""
    path = Path(metadata_path)
    return str(path.with_name(f"{path.stem}.dry-run.json"))


def build_client(settings: RegistrationSettings) -> ChainClient:
    if settings.dry_run:
        return DummyChainClient(settings.network)
    return Web3ChainClient(settings.network, private_key=settings.private_key)


def print_outcome(outcome: RegistrationOutcome) -> None:
    network = outcome.network
    if not outcome.succeeded:
        print(f"\n❌ Registration failed during {outcome.phase}: {outcome.error}")
        if outcome.tx_hash:
            print("⚠️  The transaction was already submitted and may still be mined.")
            print(f"   Check it before retrying: {outcome.tx_url}")
        return

    print(f"\n✅ Transaction confirmed: {outcome.tx_url}")
    print(f"   Registry: {network.registry_locator}")
    print(f"   Agent URI: {_preview(outcome.agent_uri or '')}")
    if isinstance(outcome.decode_result, Resolved):
        agent_id = outcome.decode_result.agent_id
        print(f"   Agent ID: {agent_id}")
        link = network.agent_url(agent_id)
        if link:
            print(f"   View on 8004scan: {link}")
    else:
        reason = getattr(outcome.decode_result, "reason", "unknown")
        print(f"⚠️  Could not resolve agentId from the receipt ({reason}).")
        print("   Recorded agentId as UNKNOWN; look it up from the transaction and update the file.")


def cmd_register(args) -> int:
    """Register the agent on-chain and record the agentId"""
    output_path = args.output
    if args.dry_run and output_path is None:
        output_path = dry_run_output_path(args.file)

    try:
        settings = load_settings(
            network=args.network,
            rpc_url=args.rpc_url,
            identity_registry=args.registry,
            metadata_path=args.file,
            output_path=output_path,
            receipt_timeout=args.timeout,
            force=args.force,
            dry_run=args.dry_run,
            check_network=not args.skip_network_check,
        )
        client = build_client(settings)
    except RegistrationError as e:
        print(f"❌ {e}")
        return e.exit_code

    logger.debug("Settings: %r", settings)
    if settings.dry_run:
        print(f"🧪 Dry run: nothing is sent; result goes to {settings.output_path}")
    print(f"🔗 Network: {settings.network.name} (chain {settings.network.chain_id})")

    workflow = RegistrationWorkflow(
        client,
        settings.network,
        settings.metadata_path,
        receipt_timeout=settings.receipt_timeout,
        force=settings.force,
        output_path=settings.output_path,
        check_network=settings.check_network,
        progress=_progress,
    )
    outcome = workflow.run()
    print_outcome(outcome)
    if outcome.succeeded:
        print(f"\n💾 Saved registration to {workflow.output_path}")
    return outcome.exit_code


def cmd_decode(args) -> int:
    """Decode a data URI given inline or stored in a file"""
    source = args.source
    if not source.startswith("data:"):
        try:
            source = Path(source).read_text(encoding="utf-8").strip()
        except OSError as e:
            print(f"❌ Cannot read {args.source}: {e}")
            return 3

    try:
        uri = parse_data_uri(source)
    except RegistrationError as e:
        print(f"❌ {e}")
        return e.exit_code

    if uri.content_type.split(";")[0].strip().lower() == JSON_CONTENT_TYPE:
        try:
            print(json.dumps(json.loads(uri.data.decode("utf-8")), indent=2, ensure_ascii=False))
            return 0
        except ValueError:
            logger.warning("Payload declares JSON but does not parse; printing raw")
    sys.stdout.write(uri.data.decode("utf-8", errors="replace") + "\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="erc8004-register",
        description="ERC-8004 agent registration tool",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # register command
    reg_parser = subparsers.add_parser("register", help="Register agent on-chain")
    reg_parser.add_argument(
        "--file", "-f", default=DEFAULT_METADATA_PATH,
        help=f"Registration JSON file (default {DEFAULT_METADATA_PATH})",
    )
    reg_parser.add_argument("--output", "-o", help="Write the updated file here instead")
    reg_parser.add_argument("--network", "-n", help="Network preset (default base-sepolia)")
    reg_parser.add_argument("--rpc-url", help="Override the preset RPC endpoint")
    reg_parser.add_argument("--registry", help="Override the identity registry address")
    reg_parser.add_argument("--timeout", type=float, help="Receipt timeout in seconds (default 120)")
    reg_parser.add_argument("--force", action="store_true", help="Register again even if already registered")
    reg_parser.add_argument("--dry-run", action="store_true", help="Use the offline client")
    reg_parser.add_argument(
        "--skip-network-check", action="store_true",
        help="Do not verify the endpoint's chain id",
    )

    # decode command
    dec_parser = subparsers.add_parser("decode", help="Decode an agent data URI")
    dec_parser.add_argument("source", help="data: URI, or a file containing one")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "register":
            return cmd_register(args)
        elif args.command == "decode":
            return cmd_decode(args)
        else:
            parser.print_help()
            return 0
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted")
        return 130
    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        print(f"❌ Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
