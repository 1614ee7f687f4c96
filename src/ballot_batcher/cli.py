"""
Command-line interface for the CryptoBallot client.

Provides commands for key generation, transaction signing, posting,
lookup and election tallying.
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import structlog

from ballot_batcher import __version__
from ballot_batcher.ballot.identifier import Identifier, IdentifierError
from ballot_batcher.ballot.keys import KeyFormatError, generate_keypair, load_signing_key, sign_payload, write_signing_key
from ballot_batcher.ballot.transaction import (
    AlreadySignedError,
    InvalidSignatureError,
    NeedsSigningError,
    PayloadError,
    transaction_to_json,
)
from ballot_batcher.config import BallotConfig, set_config
from ballot_batcher.core.dispatcher import TransactionDispatcher
from ballot_batcher.core.tally import TallyAggregator, TallyError
from ballot_batcher.ledger.address import AddressScheme
from ballot_batcher.ledger.interface import BatchStatus, LedgerConnectionError, SubmissionError, TransactionNotFoundError
from ballot_batcher.ledger.rest import SawtoothRestClient
from ballot_batcher.tx.builder import TransactionBuildError
from ballot_batcher.tx.signer import LedgerSigner, SigningError, generate_signer

PROG = "cryptoballot"


class CommandError(Exception):
    """A failure to report to the user as `cryptoballot <command>: <message>`."""
    pass


def setup_logging(level: str = "WARNING", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    import logging
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def expand(filename: str) -> str:
    """Expand ~ and environment variables in a path."""
    return os.path.expandvars(os.path.expanduser(filename))


def read_input(filename: str) -> bytes:
    try:
        return Path(filename).read_bytes()
    except OSError as e:
        raise CommandError(f"unable to read {filename}: {e}")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Interacts with a CryptoBallot ledger",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--uri",
        help="Ledger REST API URI (default: $CRYPTOBALLOT_URI or http://localhost:8008)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Generate command
    generate_parser = subparsers.add_parser("generate", help="Generate keypair")
    generate_parser.add_argument(
        "algorithm",
        help="Key algorithm, one of [ed25519]",
    )
    generate_parser.add_argument(
        "--secret",
        required=True,
        help="File location to write secret key",
    )

    # Sign command
    sign_parser = subparsers.add_parser("sign", help="Sign transaction")
    sign_parser.add_argument(
        "input",
        metavar="INPUT",
        help="Transaction file in JSON or CBOR format",
    )
    sign_parser.add_argument(
        "--secret",
        required=True,
        help="Secret ed25519 key file location in hex format",
    )
    sign_parser.add_argument(
        "--output",
        help="Write the signed transaction here instead of stdout",
    )

    # Get command
    get_parser = subparsers.add_parser("get", help="GET transaction")
    get_parser.add_argument(
        "id",
        help="Transaction identifier",
    )
    get_parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty print JSON",
    )

    # Post command
    post_parser = subparsers.add_parser("post", help="Post transaction")
    post_parser.add_argument(
        "input",
        metavar="INPUT",
        help="Signed transaction file in JSON or CBOR format",
    )
    post_parser.add_argument(
        "--wait",
        type=int,
        help="Seconds to wait for the batch to commit",
    )

    # Tally command
    tally_parser = subparsers.add_parser("tally", help="Tally Election")
    tally_parser.add_argument(
        "election_id",
        metavar="election-id",
        help="Tally votes in an election to get a winner",
    )

    return parser


def build_config(args: argparse.Namespace) -> BallotConfig:
    overrides = {}
    if args.uri:
        overrides["uri"] = args.uri
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_json:
        overrides["log_json"] = True
    return BallotConfig(**overrides)


def load_ledger_signer(config: BallotConfig) -> LedgerSigner:
    """Signer for batch headers: the configured key, else an ephemeral one."""
    if not config.signer_key_path:
        return generate_signer(config)

    signer = LedgerSigner(config=config)
    try:
        signer.load_from_config()
    except OSError as e:
        raise CommandError(f"unable to read signer key: {e}")
    return signer


def parse_identifier(value: str) -> Identifier:
    try:
        return Identifier.from_str(value)
    except IdentifierError as e:
        raise CommandError(f"invalid identifier {value}: {e}")


def command_generate(args: argparse.Namespace) -> None:
    secret_location = expand(args.secret)

    try:
        secret, public = generate_keypair(args.algorithm)
    except KeyFormatError as e:
        raise CommandError(str(e))

    try:
        write_signing_key(secret, secret_location)
    except OSError as e:
        raise CommandError(f"cannot create file {secret_location}: {e}")

    print(f"public-key: {bytes(public).hex()}")


def command_sign(args: argparse.Namespace) -> None:
    filename = expand(args.input)
    file_bytes = read_input(filename)

    try:
        signing_key = load_signing_key(expand(args.secret))
    except (OSError, KeyFormatError) as e:
        raise CommandError(str(e))

    try:
        signed_tx = sign_payload(file_bytes, signing_key)
    except AlreadySignedError:
        raise CommandError(f"{filename} is already signed")
    except PayloadError as e:
        raise CommandError(f"unable to read {filename}: {e}")

    output = transaction_to_json(signed_tx, pretty=True)
    if args.output:
        try:
            Path(expand(args.output)).write_text(output + "\n")
        except OSError as e:
            raise CommandError(f"cannot write {args.output}: {e}")
    else:
        print(output)


async def command_get(args: argparse.Namespace, config: BallotConfig, addressing: AddressScheme) -> None:
    identifier = parse_identifier(args.id)

    ledger = SawtoothRestClient(config, addressing)
    try:
        record = await ledger.fetch_by_id(identifier)
    finally:
        await ledger.disconnect()

    try:
        signed_tx = record.decode()
    except PayloadError as e:
        raise CommandError(f"transaction {identifier} is unreadable: {e}")

    print(transaction_to_json(signed_tx, pretty=args.pretty))


async def command_post(args: argparse.Namespace, config: BallotConfig, addressing: AddressScheme) -> None:
    filename = expand(args.input)
    file_bytes = read_input(filename)

    signer = load_ledger_signer(config)
    ledger = SawtoothRestClient(config, addressing)
    dispatcher = TransactionDispatcher(ledger, signer, addressing, config)

    try:
        result = await dispatcher.dispatch(file_bytes, wait=args.wait or config.batch_wait_seconds)
    except NeedsSigningError:
        raise CommandError(f"{filename} is unsigned, use `{PROG} sign` to sign it first")
    except InvalidSignatureError as e:
        raise CommandError(f"{filename} has an invalid signature: {e}")
    except PayloadError as e:
        raise CommandError(f"unable to read {filename}: {e}")
    except SubmissionError as e:
        raise CommandError(f"error sending transaction: {e}")
    finally:
        await ledger.disconnect()

    print(f"transaction-id: {result.tx_id}")
    print(f"batch-id: {result.batch_id}")
    if result.status:
        print(f"status: {result.status.value}")
    if result.status is BatchStatus.INVALID:
        raise CommandError(f"batch {result.batch_id} was rejected by the ledger")


async def command_tally(args: argparse.Namespace, config: BallotConfig, addressing: AddressScheme) -> None:
    election_id = parse_identifier(args.election_id)

    ledger = SawtoothRestClient(config, addressing)
    try:
        result = await TallyAggregator(ledger, addressing, config=config).tally(election_id)
    finally:
        await ledger.disconnect()

    if not result.winners:
        print("No votes have been decrypted")
    elif result.is_tie:
        print(f"Tie between {', '.join(result.winners)} with {result.counts[result.winners[0]]} votes each")
    else:
        print(f"The winner is {result.winner}")

    if result.skipped:
        print(f"{result.skipped} malformed vote(s) were skipped")


def run_command(args: argparse.Namespace, config: BallotConfig) -> None:
    addressing = AddressScheme.from_label(config.namespace_label)

    if args.command == "generate":
        command_generate(args)
    elif args.command == "sign":
        command_sign(args)
    elif args.command == "get":
        asyncio.run(command_get(args, config, addressing))
    elif args.command == "post":
        asyncio.run(command_post(args, config, addressing))
    elif args.command == "tally":
        asyncio.run(command_tally(args, config, addressing))


def main(argv: Optional[list] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = build_config(args)
    set_config(config)
    setup_logging(config.log_level, config.log_json)

    try:
        run_command(args, config)
    except (
        CommandError,
        LedgerConnectionError,
        TransactionNotFoundError,
        SigningError,
        TransactionBuildError,
        TallyError,
    ) as e:
        print(f"{PROG} {args.command}: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
