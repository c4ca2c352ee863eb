"""Command-line interface for inspecting and maintaining the ordinal ledger.

The commands are thin wrappers over :class:`ordinal_ledger.ledger.OrdinalLedger`
so operators can load fixtures, read back blocks and outputs, attach
inscriptions by hand, and roll blocks back after a reorg.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from .config import ConfigurationError, LedgerConfig, load_ledger_config
from .kv import SUPPORTED_BACKENDS, create_key_value_store
from .ledger import OrdinalLedger
from .model import LedgerError, Output, Transaction

logger = logging.getLogger(__name__)

COMPACT_JSON_SEPARATORS = (",", ":")


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _add_store_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--backend", choices=SUPPORTED_BACKENDS, help="Override the store backend")
    parser.add_argument("--sqlite-path", help="Override the SQLite database path")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ordinal ledger CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    load_parser = subparsers.add_parser(
        "load-transactions",
        help="Record transactions (and optional outputs) from a JSON file",
    )
    load_parser.add_argument("path", help="JSON file holding a list of transactions")
    _add_store_arguments(load_parser)

    block_parser = subparsers.add_parser(
        "block-transactions", help="Print the transactions recorded for a block"
    )
    block_parser.add_argument("block_number", type=int, help="Block height")
    block_parser.add_argument("--json", dest="as_json", action="store_true", help="Emit JSON")
    _add_store_arguments(block_parser)

    output_parser = subparsers.add_parser("output", help="Print a single output record")
    output_parser.add_argument("output_hash", help="Output hash in <txhash>:<index> form")
    output_parser.add_argument(
        "--require",
        action="store_true",
        help="Exit with an error when the output is unknown",
    )
    output_parser.add_argument("--json", dest="as_json", action="store_true", help="Emit JSON")
    _add_store_arguments(output_parser)

    tx_outputs_parser = subparsers.add_parser(
        "tx-outputs", help="Print the outputs indexed for a transaction"
    )
    tx_outputs_parser.add_argument("tx_hash", help="Transaction hash")
    tx_outputs_parser.add_argument("--json", dest="as_json", action="store_true", help="Emit JSON")
    _add_store_arguments(tx_outputs_parser)

    inscription_parser = subparsers.add_parser(
        "add-inscription", help="Attach an inscription id to a recorded output"
    )
    inscription_parser.add_argument("output_hash", help="Output hash in <txhash>:<index> form")
    inscription_parser.add_argument("inscription_id", help="Inscription identifier")
    _add_store_arguments(inscription_parser)

    delete_parser = subparsers.add_parser(
        "delete-block", help="Delete every transaction recorded for a block"
    )
    delete_parser.add_argument("block_number", type=int, help="Block height")
    _add_store_arguments(delete_parser)

    return parser


def _config_from_args(args: argparse.Namespace) -> LedgerConfig:
    overrides = {"backend": args.backend, "sqlite_path": args.sqlite_path}
    return load_ledger_config(config_path=args.config, overrides=overrides)


def _open_ledger(config: LedgerConfig) -> OrdinalLedger:
    return OrdinalLedger(create_key_value_store(config))


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, separators=COMPACT_JSON_SEPARATORS))


def _describe_output(output: Output) -> str:
    address = output.address or "<no address>"
    inscriptions = ", ".join(output.inscriptions) if output.inscriptions else "none"
    return f"{output.hash} → {output.value} to {address} (inscriptions: {inscriptions})"


def _read_transactions_file(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        raise CLIError(f"Transactions file not found: {path}")
    try:
        loaded = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise CLIError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(loaded, list):
        raise CLIError(f"Expected {path} to contain a JSON list of transactions")
    return loaded


def cmd_load_transactions(ledger: OrdinalLedger, args: argparse.Namespace) -> None:
    entries = _read_transactions_file(Path(args.path))
    try:
        transactions = [Transaction.from_dict(entry) for entry in entries]
    except (TypeError, ValueError) as exc:
        raise CLIError(f"Invalid transaction entry: {exc}") from exc
    ledger.record_block(transactions)

    written = 0
    for entry, transaction in zip(entries, transactions):
        raw_outputs = entry.get("outputs")
        if not raw_outputs:
            continue
        try:
            outputs = [Output.from_dict(raw) for raw in raw_outputs]
        except (TypeError, ValueError) as exc:
            raise CLIError(f"Invalid output entry for {transaction.hash}: {exc}") from exc
        if ledger.record_outputs(transaction, outputs):
            written += len(outputs)
    print(f"Recorded {len(transactions)} transactions and {written} outputs")


def cmd_block_transactions(ledger: OrdinalLedger, args: argparse.Namespace) -> None:
    transactions = ledger.block_transactions(args.block_number)
    if args.as_json:
        _print_json([transaction.to_dict() for transaction in transactions])
        return
    if not transactions:
        print(f"No transactions recorded for block {args.block_number}")
        return
    for transaction in transactions:
        fetched = "fetched" if transaction.outputs_fetched else "pending"
        print(
            f"#{transaction.index} {transaction.hash} "
            f"({len(transaction.inputs)} inputs, outputs {fetched})"
        )


def cmd_output(ledger: OrdinalLedger, args: argparse.Namespace) -> None:
    output = ledger.get_output(args.output_hash, should_exist=args.require)
    if args.as_json:
        _print_json(output.to_dict() if output else None)
        return
    if output is None:
        print(f"Output {args.output_hash} is not recorded")
        return
    print(_describe_output(output))


def cmd_tx_outputs(ledger: OrdinalLedger, args: argparse.Namespace) -> None:
    outputs = ledger.outputs_for_transaction(args.tx_hash)
    if args.as_json:
        _print_json([output.to_dict() for output in outputs])
        return
    for output in outputs:
        print(_describe_output(output))


def cmd_add_inscription(ledger: OrdinalLedger, args: argparse.Namespace) -> None:
    output = ledger.attach_inscription(args.output_hash, args.inscription_id)
    print(_describe_output(output))


def cmd_delete_block(ledger: OrdinalLedger, args: argparse.Namespace) -> None:
    removed = ledger.rollback_block(args.block_number)
    print(f"Deleted {removed} transactions for block {args.block_number}")


COMMANDS = {
    "load-transactions": cmd_load_transactions,
    "block-transactions": cmd_block_transactions,
    "output": cmd_output,
    "tx-outputs": cmd_tx_outputs,
    "add-inscription": cmd_add_inscription,
    "delete-block": cmd_delete_block,
}


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _config_from_args(args)
        logging.basicConfig(level=config.log_level_value)
        handler = COMMANDS.get(args.command)
        if handler is None:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
        with _open_ledger(config) as ledger:
            handler(ledger, args)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (CLIError, ConfigurationError, LedgerError) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
