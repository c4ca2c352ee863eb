"""Domain records for transactions, their outputs, and inscriptions.

``Transaction`` and ``Output`` are the shapes exchanged with upstream crawlers
and returned to readers. Their persisted form is handled by
:mod:`ordinal_ledger.schema`; nothing in this module touches the store.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

# Input attributes recoverable from the owning transaction.
REDUNDANT_INPUT_FIELDS = ("transaction_hash", "block_number")


class LedgerError(RuntimeError):
    """Base class for errors raised by the ordinal ledger."""


class InvalidOutputHashError(LedgerError, ValueError):
    """Raised when an output hash is not of the form ``<txhash>:<index>``."""


def parse_output_hash(output_hash: str) -> tuple[str, int]:
    """Split *output_hash* into its transaction hash and output index."""

    tx_hash, separator, raw_index = output_hash.partition(":")
    if not separator or not tx_hash:
        raise InvalidOutputHashError(f"Output hash {output_hash!r} is missing a ':<index>' suffix")
    try:
        index = int(raw_index)
    except ValueError as exc:
        raise InvalidOutputHashError(
            f"Output hash {output_hash!r} has a non-numeric index {raw_index!r}"
        ) from exc
    if index < 0:
        raise InvalidOutputHashError(f"Output hash {output_hash!r} has a negative index")
    return tx_hash, index


def make_output_hash(tx_hash: str, index: int | str) -> str:
    return f"{tx_hash.lower()}:{index}"


def canonical_output_hash(output_hash: str) -> str:
    """Return *output_hash* lowercased with its index in plain decimal form.

    ``AA:01`` and ``aa:1`` name the same output; both map to ``aa:1``, the
    form the transaction output index rebuilds from its entries.
    """

    tx_hash, index = parse_output_hash(output_hash)
    return make_output_hash(tx_hash, index)


@dataclass
class Transaction:
    """A transaction as written per block and re-read with enriched inputs."""

    hash: str
    block_number: int
    index: int | None = None
    timestamp: int | None = None
    inputs: list[dict[str, Any]] = field(default_factory=list)
    outputs_fetched: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transaction":
        try:
            tx_hash = data["hash"]
            block_number = int(data["block_number"])
        except KeyError as exc:
            raise ValueError(f"Transaction record is missing {exc.args[0]!r}") from exc
        return cls(
            hash=str(tx_hash),
            block_number=block_number,
            index=data.get("index"),
            timestamp=data.get("timestamp"),
            inputs=[dict(item) for item in data.get("inputs") or []],
            outputs_fetched=bool(data.get("outputs_fetched", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Output:
    """A transaction output identified by ``<transaction hash>:<index>``."""

    hash: str
    value: int | float | None = None
    address: str | None = None
    block_number: int | None = None
    transaction_index: int | None = None
    inscriptions: list[str] = field(default_factory=list)

    @property
    def transaction_hash(self) -> str:
        return parse_output_hash(self.hash)[0].lower()

    @property
    def index(self) -> int:
        return parse_output_hash(self.hash)[1]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Output":
        if "hash" not in data:
            raise ValueError("Output record is missing 'hash'")
        return cls(
            hash=str(data["hash"]),
            value=data.get("value"),
            address=data.get("address"),
            block_number=data.get("block_number"),
            transaction_index=data.get("transaction_index"),
            inscriptions=list(data.get("inscriptions") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["transaction_hash"] = self.transaction_hash
        payload["index"] = self.index
        return payload
