"""Compact field tokens used for records persisted in the key-value store."""

from __future__ import annotations

from typing import Any, Mapping

FIELD_TOKENS: dict[str, str] = {
    "hash": "h",
    "block_number": "bn",
    "index": "i",
    "inputs": "in",
    "timestamp": "ts",
    "outputs": "o",
    "address": "a",
    "transaction_index": "ti",
    "inscriptions": "ins",
    "outputs_fetched": "of",
    "value": "v",
}

TOKEN_FIELDS: dict[str, str] = {token: name for name, token in FIELD_TOKENS.items()}


def token_for(field: str) -> str:
    """Return the short token for *field*, or *field* itself when unmapped."""

    return FIELD_TOKENS.get(field, field)


def field_for(token: str) -> str:
    """Return the semantic field name for *token*, or *token* when unmapped."""

    return TOKEN_FIELDS.get(token, token)


def encode_fields(values: Mapping[str, Any]) -> dict[str, Any]:
    return {token_for(name): value for name, value in values.items()}


def decode_fields(values: Mapping[str, Any]) -> dict[str, Any]:
    return {field_for(token): value for token, value in values.items()}

