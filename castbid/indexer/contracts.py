#!/usr/bin/env python3
"""
Contract ABIs, event topics and identifier normalization helpers.

Cast hashes are emitted on-chain as left-padded bytes32 values but stored and
queried in their 20-byte form. Every lookup goes through format_cast_hash.
"""

import os
import json
import logging
import string
from typing import Any, Dict, List

from web3 import Web3

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

ABI_DIR = os.path.join(os.path.dirname(__file__), "abis")

_HEX_DIGITS = set(string.hexdigits)


def load_abi(path: str) -> List[Dict[str, Any]]:
    """Load an ABI from a JSON file (plain list or Brownie-style artifact)"""
    full_path = path if os.path.isabs(path) else os.path.join(os.path.dirname(__file__), path)
    with open(full_path, 'r') as f:
        data = json.load(f)

    if isinstance(data, dict) and 'abi' in data:
        return data['abi']
    if isinstance(data, list):
        return data
    raise ValueError(f"Invalid ABI format in {full_path}")


def event_signature(event_abi: Dict[str, Any]) -> str:
    """Canonical signature, e.g. BidPlaced(bytes32,address,uint96,uint256,address)"""
    types = ",".join(_canonical_type(arg) for arg in event_abi['inputs'])
    return f"{event_abi['name']}({types})"


def _canonical_type(arg: Dict[str, Any]) -> str:
    if arg['type'].startswith('tuple'):
        inner = ",".join(_canonical_type(c) for c in arg['components'])
        return f"({inner}){arg['type'][len('tuple'):]}"
    return arg['type']


def event_topic(event_abi: Dict[str, Any]) -> str:
    """topic0 for an event ABI entry as a lower-case 0x-prefixed hex string"""
    return Web3.to_hex(Web3.keccak(text=event_signature(event_abi))).lower()


def event_topics(abi: List[Dict[str, Any]], names: List[str]) -> Dict[str, str]:
    """Map topic0 -> event name for the whitelisted events of an ABI"""
    by_name = {entry['name']: entry for entry in abi if entry.get('type') == 'event'}
    topics = {}
    for name in names:
        if name not in by_name:
            raise ValueError(f"Event {name} not present in ABI")
        topics[event_topic(by_name[name])] = name
    return topics


def to_hex_str(value: Any) -> str:
    """Render bytes/HexBytes/str as a 0x-prefixed hex string"""
    if isinstance(value, (bytes, bytearray)):
        return '0x' + bytes(value).hex()
    hx = getattr(value, 'hex', None)
    if callable(hx) and not isinstance(value, str):
        s = hx()
        return s if s.startswith('0x') else f'0x{s}'
    s = str(value)
    return s if s.startswith('0x') else f'0x{s}'


def normalize_tx_hash(tx_hash: Any) -> str:
    return to_hex_str(tx_hash).lower()


def format_cast_hash(cast_hash: Any) -> str:
    """Canonical 20-byte cast hash: last 40 hex digits, lower-case, 0x-prefixed"""
    clean = to_hex_str(cast_hash)[2:]
    if not clean or any(c not in _HEX_DIGITS for c in clean):
        raise ValueError(f"Invalid cast hash: {cast_hash!r}")
    if len(clean) > 64:
        raise ValueError(f"Cast hash too long: {cast_hash!r}")
    return '0x' + clean[-40:].rjust(40, '0').lower()


def pad_cast_hash(cast_hash: Any) -> str:
    """bytes32 form of a cast hash for contract calls"""
    return '0x' + format_cast_hash(cast_hash)[2:].rjust(64, '0')


def normalize_address(address_raw: Any) -> str:
    """Checksum an address, handling the YAML hex-as-int parsing quirk"""
    if isinstance(address_raw, int):
        if address_raw <= 0:
            logger.warning(f"Invalid integer address: {address_raw}")
            return ZERO_ADDRESS
        address_hex = f"0x{address_raw:040x}"
    else:
        address_hex = str(address_raw).strip()

    try:
        return Web3.to_checksum_address(address_hex)
    except ValueError as e:
        logger.warning(f"Failed to checksum address {address_hex}, using lowercase: {e}")
        return address_hex.lower()


def is_valid_address(address_raw: Any) -> bool:
    if address_raw is None:
        return False
    if isinstance(address_raw, int):
        return address_raw > 0
    return Web3.is_address(str(address_raw).strip().lower())


def short(value: str) -> str:
    """Shortened hash/address for log lines"""
    return f"{value[:5]}..{value[-4:]}" if value and len(value) > 12 else str(value)
