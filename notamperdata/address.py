"""
notamperdata SDK - Address Derivation

The anchoring destination is the enterprise address of the spending
validator. The validator itself (currently always-allow) is opaque here:
only its compiled code and hash are read, so a real validator can replace
it without touching the protocol.
"""

import hashlib
import json
import os
from dataclasses import dataclass
from enum import Enum

import bech32

from .errors import ConfigurationError


class Network(Enum):
    """Cardano networks: (blockfrost url, network id, address prefix)"""
    PREVIEW = ("https://cardano-preview.blockfrost.io/api/v0", 0, "addr_test")
    PREPROD = ("https://cardano-preprod.blockfrost.io/api/v0", 0, "addr_test")
    MAINNET = ("https://cardano-mainnet.blockfrost.io/api/v0", 1, "addr")

    @property
    def blockfrost_url(self) -> str:
        return self.value[0]

    @property
    def network_id(self) -> int:
        return self.value[1]

    @property
    def hrp(self) -> str:
        return self.value[2]

    @classmethod
    def parse(cls, name: str) -> "Network":
        """Accept 'Preview', 'preprod', 'MAINNET', ..."""
        try:
            return cls[name.strip().upper()]
        except (KeyError, AttributeError):
            supported = [n.name.capitalize() for n in cls]
            raise ConfigurationError(f"Unsupported network: {name}. Supported: {supported}")


# Script hash prefix per Plutus language version
LANGUAGE_TAGS = {
    "PlutusV1": 0x01,
    "PlutusV2": 0x02,
    "PlutusV3": 0x03,
}

# Header nibble 0b0111: enterprise address, script payment credential
SCRIPT_ENTERPRISE_HEADER = 0x70

DEFAULT_VALIDATOR_TITLE = "notamperdata_registry.notamperdata_registry.spend"


@dataclass(frozen=True)
class AuthorizationScript:
    """
    Compiled spending validator.

    Structure:
      - compiled_code: hex CBOR from the blueprint
      - version: Plutus language version
      - declared_hash: hash recorded in the blueprint (authoritative if set)
    """
    compiled_code: str
    version: str = "PlutusV2"
    declared_hash: str = ""

    def script_hash(self) -> str:
        """blake2b-224 script hash as hex."""
        if self.declared_hash:
            return self.declared_hash.lower()
        if self.version not in LANGUAGE_TAGS:
            raise ConfigurationError(f"Unsupported script version: {self.version}")
        try:
            code = bytes.fromhex(self.compiled_code)
        except ValueError:
            raise ConfigurationError("compiled_code is not valid hex")
        tagged = bytes([LANGUAGE_TAGS[self.version]]) + code
        return hashlib.blake2b(tagged, digest_size=28).hexdigest()

    @classmethod
    def from_blueprint(cls, path: str, title: str = DEFAULT_VALIDATOR_TITLE,
                       version: str = "PlutusV2") -> "AuthorizationScript":
        """
        Load a validator from an Aiken plutus.json blueprint.

        Raises:
            ConfigurationError: file missing, unreadable, or no such validator
        """
        if not os.path.exists(path):
            raise ConfigurationError(f"{path} not found. Please run 'aiken build' first.")
        try:
            with open(path, "r") as f:
                blueprint = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Failed to read blueprint {path}: {e}")

        for validator in blueprint.get("validators", []):
            if validator.get("title") == title:
                plutus_version = blueprint.get("preamble", {}).get("plutusVersion")
                if plutus_version:
                    version = f"Plutus{plutus_version.upper()}"
                return cls(
                    compiled_code=validator["compiledCode"],
                    version=version,
                    declared_hash=validator.get("hash", "")
                )

        raise ConfigurationError(f"Validator {title} not found in {path}")


def derive_address(script: AuthorizationScript, network: Network) -> str:
    """
    Derive the bech32 enterprise script address.

    Pure function of its inputs; callers derive once and cache.

    Args:
        script: Compiled authorization script
        network: Target network

    Returns:
        addr_test1... (testnets) or addr1... (mainnet)
    """
    try:
        script_hash = bytes.fromhex(script.script_hash())
    except ValueError:
        raise ConfigurationError("Script hash is not valid hex")
    if len(script_hash) != 28:
        raise ConfigurationError(f"Script hash must be 28 bytes, got {len(script_hash)}")

    payload = bytes([SCRIPT_ENTERPRISE_HEADER | network.network_id]) + script_hash
    words = bech32.convertbits(payload, 8, 5)
    return bech32.bech32_encode(network.hrp, words)
