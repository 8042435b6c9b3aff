"""Build and check Merkle allowlists for token distributions.

A distribution commits to an ordered recipient list. In an equal
distribution every recipient claims ``default_amount`` and leaves only hash
the address; in a custom distribution each leaf also commits to the
recipient's own amount (falling back to ``default_amount``).
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from eth_hash.auto import keccak

from . import merkle_tree
from .errors import DuplicateAddress, EmptyInput, InvalidAddress, ProofLengthMismatch
from .leaf import encode_leaf, leaf_for, normalize_address, parse_amount
from .recipients import Recipient, load_recipients


logger = logging.getLogger(__name__)

HashLike = Union[bytes, str]
RecipientLike = Union[Recipient, Mapping[str, Optional[str]]]


@dataclass(frozen=True)
class RecipientWithProof:
    address: str
    amount: str
    proof: Tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "proof", tuple(self.proof))


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    proof: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class Distribution:
    root: bytes
    recipients: Tuple[RecipientWithProof, ...]
    custom: bool = False
    default_amount: str = "0"

    def __post_init__(self) -> None:
        object.__setattr__(self, "recipients", tuple(self.recipients))

    @property
    def hex_root(self) -> str:
        return merkle_tree.to_hex(self.root)

    @property
    def leaf_count(self) -> int:
        return len(self.recipients)

    @property
    def proofs(self) -> Dict[str, Tuple[str, ...]]:
        return {recipient.address: recipient.proof for recipient in self.recipients}

    def _locate(self, address: str) -> Optional[RecipientWithProof]:
        for recipient in self.recipients:
            if recipient.address == address:
                return recipient
        return None

    def proof_for(self, address: str) -> Optional[Tuple[str, ...]]:
        recipient = self._locate(normalize_address(address))
        return recipient.proof if recipient else None

    def verify(
        self,
        address: str,
        proof: Optional[Sequence[HashLike]] = None,
        amount: Optional[str] = None,
    ) -> bool:
        """Check ``address`` against this root.

        ``proof`` and ``amount`` default to what was recorded at build time,
        so passing only an address answers "is this account on the list".
        """
        normalized = normalize_address(address)
        recipient = self._locate(normalized)
        if proof is None:
            if recipient is None:
                return False
            proof = recipient.proof
        if amount is None:
            if recipient is None and self.custom:
                # no recorded amount to hash, so the account cannot be on the list
                return False
            if recipient is not None:
                amount = recipient.amount
        return verify(
            normalized,
            proof,
            self.root,
            amount=amount,
            custom=self.custom,
            leaf_count=self.leaf_count,
        )

    def to_dict(self) -> dict:
        return {
            "merkleRoot": self.hex_root,
            "customDistribution": self.custom,
            "defaultAmount": self.default_amount,
            "leafCount": self.leaf_count,
            "proofs": {address: list(proof) for address, proof in self.proofs.items()},
            "recipients": [
                {"address": r.address, "amount": r.amount, "proof": list(r.proof)}
                for r in self.recipients
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "Distribution":
        recipients = [
            RecipientWithProof(
                address=normalize_address(entry["address"]),
                amount=str(entry["amount"]),
                proof=[merkle_tree.to_hex(merkle_tree.to_hash(node)) for node in entry["proof"]],
            )
            for entry in data.get("recipients", [])
        ]
        if not recipients:
            raise EmptyInput("Distribution does not contain any recipients")
        return cls(
            root=merkle_tree.to_hash(data["merkleRoot"]),
            recipients=recipients,
            custom=bool(data.get("customDistribution", False)),
            default_amount=str(data.get("defaultAmount", "0")),
        )


def _coerce(recipient: RecipientLike) -> Recipient:
    if isinstance(recipient, Recipient):
        return recipient
    return Recipient(address=recipient.get("address"), amount=recipient.get("amount"))


def normalize_recipients(
    recipients: Iterable[RecipientLike],
    *,
    custom: bool = False,
    default_amount: str = "0",
) -> List[Tuple[str, str]]:
    """Return ``(address, amount)`` pairs in input order, ready for hashing.

    Amounts are validated here so that a bad row fails before any hashing.
    """
    parse_amount(default_amount)
    seen = set()
    normalized: List[Tuple[str, str]] = []
    for raw in recipients:
        recipient = _coerce(raw)
        address = normalize_address(recipient.address)
        if address in seen:
            raise DuplicateAddress(address)
        seen.add(address)
        if custom and recipient.amount:
            amount = str(recipient.amount).strip()
            parse_amount(amount)
        else:
            amount = default_amount
        normalized.append((address, amount))
    if not normalized:
        raise EmptyInput("No valid addresses found in recipient list")
    return normalized


def build_distribution(
    recipients: Iterable[RecipientLike],
    *,
    custom: bool = False,
    default_amount: str = "0",
    self_check: bool = True,
) -> Distribution:
    normalized = normalize_recipients(recipients, custom=custom, default_amount=default_amount)
    leaves = [
        encode_leaf(address, parse_amount(amount) if custom else None)
        for address, amount in normalized
    ]
    for position, ((address, amount), leaf) in enumerate(zip(normalized, leaves), start=1):
        logger.debug(
            "Leaf %d: %s amount=%s -> %s", position, address, amount, merkle_tree.to_hex(leaf)
        )

    result = merkle_tree.build(leaves, self_check=self_check)
    logger.info(
        "Generated Merkle root %s for %d recipients", merkle_tree.to_hex(result.root), len(leaves)
    )

    entries = [
        RecipientWithProof(
            address=address,
            amount=amount,
            proof=[merkle_tree.to_hex(node) for node in result.proofs[index]],
        )
        for index, (address, amount) in enumerate(normalized)
    ]
    return Distribution(
        root=result.root,
        recipients=entries,
        custom=custom,
        default_amount=default_amount,
    )


def verify(
    address: str,
    proof: Sequence[HashLike],
    root: HashLike,
    *,
    amount: Optional[str] = None,
    custom: bool = False,
    leaf_count: Optional[int] = None,
    index: Optional[int] = None,
) -> bool:
    """Recompute the leaf for ``address`` and fold ``proof`` up to ``root``.

    A proof that is well formed but does not lead to ``root`` is simply
    ``False``. Malformed inputs raise ``InvalidAddress``, ``InvalidAmount``
    or ``InvalidProof``. When the tree size is known, a proof of the wrong
    length raises ``ProofLengthMismatch``.
    """
    leaf = leaf_for(address, amount, custom=custom)
    nodes = [merkle_tree.to_hash(node) for node in proof]
    expected_root = merkle_tree.to_hash(root)

    if leaf_count is not None:
        if index is not None:
            expected = merkle_tree.proof_length(leaf_count, index)
            if len(nodes) != expected:
                raise ProofLengthMismatch(expected, len(nodes))
        else:
            height = merkle_tree.tree_height(leaf_count)
            if len(nodes) > height:
                raise ProofLengthMismatch(height, len(nodes))

    return merkle_tree.verify_proof(leaf, nodes, expected_root)


def check_eligibility(address: str, distribution: Distribution) -> Eligibility:
    """Answer whether ``address`` can claim, returning its proof when it can."""
    try:
        normalized = normalize_address(address)
    except InvalidAddress:
        return Eligibility(eligible=False)
    proof = distribution.proof_for(normalized)
    if proof is None:
        return Eligibility(eligible=False)
    eligible = distribution.verify(normalized)
    return Eligibility(eligible=eligible, proof=proof if eligible else None)


class DistributionCache:
    """Reuse distributions built from identical normalized input.

    Entries are keyed by the Keccak hash of the normalized recipient list,
    the mode and the default amount, so differently cased inputs share an
    entry while reordered inputs do not.
    """

    def __init__(self) -> None:
        self._entries: Dict[bytes, Distribution] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def key_for(
        normalized: Sequence[Tuple[str, str]],
        *,
        custom: bool,
        default_amount: str,
    ) -> bytes:
        payload = json.dumps(
            {
                "custom": custom,
                "defaultAmount": default_amount,
                "recipients": [list(entry) for entry in normalized],
            },
            separators=(",", ":"),
            sort_keys=True,
        )
        return keccak(payload.encode("utf-8"))

    def get_or_build(
        self,
        recipients: Iterable[RecipientLike],
        *,
        custom: bool = False,
        default_amount: str = "0",
    ) -> Distribution:
        recipients = list(recipients)
        normalized = normalize_recipients(recipients, custom=custom, default_amount=default_amount)
        key = self.key_for(normalized, custom=custom, default_amount=default_amount)
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        distribution = build_distribution(
            recipients, custom=custom, default_amount=default_amount
        )
        self._entries[key] = distribution
        return distribution

    def clear(self) -> None:
        self._entries.clear()


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build or check a Merkle allowlist")
    parser.add_argument(
        "--log-level",
        default=os.getenv("MERKLE_LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    build_cmd = commands.add_parser("build", help="Build a distribution from a recipient CSV")
    build_cmd.add_argument("csv", type=Path, help="CSV with an address column and optional amount column")
    build_cmd.add_argument(
        "--custom",
        action="store_true",
        default=_env_flag("MERKLE_CUSTOM_DISTRIBUTION"),
        help="Commit each recipient's amount into its leaf",
    )
    build_cmd.add_argument(
        "--default-amount",
        default=os.getenv("MERKLE_DEFAULT_AMOUNT", "0"),
        help="Amount for recipients without one (default: 0)",
    )
    build_cmd.add_argument(
        "--out",
        type=Path,
        default=Path(os.getenv("MERKLE_OUT", "merkle_distribution.json")),
        help="Where to write the root and proofs",
    )

    verify_cmd = commands.add_parser("verify", help="Check an address against a distribution")
    verify_cmd.add_argument(
        "--distribution",
        type=Path,
        default=Path(os.getenv("MERKLE_OUT", "merkle_distribution.json")),
        help="Distribution JSON written by the build command",
    )
    verify_cmd.add_argument("--address", required=True)
    verify_cmd.add_argument("--amount", help="Claimed amount for custom distributions")
    return parser.parse_args(argv)


def _run_cli(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    if args.command == "build":
        distribution = build_distribution(
            load_recipients(args.csv),
            custom=args.custom,
            default_amount=args.default_amount,
        )
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(json.dumps(distribution.to_dict(), indent=2))
        print(f"Merkle root: {distribution.hex_root}")
        print(f"Proofs written to {args.out}")
        return 0

    distribution = Distribution.from_dict(json.loads(args.distribution.read_text()))
    if args.amount is not None:
        try:
            eligible = distribution.verify(args.address, amount=args.amount)
        except InvalidAddress:
            eligible = False
        result = Eligibility(eligible, distribution.proof_for(args.address) if eligible else None)
    else:
        result = check_eligibility(args.address, distribution)
    print(json.dumps(dataclasses.asdict(result), indent=2))
    return 0 if result.eligible else 1


if __name__ == "__main__":
    sys.exit(_run_cli())
