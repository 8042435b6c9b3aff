"""Merkle allowlists for token distributions.

IPFS publishing lives in ``utils.merkle_allowlist.ipfs_uploader`` and is not
imported here.
"""

from .distribution import (
    Distribution,
    DistributionCache,
    Eligibility,
    RecipientWithProof,
    build_distribution,
    check_eligibility,
    verify,
)
from .errors import (
    AllowlistError,
    DuplicateAddress,
    EmptyInput,
    InvalidAddress,
    InvalidAmount,
    InvalidProof,
    MerkleConstructionError,
    ProofLengthMismatch,
    PublishError,
    RecipientFileError,
)
from .leaf import encode_leaf, is_valid_address, leaf_for, normalize_address, parse_amount
from .merkle_tree import MerkleTree, build, proof_length, tree_height
from .recipients import Recipient, load_recipients, parse_recipients

__all__ = [
    "AllowlistError",
    "Distribution",
    "DistributionCache",
    "DuplicateAddress",
    "Eligibility",
    "EmptyInput",
    "InvalidAddress",
    "InvalidAmount",
    "InvalidProof",
    "MerkleConstructionError",
    "MerkleTree",
    "ProofLengthMismatch",
    "PublishError",
    "Recipient",
    "RecipientFileError",
    "RecipientWithProof",
    "build",
    "build_distribution",
    "check_eligibility",
    "encode_leaf",
    "is_valid_address",
    "leaf_for",
    "load_recipients",
    "normalize_address",
    "parse_amount",
    "proof_length",
    "tree_height",
    "verify",
]
