from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Union

from eth_hash.auto import keccak

from .errors import EmptyInput, InvalidProof, MerkleConstructionError


logger = logging.getLogger(__name__)

HASH_LENGTH = 32


@dataclass(frozen=True)
class MerkleBuild:
    """Root plus one proof per leaf index; the tree levels are not kept."""

    root: bytes
    proofs: Dict[int, List[bytes]]


def to_hash(value: object) -> bytes:
    """Coerce a ``0x`` hex string or raw bytes into a 32-byte hash."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            text = text[2:]
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise InvalidProof(f"Not a hex string: {value!r}") from exc
    else:
        raise InvalidProof(f"Expected bytes or hex string, got {type(value).__name__}")
    if len(raw) != HASH_LENGTH:
        raise InvalidProof(f"Expected {HASH_LENGTH} bytes, got {len(raw)}: {value!r}")
    return raw


def to_hex(node: bytes) -> str:
    return "0x" + node.hex()


def hash_pair(left: bytes, right: bytes) -> bytes:
    if right < left:
        left, right = right, left
    return keccak(left + right)


def tree_height(leaf_count: int) -> int:
    """Number of levels above the leaves, ``ceil(log2(leaf_count))``."""
    if leaf_count < 1:
        raise EmptyInput("Merkle tree requires at least one leaf")
    return (leaf_count - 1).bit_length()


def proof_length(leaf_count: int, index: int) -> int:
    """Number of siblings in the proof for ``index``.

    An unpaired node is promoted without a sibling, so leaves on the right
    edge of an unbalanced tree get proofs shorter than ``tree_height``.
    """
    if index < 0 or index >= leaf_count:
        raise IndexError("Leaf index out of range")
    length = 0
    width = leaf_count
    while width > 1:
        if index ^ 1 < width:
            length += 1
        index //= 2
        width = (width + 1) // 2
    return length


class MerkleTree:
    def __init__(self, leaves: Sequence[Union[bytes, str]]) -> None:
        if not leaves:
            raise EmptyInput("Merkle tree requires at least one leaf")
        self.leaves = [to_hash(leaf) for leaf in leaves]
        self.layers: List[List[bytes]] = []
        self._build_layers()

    def _build_layers(self) -> None:
        current_layer = self.leaves
        self.layers = [current_layer]
        while len(current_layer) > 1:
            next_layer: List[bytes] = []
            for i in range(0, len(current_layer), 2):
                left = current_layer[i]
                if i + 1 < len(current_layer):
                    next_layer.append(hash_pair(left, current_layer[i + 1]))
                else:
                    # odd node out moves up untouched
                    next_layer.append(left)
            current_layer = next_layer
            self.layers.append(current_layer)

    @property
    def root(self) -> bytes:
        return self.layers[-1][0]

    @property
    def leaf_count(self) -> int:
        return len(self.leaves)

    @property
    def height(self) -> int:
        return len(self.layers) - 1

    def get_proof(self, index: int) -> List[bytes]:
        if index < 0 or index >= len(self.leaves):
            raise IndexError("Leaf index out of range")
        proof: List[bytes] = []
        for layer in self.layers[:-1]:
            layer_length = len(layer)
            is_right_node = index % 2
            pair_index = index - 1 if is_right_node else index + 1
            if pair_index < layer_length:
                proof.append(layer[pair_index])
            index //= 2
        return proof


def process_proof(leaf: bytes, proof: Sequence[bytes]) -> bytes:
    """Fold ``proof`` onto ``leaf`` the way OpenZeppelin's ``MerkleProof`` does."""
    computed = leaf
    for sibling in proof:
        computed = hash_pair(computed, sibling)
    return computed


def verify_proof(leaf: bytes, proof: Sequence[bytes], root: bytes) -> bool:
    return process_proof(leaf, proof) == root


def build(leaves: Sequence[bytes], *, self_check: bool = False) -> MerkleBuild:
    """Build a sorted-pair tree over ``leaves`` and extract every proof.

    With ``self_check`` each proof is replayed against the root before
    returning; a failure there means the construction itself is broken.
    """
    tree = MerkleTree(leaves)
    proofs = {index: tree.get_proof(index) for index in range(tree.leaf_count)}
    root = tree.root
    if self_check:
        for index, proof in proofs.items():
            if not verify_proof(tree.leaves[index], proof, root):
                raise MerkleConstructionError(
                    f"Proof for leaf {index} does not reproduce root {to_hex(root)}"
                )
    logger.debug(
        "Built Merkle tree with %d leaves, height %d, root %s",
        tree.leaf_count,
        tree.height,
        to_hex(root),
    )
    return MerkleBuild(root=root, proofs=proofs)
