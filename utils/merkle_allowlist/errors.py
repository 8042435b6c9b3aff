from __future__ import annotations


class AllowlistError(ValueError):
    """Base class for every failure raised by the allowlist tooling."""


class InvalidAddress(AllowlistError):
    def __init__(self, address: object, reason: str = "not a valid EVM address") -> None:
        self.address = address
        super().__init__(f"Invalid address {address!r}: {reason}")


class InvalidAmount(AllowlistError):
    def __init__(self, amount: object, reason: str = "not a valid token amount") -> None:
        self.amount = amount
        super().__init__(f"Invalid amount {amount!r}: {reason}")


class EmptyInput(AllowlistError):
    """Raised when there is nothing to commit to."""


class DuplicateAddress(AllowlistError):
    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"Address {address} appears more than once in the recipient list")


class InvalidProof(AllowlistError):
    """A proof element or root is not a 32-byte hash."""


class ProofLengthMismatch(AllowlistError):
    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Proof has {actual} elements but the tree expects {expected};"
            " it was probably generated against a different tree"
        )


class MerkleConstructionError(AllowlistError):
    """A freshly built proof failed to verify against its own root."""


class RecipientFileError(AllowlistError):
    """The recipient CSV could not be interpreted."""


class PublishError(AllowlistError):
    """Uploading a distribution to IPFS failed."""
