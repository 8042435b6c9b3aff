"""Recipient list ingestion from CSV exports.

Expected header: ``address`` (required) and ``amount`` (optional). Rows with
no address or an invalid one are skipped rather than failing the whole file.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .errors import RecipientFileError
from .leaf import is_valid_address


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    address: str
    amount: Optional[str] = None


def parse_recipients(text: str) -> List[Recipient]:
    reader = csv.DictReader(io.StringIO(text), skipinitialspace=True)
    fieldnames = [name.strip().lower() for name in reader.fieldnames or []]
    if "address" not in fieldnames:
        raise RecipientFileError("CSV needs an 'address' column")
    reader.fieldnames = fieldnames

    recipients: List[Recipient] = []
    for row in reader:
        address = (row.get("address") or "").strip()
        if not address:
            continue
        if not is_valid_address(address):
            logger.warning("Invalid address skipped: %s", address)
            continue
        amount = (row.get("amount") or "").strip()
        recipients.append(Recipient(address=address, amount=amount or None))

    logger.info("Parsed %d valid recipients from CSV", len(recipients))
    return recipients


def load_recipients(path: Path) -> List[Recipient]:
    if not path.exists():
        raise FileNotFoundError(path)
    return parse_recipients(path.read_text(encoding="utf-8-sig"))
