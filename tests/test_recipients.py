import logging

import pytest

from utils.merkle_allowlist import Recipient, RecipientFileError, load_recipients, parse_recipients

ALICE = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
BOB = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def test_parses_address_and_optional_amount():
    text = f"address,amount\n{ALICE}, 12.5 \n{BOB},\n"
    assert parse_recipients(text) == [Recipient(ALICE, "12.5"), Recipient(BOB, None)]


def test_address_only_file():
    assert parse_recipients(f"address\n{ALICE}\n") == [Recipient(ALICE)]


def test_header_is_case_insensitive():
    assert parse_recipients(f" Address , AMOUNT\n{ALICE},3\n") == [Recipient(ALICE, "3")]


def test_skips_blank_and_invalid_rows(caplog):
    text = f"address,amount\n,5\n0xdeadbeef,1\n\n  {BOB}  ,2\n"
    with caplog.at_level(logging.WARNING):
        recipients = parse_recipients(text)
    assert recipients == [Recipient(BOB, "2")]
    assert "Invalid address skipped: 0xdeadbeef" in caplog.text


def test_missing_address_column():
    with pytest.raises(RecipientFileError):
        parse_recipients("wallet,amount\n0x0,1\n")
    with pytest.raises(RecipientFileError):
        parse_recipients("")


def test_load_recipients_handles_bom(tmp_path):
    path = tmp_path / "list.csv"
    path.write_text(f"address,amount\n{ALICE},1\n", encoding="utf-8-sig")
    assert load_recipients(path) == [Recipient(ALICE, "1")]


def test_load_recipients_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_recipients(tmp_path / "absent.csv")


def test_skips_address_with_bad_checksum(caplog):
    bad = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAeD"
    with caplog.at_level(logging.WARNING):
        recipients = parse_recipients(f"address\n{bad}\n{ALICE}\n")
    assert recipients == [Recipient(ALICE)]
    assert bad in caplog.text
