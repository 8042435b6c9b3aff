import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from utils.merkle_allowlist import PublishError, Recipient, build_distribution
from utils.merkle_allowlist import ipfs_uploader
from utils.merkle_allowlist.ipfs_uploader import IPFSUploader


class FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload


@pytest.fixture
def distribution():
    return build_distribution(
        [
            Recipient("0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"),
            Recipient("0x70997970C51812dc3A010C7d01b50e0d17dc79C8"),
        ]
    )


@pytest.fixture(autouse=True)
def no_pinata_env(monkeypatch):
    for name in ("PINATA_JWT", "PINATA_API_KEY", "PINATA_SECRET_API_KEY"):
        monkeypatch.delenv(name, raising=False)


class Recorded(list):
    response = None


@pytest.fixture
def recorder(monkeypatch):
    recorded = Recorded()

    def fake_post(url, **kwargs):
        recorded.append((url, kwargs))
        return recorded.response

    monkeypatch.setattr(ipfs_uploader.requests, "post", fake_post)
    return recorded


def test_pinata_requires_credentials():
    with pytest.raises(ValueError):
        IPFSUploader(mode="pinata")


def test_rejects_unknown_mode():
    with pytest.raises(ValueError):
        IPFSUploader(mode="ftp")


def test_pinata_credentials_from_environment(monkeypatch):
    monkeypatch.setenv("PINATA_JWT", "token")
    assert IPFSUploader().pinata_jwt == "token"


def test_upload_distribution_via_pinata(recorder, distribution):
    recorder.response = FakeResponse(200, {"IpfsHash": "bafyroot", "PinSize": 321})
    uploader = IPFSUploader(pinata_jwt="jwt")

    result = uploader.upload_distribution(distribution)

    url, kwargs = recorder[0]
    assert url == ipfs_uploader.PINATA_UPLOAD_ENDPOINT
    assert kwargs["headers"] == {"Authorization": "Bearer jwt"}
    name, payload, content_type = kwargs["files"]["file"]
    assert name == f"merkle-{distribution.hex_root[2:10]}.json"
    assert content_type == "application/json"
    assert json.loads(payload)["merkleRoot"] == distribution.hex_root
    assert json.loads(kwargs["data"]["pinataOptions"]) == {"cidVersion": 1}
    assert result.cid == "bafyroot"
    assert result.uri == "ipfs://bafyroot"
    assert result.size == 321
    assert result.service == "pinata"


def test_pinata_key_pair_headers(recorder, distribution):
    recorder.response = FakeResponse(200, {"IpfsHash": "cid"})
    uploader = IPFSUploader(pinata_api_key="key", pinata_secret_api_key="secret")
    uploader.upload_distribution(distribution, name="drop.json")
    _, kwargs = recorder[0]
    assert kwargs["headers"] == {"pinata_api_key": "key", "pinata_secret_api_key": "secret"}
    assert kwargs["files"]["file"][0] == "drop.json"


def test_upload_path_via_local_node(recorder, tmp_path):
    target = tmp_path / "merkle.json"
    target.write_text('{"merkleRoot": "0x00"}')
    recorder.response = FakeResponse(200, {"Hash": "QmLocal"})
    uploader = IPFSUploader(mode="local", ipfs_api_url="http://ipfs:5001/api/v0/add", cid_version=0)

    result = uploader.upload_path(target)

    url, kwargs = recorder[0]
    assert url == "http://ipfs:5001/api/v0/add"
    assert kwargs["params"] == {"cid-version": "0", "pin": "true"}
    assert result.cid == "QmLocal"
    assert result.size == target.stat().st_size
    assert result.service == "local"


def test_failed_upload_raises(recorder, distribution):
    recorder.response = FakeResponse(500, text="boom")
    uploader = IPFSUploader(mode="local")
    with pytest.raises(PublishError, match="500 boom"):
        uploader.upload_distribution(distribution)


def test_upload_path_rejects_missing_and_directories(tmp_path):
    uploader = IPFSUploader(mode="local")
    with pytest.raises(FileNotFoundError):
        uploader.upload_path(tmp_path / "missing.json")
    with pytest.raises(IsADirectoryError):
        uploader.upload_path(tmp_path)


def test_core_package_does_not_load_requests():
    root = Path(__file__).resolve().parents[1]
    env = dict(os.environ, PYTHONPATH=str(root))
    code = "import sys, utils.merkle_allowlist; sys.exit('requests' in sys.modules)"
    assert subprocess.run([sys.executable, "-c", code], cwd=root, env=env).returncode == 0
