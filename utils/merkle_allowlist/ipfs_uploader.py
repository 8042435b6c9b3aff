"""Pin distribution files to IPFS so claim pages can fetch proofs by CID."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
from pathlib import Path
from typing import Optional

import requests

from .distribution import Distribution
from .errors import PublishError


logger = logging.getLogger(__name__)

PINATA_BASE_URL = "https://api.pinata.cloud"
PINATA_UPLOAD_ENDPOINT = f"{PINATA_BASE_URL}/pinning/pinFileToIPFS"
LOCAL_IPFS_API = "http://127.0.0.1:5001/api/v0/add"


@dataclasses.dataclass(slots=True)
class UploadResult:
    """Capture information returned after uploading a file to IPFS."""

    cid: str
    name: str
    size: int
    uri: str
    service: str


class IPFSUploader:
    """Publish through Pinata or a local IPFS HTTP API."""

    def __init__(
        self,
        *,
        mode: str = "pinata",
        pinata_jwt: Optional[str] = None,
        pinata_api_key: Optional[str] = None,
        pinata_secret_api_key: Optional[str] = None,
        ipfs_api_url: str = LOCAL_IPFS_API,
        cid_version: int = 1,
        timeout: int = 120,
    ) -> None:
        if mode not in {"pinata", "local"}:
            raise ValueError("mode must be 'pinata' or 'local'")
        self.mode = mode
        self.pinata_jwt = pinata_jwt or os.getenv("PINATA_JWT")
        self.pinata_api_key = pinata_api_key or os.getenv("PINATA_API_KEY")
        self.pinata_secret_api_key = (
            pinata_secret_api_key or os.getenv("PINATA_SECRET_API_KEY")
        )
        self.ipfs_api_url = ipfs_api_url
        self.cid_version = cid_version
        self.timeout = timeout
        if self.mode == "pinata" and not self._has_pinata_credentials:
            raise ValueError(
                "Pinata mode selected but no credentials provided."
                " Set PINATA_JWT or both PINATA_API_KEY and PINATA_SECRET_API_KEY."
            )

    @property
    def _has_pinata_credentials(self) -> bool:
        if self.pinata_jwt:
            return True
        return bool(self.pinata_api_key and self.pinata_secret_api_key)

    def upload_distribution(
        self,
        distribution: Distribution,
        *,
        name: Optional[str] = None,
    ) -> UploadResult:
        name = name or f"merkle-{distribution.hex_root[2:10]}.json"
        payload = json.dumps(distribution.to_dict(), indent=2).encode("utf-8")
        return self.upload_bytes(name, payload)

    def upload_path(self, target: Path) -> UploadResult:
        if not target.exists():
            raise FileNotFoundError(target)
        if target.is_dir():
            raise IsADirectoryError(target)
        return self.upload_bytes(target.name, target.read_bytes())

    def upload_bytes(self, name: str, payload: bytes) -> UploadResult:
        if self.mode == "pinata":
            result = self._upload_via_pinata(name, payload)
        else:
            result = self._upload_via_local_node(name, payload)
        logger.info("Pinned %s as %s via %s", name, result.cid, result.service)
        return result

    def _upload_via_pinata(self, name: str, payload: bytes) -> UploadResult:
        headers = {}
        if self.pinata_jwt:
            headers["Authorization"] = f"Bearer {self.pinata_jwt}"
        else:
            headers["pinata_api_key"] = self.pinata_api_key  # type: ignore[assignment]
            headers["pinata_secret_api_key"] = (
                self.pinata_secret_api_key  # type: ignore[assignment]
            )
        metadata = json.dumps({"name": name})
        options = json.dumps({"cidVersion": self.cid_version})
        response = requests.post(
            PINATA_UPLOAD_ENDPOINT,
            files={"file": (name, payload, "application/json")},
            data={"pinataMetadata": metadata, "pinataOptions": options},
            headers=headers,
            timeout=self.timeout,
        )
        if response.status_code != 200:
            raise PublishError(
                f"Pinata upload failed for {name}: {response.status_code} {response.text}"
            )
        body = response.json()
        cid = body["IpfsHash"]
        return UploadResult(
            cid=cid,
            name=name,
            size=int(body.get("PinSize", len(payload))),
            uri=f"ipfs://{cid}",
            service="pinata",
        )

    def _upload_via_local_node(self, name: str, payload: bytes) -> UploadResult:
        params = {"cid-version": str(self.cid_version), "pin": "true"}
        response = requests.post(
            self.ipfs_api_url,
            params=params,
            files={"file": (name, payload)},
            timeout=self.timeout,
        )
        if response.status_code != 200:
            raise PublishError(
                f"Local IPFS upload failed for {name}: {response.status_code} {response.text}"
            )
        cid = response.json()["Hash"]
        return UploadResult(
            cid=cid,
            name=name,
            size=len(payload),
            uri=f"ipfs://{cid}",
            service="local",
        )


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Pin a Merkle distribution JSON to IPFS via Pinata or a local node",
    )
    parser.add_argument(
        "distribution",
        type=Path,
        help="Distribution JSON written by the build command",
    )
    parser.add_argument(
        "--mode",
        choices=["pinata", "local"],
        default=os.getenv("IPFS_MODE", "pinata"),
        help="Uploader backend (default: pinata)",
    )
    parser.add_argument(
        "--ipfs-api-url",
        default=os.getenv("IPFS_API_URL", LOCAL_IPFS_API),
        help="HTTP API endpoint when using a local IPFS node",
    )
    parser.add_argument(
        "--cid-version",
        type=int,
        default=int(os.getenv("IPFS_CID_VERSION", "1")),
        help="CID version to request from the node",
    )
    return parser.parse_args()


def _run_cli() -> None:
    args = _parse_args()
    logging.basicConfig(level=os.getenv("MERKLE_LOG_LEVEL", "INFO").upper())
    # refuse to publish anything that does not parse as a distribution
    distribution = Distribution.from_dict(json.loads(args.distribution.read_text()))
    uploader = IPFSUploader(
        mode=args.mode,
        ipfs_api_url=args.ipfs_api_url,
        cid_version=args.cid_version,
    )
    result = uploader.upload_distribution(distribution, name=args.distribution.name)
    print(f"Merkle root: {distribution.hex_root}")
    print(json.dumps(dataclasses.asdict(result)))


if __name__ == "__main__":
    _run_cli()
