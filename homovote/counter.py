"""Election counter: rebuilds the election secret key and decrypts the results."""

from __future__ import annotations

import argparse
import os
import re
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from homovote import bfv, pki, shamir

CHECKSUM_INDEX = "checksum_accumulator.txt"
RECONSTRUCTED_SHARES = "shares_reconstructed.txt"
VALID_MESSAGE = "Checksums verificados! Resultados das Eleições válidos!"
INVALID_MESSAGE = "Checksums incorretos! Resultados das Eleições inválidos!"

_INDEX_LINE = re.compile(r"voter([+-]?\d+):(\S+)")

PathLike = str | os.PathLike


@dataclass(frozen=True)
class CountResult:
    """Decrypted checksums per voter and vote totals per candidate."""

    candidates: int
    checksums: dict[int, int]
    totals: dict[int, int]

    @property
    def valid(self) -> bool:
        """True when every voter's checksum equals the number of candidates."""
        return all(value == self.candidates for value in self.checksums.values())


def _first_line(path: Path) -> str:
    with open(path, encoding="utf-8") as handle:
        return handle.readline()


def reconstruct_secret_key(root: PathLike, trustees: int) -> bfv.SecretKey:
    """Gather the first share of each trustee and rebuild the election secret key."""
    if trustees < 1:
        raise ValueError("at least one trustee is needed")
    base = Path(root)
    shares = [
        _first_line(base / "Trustees" / f"trustee{number}" / f"shares{number}.txt")
        for number in range(1, trustees + 1)
    ]
    counter = base / "Counter"
    counter.mkdir(parents=True, exist_ok=True)
    (counter / RECONSTRUCTED_SHARES).write_text("".join(shares), encoding="utf-8")
    return bfv.SecretKey.from_bytes(shamir.combine(shares))


def _decrypt_file(secret_key: bfv.SecretKey, path: Path) -> int:
    return bfv.decrypt(secret_key, bfv.Ciphertext.from_bytes(path.read_bytes()))


def _checksum_files(path: Path, voters: int) -> list[str]:
    lines = path.read_text(encoding="utf-8").splitlines()
    if len(lines) < voters:
        raise ValueError(f"{path} lists fewer checksums than voters")
    names = []
    for line in lines[:voters]:
        match = _INDEX_LINE.match(line)
        if match is None:
            raise ValueError(f"malformed checksum entry: {line!r}")
        names.append(match.group(2))
    return names


def run_count(root: PathLike) -> CountResult:
    """Verify the election parameters, then decrypt checksums and candidate totals."""
    base = Path(root)
    counter = base / "Counter"
    ca_cert = pki.load_certificate(counter / "root-ca.crt")
    candidates = pki.read_signed_number(counter, "N_candi", ca_cert)
    voters = pki.read_signed_number(counter, "N_voter", ca_cert)
    trustees = pki.read_signed_number(counter, "N_trustees", ca_cert)

    secret_key = reconstruct_secret_key(base, trustees)

    checksums = {
        voter: _decrypt_file(secret_key, counter / name)
        for voter, name in enumerate(_checksum_files(counter / CHECKSUM_INDEX, voters), start=1)
    }
    totals = {
        candidate: _decrypt_file(secret_key, counter / f"Candidate{candidate}")
        for candidate in range(1, candidates + 1)
    }
    return CountResult(candidates, checksums, totals)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Decrypt the election results.")
    parser.add_argument("--root", default=".", help="directory that holds the election")
    args = parser.parse_args(argv)
    output = sys.stdout

    try:
        result = run_count(args.root)
    except pki.SignatureError:
        output.write("ERROR verifying signature!\n")
        return 1
    except (OSError, ValueError) as exc:
        output.write(f"ERROR: {exc}\n")
        return 1

    output.write("\nChecksums:\n")
    for voter, checksum in result.checksums.items():
        output.write(f"Voter {voter} checksum: {checksum}\n")
    output.write(f"\n{VALID_MESSAGE if result.valid else INVALID_MESSAGE}\n\n")
    for candidate, total in result.totals.items():
        output.write(f"Candidate{candidate}:{total}\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())