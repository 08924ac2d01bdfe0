"""Election set-up: authority keys, voter credentials, trustee shares and weights."""

from __future__ import annotations

import argparse
import os
import random
import shutil
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from homovote import bfv, pki, shamir
from homovote.common import INVALID_VALUE_MESSAGE, ask_int, random_file_name

ROOT_KEY_BITS = 2048
VOTER_KEY_BITS = 1024
ELECTION_DIRECTORIES = ("Admin", "Voters", "Tally", "Trustees", "Ballot", "Counter")


def _copy(source: Path, destination: Path) -> None:
    shutil.copyfile(source, destination / source.name)


def _copy_signed(source: Path, destination: Path) -> None:
    _copy(source, destination)
    _copy(Path(os.fspath(source) + pki.SIGNATURE_SUFFIX), destination)


def _write_signed_number(key, path: Path, value: int) -> Path:
    path.write_text(f"{value}\n")
    pki.sign_file(key, path)
    return path


def _validate(candidates: int, voters: int, trustees: int, weights: list[int]) -> None:
    if candidates <= 0:
        raise ValueError("the number of candidates must be positive")
    if voters <= 0:
        raise ValueError("the number of voters must be positive")
    if trustees < 2:
        raise ValueError("at least two trustees are needed")
    if len(weights) != voters:
        raise ValueError("there must be one weight for each voter")
    limit = bfv.default_parameters().plain_modulus
    for weight in weights:
        if not 0 <= weight < limit:
            raise ValueError(f"weight {weight} is outside [0, {limit})")


def setup_election(
    root: str | os.PathLike,
    candidates: int,
    voters: int,
    trustees: int,
    weights: Sequence[int],
    rng: random.Random | None = None,
) -> dict[int, str]:
    """Create a fresh election under `root`.

    Returns the name of the encrypted weight file for each voter number.
    """
    weight_list = [int(w) for w in weights]
    _validate(candidates, voters, trustees, weight_list)

    base = Path(root)
    for name in ELECTION_DIRECTORIES:
        shutil.rmtree(base / name, ignore_errors=True)
    admin, ballot, counter, trustees_dir, tally, voters_dir = (
        base / name for name in ("Admin", "Ballot", "Counter", "Trustees", "Tally", "Voters")
    )
    for directory in (admin, ballot, counter, trustees_dir, tally, voters_dir):
        directory.mkdir(parents=True)

    ca_key = pki.generate_private_key(ROOT_KEY_BITS)
    ca_cert = pki.create_root_certificate(ca_key)
    pki.save_key(ca_key, admin / "root-ca.key")
    ca_cert_path = admin / "root-ca.crt"
    pki.save_certificate(ca_cert, ca_cert_path)
    _copy(ca_cert_path, tally)

    for voter in range(1, voters + 1):
        voter_key = pki.generate_private_key(VOTER_KEY_BITS)
        key_path = admin / f"voter{voter}.key"
        pki.save_key(voter_key, key_path)
        cert = pki.issue_voter_certificate(ca_key, ca_cert, voter, voter_key)
        pki.save_certificate(cert, admin / f"voter{voter}.crt")
        pki.sign_file(ca_key, key_path)

    public_key, secret_key = bfv.generate_keys(bfv.default_parameters())
    public_key_path = admin / "election_public_key"
    public_key_path.write_bytes(public_key.to_bytes())

    n_voter = _write_signed_number(ca_key, admin / "N_voter.txt", voters)
    n_candi = _write_signed_number(ca_key, admin / "N_candi.txt", candidates)
    n_trustees = _write_signed_number(ca_key, admin / "N_trustees.txt", trustees)
    pki.sign_file(ca_key, public_key_path)

    _copy(ca_cert_path, voters_dir)
    for voter in range(1, voters + 1):
        target = voters_dir / f"voter{voter}"
        target.mkdir()
        _copy_signed(public_key_path, target)
        key_path = admin / f"voter{voter}.key"
        cert_path = admin / f"voter{voter}.crt"
        _copy_signed(key_path, target)
        _copy(cert_path, target)
        Path(os.fspath(key_path) + pki.SIGNATURE_SUFFIX).unlink()
        key_path.unlink()
        cert_path.unlink()

    shares = shamir.split(secret_key.to_bytes(), trustees, trustees)
    for number, share in enumerate(shares, start=1):
        trustee = trustees_dir / f"trustee{number}"
        trustee.mkdir()
        (trustee / f"shares{number}.txt").write_text(f"{share}\n")
    del secret_key

    _copy_signed(n_candi, voters_dir)
    _copy_signed(n_voter, voters_dir)

    weight_files: dict[int, str] = {}
    lines = []
    for voter, weight in enumerate(weight_list, start=1):
        name = random_file_name(rng)
        (tally / name).write_bytes(bfv.encrypt(public_key, weight).to_bytes())
        weight_files[voter] = name
        lines.append(f"voter{voter}: {name}\n")
    (tally / "weights.txt").write_text("".join(lines))

    _copy_signed(n_candi, tally)
    _copy_signed(n_voter, tally)
    _copy(public_key_path, tally)

    _copy_signed(n_candi, counter)
    _copy_signed(n_voter, counter)
    _copy_signed(n_trustees, counter)
    _copy(ca_cert_path, counter)

    return weight_files


def _stdin_line() -> str:
    line = sys.stdin.readline()
    if not line:
        raise EOFError("no more input")
    return line


def _ask_weight(voter: int, output: TextIO) -> int:
    limit = bfv.default_parameters().plain_modulus
    while True:
        weight = ask_int(f"\nPeso para voter{voter}: ", 0, _stdin_line, output)
        if weight < limit:
            return weight
        output.write(INVALID_VALUE_MESSAGE)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Set up a new election.")
    parser.add_argument("--root", default=".", help="directory that holds the election")
    args = parser.parse_args(argv)
    output = sys.stdout
    try:
        candidates = ask_int("\nNúmero de candidatos: ", 1, _stdin_line, output)
        voters = ask_int("\nNúmero de voters: ", 1, _stdin_line, output)
        trustees = ask_int("\nNúmero de trustees: ", 2, _stdin_line, output)
        weights = [_ask_weight(voter, output) for voter in range(1, voters + 1)]
    except EOFError:
        output.write("\nERROR\n")
        return 1
    try:
        setup_election(args.root, candidates, voters, trustees, weights)
    except (OSError, ValueError) as exc:
        output.write(f"ERROR: {exc}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())