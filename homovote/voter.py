"""Voter application: encrypts a voter's choices and adds a signed line to the ballot box."""

from __future__ import annotations

import argparse
import os
import random
import re
import shutil
import sys
import time
from collections import Counter
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TextIO

from homovote import bfv, pki
from homovote.common import random_file_name

BALLOT_BOX = "Urna.txt"
INVALID_VOTER_MESSAGE = "Número de votante inválido\n"

_HEAD = re.compile(r"voter([+-]?\d+);([+-]?\d+);")
_ENTRY = re.compile(r"Candidate([+-]?\d+):([^;]+);")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def count_votes(choices: Iterable[int], candidates: int) -> list[tuple[int, int]]:
    """Count the votes for each candidate.

    Candidates 1..candidates come first, each with its count (zero included);
    numbers that name no candidate follow in order of first appearance.
    """
    if candidates <= 0:
        raise ValueError("the number of candidates must be positive")
    picks = [int(choice) for choice in choices]
    if len(picks) > candidates:
        raise ValueError("a voter may cast at most one vote per candidate")
    if 0 in picks:
        raise ValueError("0 is not a candidate")
    counts = Counter(picks)
    result = [(candidate, counts.get(candidate, 0)) for candidate in range(1, candidates + 1)]
    unknown = dict.fromkeys(pick for pick in picks if not 1 <= pick <= candidates)
    result.extend((pick, counts[pick]) for pick in unknown)
    return result


def sign_line(voter_dir: str | os.PathLike, ballot_dir: str | os.PathLike, line: str) -> str:
    """Sign a ballot line and return it with its Signature entry appended.

    The signed text replaces every vote file name by the SHA-1 of that file.
    The vote files are removed from the voter directory and the signature is
    stored in the ballot directory under a random name.
    """
    vdir, bdir = Path(voter_dir), Path(ballot_dir)
    head = _HEAD.match(line)
    if head is None:
        raise ValueError(f"malformed ballot line: {line!r}")
    voter_id, timestamp = int(head.group(1)), int(head.group(2))
    signed = [f"voter{voter_id};{timestamp};"]
    position = head.end()
    while (entry := _ENTRY.match(line, position)) is not None:
        candidate, name = int(entry.group(1)), entry.group(2)
        vote_file = vdir / name
        signed.append(f"Candidate{candidate}:{pki.sha1_file(vote_file)};")
        vote_file.unlink()
        position = entry.end()
    key = pki.load_key(vdir / f"voter{voter_id}.key")
    signature_name = random_file_name()
    (bdir / signature_name).write_bytes(pki.sign(key, "".join(signed).encode()))
    return f"{line}Signature:{signature_name};"


def cast_vote(
    root: str | os.PathLike,
    voter_id: int,
    choices: Iterable[int],
    timestamp: int | None = None,
    rng: random.Random | None = None,
) -> str:
    """Cast the vote of `voter_id` and return the line added to the ballot box."""
    base = Path(root)
    voters_dir = base / "Voters"
    ballot = base / "Ballot"
    ca_cert = pki.load_certificate(voters_dir / "root-ca.crt")

    n_voters = pki.read_signed_number(voters_dir, "N_voter", ca_cert)
    if not 1 <= voter_id <= n_voters:
        raise ValueError(f"voter number {voter_id} is not between 1 and {n_voters}")
    n_candidates = pki.read_signed_number(voters_dir, "N_candi", ca_cert)
    tallies = count_votes(choices, n_candidates)

    voter_dir = voters_dir / f"voter{voter_id}"
    cert_path = voter_dir / f"voter{voter_id}.crt"
    pki.verify_certificate(ca_cert, pki.load_certificate(cert_path))
    pki.verify_file(ca_cert, voter_dir / f"voter{voter_id}.key")
    public_key_path = voter_dir / "election_public_key"
    pki.verify_file(ca_cert, public_key_path)
    public_key = bfv.PublicKey.from_bytes(public_key_path.read_bytes())

    stamp = int(time.time()) if timestamp is None else int(timestamp)
    parts = [f"voter{voter_id};{stamp};"]
    for candidate, count in tallies:
        name = random_file_name(rng)
        vote_file = voter_dir / name
        vote_file.write_bytes(bfv.encrypt(public_key, count).to_bytes())
        shutil.copyfile(vote_file, ballot / name)
        parts.append(f"Candidate{candidate}:{name};")

    line = sign_line(voter_dir, ballot, "".join(parts))
    with open(ballot / BALLOT_BOX, "a", encoding="utf-8") as urn:
        urn.write(f"{line}\n")
    shutil.copyfile(cert_path, ballot / cert_path.name)
    return line


def _stdin_line() -> str:
    line = sys.stdin.readline()
    if not line:
        raise EOFError("no more input")
    return line


def _leading_int(text: str) -> int | None:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else None


def _ask_voter(n_voters: int, output: TextIO) -> int:
    while True:
        output.write("\nEscreva o seu número de votante: ")
        output.flush()
        value = _leading_int(_stdin_line())
        if value is None:
            continue
        if 1 <= value <= n_voters:
            return value
        output.write(INVALID_VOTER_MESSAGE)


def _ask_choices(n_candidates: int, output: TextIO) -> list[int]:
    choices: list[int] = []
    while len(choices) < n_candidates:
        output.write('\nEscreva o número do candidato a votar ou "0" para sair: ')
        output.flush()
        value = _leading_int(_stdin_line())
        if value is None:
            continue
        if value == 0:
            break
        output.write(f"Votou no candidato {value}\n")
        choices.append(value)
    return choices


def _read_count(voters_dir: Path, name: str, ca_cert, output: TextIO) -> int | None:
    try:
        value = pki.read_signed_number(voters_dir, name, ca_cert)
    except (OSError, ValueError, pki.SignatureError):
        output.write("ERROR\n")
        return None
    output.write(f"{name}: VERIFIED OK\n")
    return value


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Cast a vote in the election.")
    parser.add_argument("--root", default=".", help="directory that holds the election")
    args = parser.parse_args(argv)
    output = sys.stdout
    voters_dir = Path(args.root) / "Voters"

    try:
        ca_cert = pki.load_certificate(voters_dir / "root-ca.crt")
    except (OSError, ValueError):
        output.write("ERROR\n")
        return 1
    n_voters = _read_count(voters_dir, "N_voter", ca_cert, output)
    if n_voters is None:
        output.write("Não foi possível adquirir o número de votantes\n")
        return 1
    try:
        voter_id = _ask_voter(n_voters, output)
        n_candidates = _read_count(voters_dir, "N_candi", ca_cert, output)
        if n_candidates is None:
            output.write("Não foi possível adquirir o número de candidatos\n")
            return 1
        choices = _ask_choices(n_candidates, output)
    except EOFError:
        output.write("\nERROR\n")
        return 1
    try:
        cast_vote(args.root, voter_id, choices)
    except (OSError, ValueError, pki.SignatureError) as exc:
        output.write(f"ERROR: {exc}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())