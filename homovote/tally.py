"""Ballot-box tally: checks signed vote lines and adds up encrypted, weighted votes."""

from __future__ import annotations

import argparse
import os
import random
import re
import shutil
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from homovote import bfv, pki
from homovote.common import FILE_NAME_LENGTH, random_file_name

BALLOT_BOX = "Urna.txt"
CHECKSUM_INDEX = "checksum_accumulator.txt"
WEIGHTS_INDEX = "weights.txt"
MISSING_VOTE_FILE_MESSAGE = "Error reading voter file"

_LINE = re.compile(
    r"voter([+-]?\d+);([+-]?\d+);"
    r"((?:Candidate[+-]?\d+:[^\s;]{%d};)*)"
    r"Signature:([^\s;]{%d});" % (FILE_NAME_LENGTH, FILE_NAME_LENGTH)
)
_ENTRY = re.compile(r"Candidate([+-]?\d+):([^\s;]+);")
_WEIGHT = re.compile(r"voter([+-]?\d+):\s*(\S+)")

PathLike = str | os.PathLike


@dataclass(frozen=True)
class BallotEntry:
    """One line of the ballot box: who voted, when, which files hold the votes."""

    voter: int
    timestamp: int
    entries: tuple[tuple[int, str], ...]
    signature: str

    @property
    def files(self) -> dict[int, str]:
        """Vote file name for each candidate; a repeated candidate keeps its last file."""
        return dict(self.entries)


def parse_ballot_line(line: str, voters: int, candidates: int) -> BallotEntry:
    """Parse a ballot line, raising ValueError if it is malformed or out of range."""
    text = line[:-1] if line.endswith("\n") else line
    match = _LINE.fullmatch(text)
    if match is None:
        raise ValueError(f"malformed ballot line: {line!r}")
    voter = int(match.group(1))
    if not 1 <= voter <= voters:
        raise ValueError(f"voter number {voter} is not between 1 and {voters}")
    entries = tuple((int(number), name) for number, name in _ENTRY.findall(match.group(3)))
    for candidate, _ in entries:
        if not 1 <= candidate <= candidates:
            raise ValueError(f"candidate {candidate} is not between 1 and {candidates}")
    return BallotEntry(voter, int(match.group(2)), entries, match.group(4))


def verify_line_signature(ballot_dir: PathLike, entry: BallotEntry, ca_cert) -> None:
    """Raise SignatureError unless the entry was signed by its voter's certified key.

    The signed text names each vote file by its SHA-1, so a changed file is caught.
    """
    bdir = Path(ballot_dir)
    try:
        cert = pki.load_certificate(bdir / f"voter{entry.voter}.crt")
    except (OSError, ValueError) as exc:
        raise pki.SignatureError(f"no usable certificate for voter {entry.voter}") from exc
    pki.verify_certificate(ca_cert, cert)
    expected = f"subject=CN = CA14, O = voter{entry.voter}, C = PT"
    if pki.subject_line(cert) != expected:
        raise pki.SignatureError(f"certificate does not belong to voter {entry.voter}")
    try:
        digests = [
            f"Candidate{candidate}:{pki.sha1_file(bdir / name)};"
            for candidate, name in entry.entries
        ]
        signature = (bdir / entry.signature).read_bytes()
    except OSError as exc:
        raise pki.SignatureError("a file named by the ballot line cannot be read") from exc
    text = f"voter{entry.voter};{entry.timestamp};" + "".join(digests)
    pki.verify(cert, text.encode(), signature)


def collect_votes(root: PathLike, voters: int, candidates: int) -> dict[int, BallotEntry]:
    """Return the latest valid, verified vote of each voter, keyed by voter number.

    Only lines ending in a newline count; invalid or unverified lines are skipped.
    """
    base = Path(root)
    ballot = base / "Ballot"
    ca_cert = pki.load_certificate(base / "Tally" / "root-ca.crt")
    try:
        text = (ballot / BALLOT_BOX).read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return {}
    *complete, _ = text.split("\n")
    accepted: dict[int, BallotEntry] = {}
    for line in complete:
        try:
            entry = parse_ballot_line(line, voters, candidates)
        except ValueError:
            continue
        current = accepted.get(entry.voter)
        latest = current.timestamp if current is not None else 0
        if entry.timestamp <= latest:
            continue
        try:
            verify_line_signature(ballot, entry, ca_cert)
        except pki.SignatureError:
            continue
        accepted[entry.voter] = entry
    return dict(sorted(accepted.items()))


def _read_weight_files(path: Path, voters: int) -> list[str]:
    names = [name for _, name in _WEIGHT.findall(path.read_text(encoding="utf-8"))]
    if len(names) < voters:
        raise ValueError(f"{path} lists fewer weights than voters")
    return names[:voters]


def _load_ciphertext(path: Path) -> bfv.Ciphertext:
    return bfv.Ciphertext.from_bytes(path.read_bytes())


def run_tally(root: PathLike, rng: random.Random | None = None) -> dict[int, BallotEntry]:
    """Add up the weighted votes and each voter's checksum, and hand them to the counter.

    Returns the votes that were counted, keyed by voter number.
    """
    base = Path(root)
    tally, ballot, counter = base / "Tally", base / "Ballot", base / "Counter"
    ca_cert = pki.load_certificate(tally / "root-ca.crt")
    voters = pki.read_signed_number(tally, "N_voter", ca_cert)
    candidates = pki.read_signed_number(tally, "N_candi", ca_cert)
    votes = collect_votes(base, voters, candidates)

    public_key = bfv.PublicKey.from_bytes((tally / "election_public_key").read_bytes())
    weight_files = _read_weight_files(tally / WEIGHTS_INDEX, voters)
    accumulators = [bfv.encrypt(public_key, 0) for _ in range(voters)]
    totals = [bfv.encrypt(public_key, 0) for _ in range(candidates)]

    for voter, weight_name in enumerate(weight_files, start=1):
        weight = _load_ciphertext(tally / weight_name)
        entry = votes.get(voter)
        if entry is None:
            continue
        files = entry.files
        for candidate in range(1, candidates + 1):
            name = files.get(candidate)
            if name is None:
                raise ValueError(MISSING_VOTE_FILE_MESSAGE)
            vote = _load_ciphertext(ballot / name)
            accumulators[voter - 1] = bfv.add(accumulators[voter - 1], vote)
            totals[candidate - 1] = bfv.add(totals[candidate - 1], bfv.multiply(vote, weight))

    counter.mkdir(parents=True, exist_ok=True)
    index_lines = []
    for voter, accumulator in enumerate(accumulators, start=1):
        name = random_file_name(rng)
        path = tally / name
        path.write_bytes(accumulator.to_bytes())
        shutil.copyfile(path, counter / name)
        index_lines.append(f"voter{voter}:{name}\n")
    index = tally / CHECKSUM_INDEX
    index.write_text("".join(index_lines), encoding="utf-8")
    shutil.copyfile(index, counter / CHECKSUM_INDEX)

    for candidate, total in enumerate(totals, start=1):
        path = tally / f"Candidate{candidate}"
        path.write_bytes(total.to_bytes())
        shutil.copyfile(path, counter / path.name)

    return votes


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Tally the ballot box.")
    parser.add_argument("--root", default=".", help="directory that holds the election")
    args = parser.parse_args(argv)
    output = sys.stdout
    tally = Path(args.root) / "Tally"

    try:
        ca_cert = pki.load_certificate(tally / "root-ca.crt")
    except (OSError, ValueError):
        output.write("ERROR\n")
        return 1
    checks = (
        ("N_voter", "Não foi possível adquirir o número de votantes\n"),
        ("N_candi", "Não foi possível adquirir o número de candidatos\n"),
    )
    for name, failure in checks:
        try:
            pki.read_signed_number(tally, name, ca_cert)
        except (OSError, ValueError, pki.SignatureError):
            output.write("ERROR\n")
            output.write(failure)
            return 1
        output.write(f"{name}: VERIFIED OK\n")

    try:
        votes = run_tally(args.root)
    except (OSError, ValueError, pki.SignatureError) as exc:
        output.write(f"\n{exc}\n")
        return 1

    output.write("\nVotes obtained:")
    for voter, entry in votes.items():
        output.write(f"\nVoter{voter} Time_stamp:{entry.timestamp} Files_Names-> ")
        for candidate, name in sorted(entry.files.items()):
            output.write(f" Candidate{candidate}:{name}")
        output.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())