import io
import random

import pytest

from homovote import admin, bfv, pki, shamir


@pytest.fixture(scope="module")
def election(tmp_path_factory):
    root = tmp_path_factory.mktemp("election")
    weight_files = admin.setup_election(root, 3, 2, 2, [1, 5], random.Random(7))
    return root, weight_files


def _ca(root):
    return pki.load_certificate(root / "Admin" / "root-ca.crt")


def test_directories_created(election):
    root, _ = election
    for name in admin.ELECTION_DIRECTORIES:
        assert (root / name).is_dir()


def test_signed_numbers(election):
    root, _ = election
    ca = _ca(root)
    assert pki.read_signed_number(root / "Tally", "N_voter", ca) == 2
    assert pki.read_signed_number(root / "Tally", "N_candi", ca) == 3
    assert pki.read_signed_number(root / "Counter", "N_trustees", ca) == 2
    assert pki.read_signed_number(root / "Voters", "N_candi", ca) == 3
    assert pki.read_signed_number(root / "Counter", "N_voter", ca) == 2


def test_voter_credentials(election):
    root, _ = election
    ca = pki.load_certificate(root / "Voters" / "root-ca.crt")
    for voter in (1, 2):
        directory = root / "Voters" / f"voter{voter}"
        cert = pki.load_certificate(directory / f"voter{voter}.crt")
        pki.verify_certificate(ca, cert)
        assert pki.subject_line(cert) == f"subject=CN = CA14, O = voter{voter}, C = PT"
        pki.verify_file(ca, directory / f"voter{voter}.key")
        pki.verify_file(ca, directory / "election_public_key")
        key = pki.load_key(directory / f"voter{voter}.key")
        signature = pki.sign(key, b"ballot")
        pki.verify(cert, b"ballot", signature)
        assert key.key_size == admin.VOTER_KEY_BITS


def test_admin_keeps_no_secrets(election):
    root, _ = election
    names = {p.name for p in (root / "Admin").iterdir()}
    assert "election_secret_key" not in names
    assert "shares.txt" not in names
    assert not any(name.startswith("voter") for name in names)
    assert "root-ca.key" in names


def test_tampered_number_fails(election, tmp_path):
    root, _ = election
    ca = _ca(root)
    (tmp_path / "N_voter.txt").write_text("9\n")
    (tmp_path / "N_voter.txt.sha1").write_bytes((root / "Tally" / "N_voter.txt.sha1").read_bytes())
    with pytest.raises(pki.SignatureError):
        pki.read_signed_number(tmp_path, "N_voter", ca)


def test_shares_rebuild_key_and_weights_decrypt(election):
    root, weight_files = election
    lines = [
        (root / "Trustees" / f"trustee{n}" / f"shares{n}.txt").read_text() for n in (1, 2)
    ]
    secret_key = bfv.SecretKey.from_bytes(shamir.combine(lines))
    weights = {
        voter: bfv.decrypt(
            secret_key, bfv.Ciphertext.from_bytes((root / "Tally" / name).read_bytes())
        )
        for voter, name in weight_files.items()
    }
    assert weights == {1: 1, 2: 5}


def test_single_share_is_not_enough(election):
    root, _ = election
    line = (root / "Trustees" / "trustee1" / "shares1.txt").read_text()
    with pytest.raises(ValueError):
        shamir.combine([line])


def test_weights_file(election):
    root, weight_files = election
    lines = (root / "Tally" / "weights.txt").read_text().splitlines()
    assert lines == [f"voter{v}: {weight_files[v]}" for v in (1, 2)]
    assert all(len(name) == 10 and name.isalpha() for name in weight_files.values())


def test_public_key_distributed(election):
    root, _ = election
    original = (root / "Admin" / "election_public_key").read_bytes()
    assert (root / "Tally" / "election_public_key").read_bytes() == original
    assert (root / "Voters" / "voter2" / "election_public_key").read_bytes() == original
    assert bfv.PublicKey.from_bytes(original).params == bfv.default_parameters()


@pytest.mark.parametrize(
    "candidates, voters, trustees, weights",
    [
        (0, 1, 2, [1]),
        (1, 0, 2, []),
        (1, 1, 1, [1]),
        (1, 2, 2, [1]),
        (1, 1, 2, [-1]),
        (1, 1, 2, [1024]),
    ],
)
def test_invalid_arguments(tmp_path, candidates, voters, trustees, weights):
    with pytest.raises(ValueError):
        admin.setup_election(tmp_path, candidates, voters, trustees, weights)
    assert not (tmp_path / "Admin").exists()


def test_main_without_input(tmp_path, monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    assert admin.main(["--root", str(tmp_path)]) == 1
    assert not (tmp_path / "Admin").exists()


def test_main_runs_election(tmp_path, monkeypatch, capsys):
    (tmp_path / "Ballot").mkdir()
    (tmp_path / "Ballot" / "stale").write_text("old")
    answers = "abc\n0\n1\n1\n1\n2\n5000\n3\n"
    monkeypatch.setattr("sys.stdin", io.StringIO(answers))
    assert admin.main(["--root", str(tmp_path)]) == 0
    out = capsys.readouterr().out
    assert out.count(admin.INVALID_VALUE_MESSAGE) == 4
    assert not (tmp_path / "Ballot" / "stale").exists()
    ca = _ca(tmp_path)
    assert pki.read_signed_number(tmp_path / "Counter", "N_candi", ca) == 1
    assert pki.read_signed_number(tmp_path / "Counter", "N_trustees", ca) == 2