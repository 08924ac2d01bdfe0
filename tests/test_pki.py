import pytest

from homovote.pki import (
    SignatureError,
    create_root_certificate,
    generate_private_key,
    issue_voter_certificate,
    load_certificate,
    load_key,
    read_signed_number,
    save_certificate,
    save_key,
    sha1_file,
    sign,
    sign_file,
    subject_line,
    verify,
    verify_certificate,
    verify_file,
)


@pytest.fixture(scope="module")
def authority():
    key = generate_private_key(2048)
    return key, create_root_certificate(key)


@pytest.fixture(scope="module")
def voter(authority):
    ca_key, ca_cert = authority
    key = generate_private_key(1024)
    return key, issue_voter_certificate(ca_key, ca_cert, 3, key)


def test_root_subject(authority):
    _, ca_cert = authority
    assert subject_line(ca_cert) == "subject=CN = CA14, O = CSC-14, C = PT"


def test_voter_subject(voter):
    _, cert = voter
    assert subject_line(cert) == "subject=CN = CA14, O = voter3, C = PT"


def test_voter_certificate_verifies(authority, voter):
    _, ca_cert = authority
    _, cert = voter
    verify_certificate(ca_cert, cert)
    assert cert.issuer == ca_cert.subject


def test_certificate_from_other_authority_fails(voter):
    other_key = generate_private_key(1024)
    other_cert = create_root_certificate(other_key)
    with pytest.raises(SignatureError):
        verify_certificate(other_cert, voter[1])


def test_sign_and_verify(voter):
    key, cert = voter
    data = b"voter3;1234567;Candidate1:abc;"
    signature = sign(key, data)
    verify(cert, data, signature)
    with pytest.raises(SignatureError):
        verify(cert, data + b"x", signature)


def test_key_and_certificate_files(tmp_path, voter):
    key, cert = voter
    save_key(key, tmp_path / "voter3.key")
    save_certificate(cert, tmp_path / "voter3.crt")
    loaded_key = load_key(tmp_path / "voter3.key")
    loaded_cert = load_certificate(tmp_path / "voter3.crt")
    assert loaded_cert == cert
    assert loaded_key.private_numbers() == key.private_numbers()


def test_sign_file_and_verify_file(tmp_path, authority):
    ca_key, ca_cert = authority
    target = tmp_path / "election_public_key"
    target.write_bytes(b"key material")
    signature_path = sign_file(ca_key, target)
    assert signature_path.name == "election_public_key.sha1"
    verify_file(ca_cert, target)
    target.write_bytes(b"changed")
    with pytest.raises(SignatureError):
        verify_file(ca_cert, target)


def test_verify_file_missing_signature(tmp_path, authority):
    _, ca_cert = authority
    target = tmp_path / "N_voter.txt"
    target.write_text("4\n")
    with pytest.raises(SignatureError):
        verify_file(ca_cert, target)


def test_read_signed_number(tmp_path, authority):
    ca_key, ca_cert = authority
    (tmp_path / "N_voter.txt").write_text("7\n")
    sign_file(ca_key, tmp_path / "N_voter.txt")
    assert read_signed_number(tmp_path, "N_voter", ca_cert) == 7


def test_read_signed_number_tampered(tmp_path, authority):
    ca_key, ca_cert = authority
    (tmp_path / "N_candi.txt").write_text("3\n")
    sign_file(ca_key, tmp_path / "N_candi.txt")
    (tmp_path / "N_candi.txt").write_text("9\n")
    with pytest.raises(SignatureError):
        read_signed_number(tmp_path, "N_candi", ca_cert)


def test_read_signed_number_not_a_number(tmp_path, authority):
    ca_key, ca_cert = authority
    (tmp_path / "N_trustees.txt").write_text("many\n")
    sign_file(ca_key, tmp_path / "N_trustees.txt")
    with pytest.raises(ValueError):
        read_signed_number(tmp_path, "N_trustees", ca_cert)


def test_sha1_file(tmp_path):
    path = tmp_path / "vote"
    path.write_bytes(b"abc")
    assert sha1_file(path) == "a9993e364706816aba3e25717850c26c9cd0d89d"