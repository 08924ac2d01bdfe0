"""Keys, certificates and detached signatures for the election authority."""

from __future__ import annotations

import datetime
import hashlib
import os
import re
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID

SIGNATURE_SUFFIX = ".sha1"
VALIDITY_DAYS = 3650
_DIGEST = hashes.SHA256
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")

PathLike = str | os.PathLike


class SignatureError(Exception):
    """A signature or certificate did not verify."""


def _name(organisation: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, "CA14"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, organisation),
            x509.NameAttribute(NameOID.COUNTRY_NAME, "PT"),
        ]
    )


def generate_private_key(bits: int = 2048) -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=bits)


def _builder(subject: x509.Name, issuer: x509.Name, public_key) -> x509.CertificateBuilder:
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=1))
        .not_valid_after(now + datetime.timedelta(days=VALIDITY_DAYS))
    )


def create_root_certificate(key: rsa.RSAPrivateKey) -> x509.Certificate:
    """Self-signed root certificate with subject CN=CA14, O=CSC-14, C=PT."""
    name = _name("CSC-14")
    builder = _builder(name, name, key.public_key()).add_extension(
        x509.BasicConstraints(ca=True, path_length=None), critical=True
    )
    return builder.sign(key, _DIGEST())


def issue_voter_certificate(
    ca_key: rsa.RSAPrivateKey,
    ca_cert: x509.Certificate,
    voter_id: int,
    voter_key: rsa.RSAPrivateKey,
) -> x509.Certificate:
    """Certificate for voter `voter_id`, signed by the root authority."""
    builder = _builder(_name(f"voter{voter_id}"), ca_cert.subject, voter_key.public_key())
    return builder.sign(ca_key, _DIGEST())


def sign(key: rsa.RSAPrivateKey, data: bytes) -> bytes:
    return key.sign(data, padding.PKCS1v15(), _DIGEST())


def verify(certificate: x509.Certificate, data: bytes, signature: bytes) -> None:
    """Raise SignatureError unless `signature` over `data` matches the certificate's key."""
    try:
        certificate.public_key().verify(signature, data, padding.PKCS1v15(), _DIGEST())
    except (InvalidSignature, TypeError, ValueError) as exc:
        raise SignatureError("signature does not verify") from exc


def verify_certificate(ca_cert: x509.Certificate, cert: x509.Certificate) -> None:
    """Raise SignatureError unless `cert` was issued by `ca_cert` and is current."""
    try:
        cert.verify_directly_issued_by(ca_cert)
    except (InvalidSignature, TypeError, ValueError) as exc:
        raise SignatureError("certificate was not issued by this authority") from exc
    now = datetime.datetime.now(datetime.timezone.utc)
    if not cert.not_valid_before_utc <= now <= cert.not_valid_after_utc:
        raise SignatureError("certificate is outside its validity period")


def subject_line(cert: x509.Certificate) -> str:
    """The subject as printed by `openssl x509 -subject`, e.g. subject=CN = CA14, ..."""
    parts = ", ".join(f"{attr.rfc4514_attribute_name} = {attr.value}" for attr in cert.subject)
    return f"subject={parts}"


def save_key(key: rsa.RSAPrivateKey, path: PathLike) -> None:
    Path(path).write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )


def load_key(path: PathLike) -> rsa.RSAPrivateKey:
    key = serialization.load_pem_private_key(Path(path).read_bytes(), password=None)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError("not an RSA private key")
    return key


def save_certificate(cert: x509.Certificate, path: PathLike) -> None:
    Path(path).write_bytes(cert.public_bytes(serialization.Encoding.PEM))


def load_certificate(path: PathLike) -> x509.Certificate:
    return x509.load_pem_x509_certificate(Path(path).read_bytes())


def _signature_path(path: PathLike) -> Path:
    return Path(os.fspath(path) + SIGNATURE_SUFFIX)


def sign_file(key: rsa.RSAPrivateKey, path: PathLike) -> Path:
    """Sign a file, writing the signature next to it with a .sha1 suffix."""
    target = _signature_path(path)
    target.write_bytes(sign(key, Path(path).read_bytes()))
    return target


def verify_file(certificate: x509.Certificate, path: PathLike) -> None:
    """Raise SignatureError unless the file's .sha1 signature matches the certificate."""
    try:
        data = Path(path).read_bytes()
        signature = _signature_path(path).read_bytes()
    except OSError as exc:
        raise SignatureError(f"cannot read {path} or its signature") from exc
    verify(certificate, data, signature)


def sha1_file(path: PathLike) -> str:
    """Hexadecimal SHA-1 digest of a file's contents."""
    digest = hashlib.sha1()
    with open(path, "rb") as handle:
        for block in iter(lambda: handle.read(65536), b""):
            digest.update(block)
    return digest.hexdigest()


def read_signed_number(directory: PathLike, name: str, ca_cert: x509.Certificate) -> int:
    """Read the number in `<name>.txt` after checking it was signed by the authority."""
    path = Path(directory) / f"{name}.txt"
    verify_file(ca_cert, path)
    lines = path.read_text().splitlines()
    match = _LEADING_INT.match(lines[0]) if lines else None
    if match is None:
        raise ValueError(f"{path} does not hold a number")
    return int(match.group(1))