# homovote

homovote runs a small weighted election in four steps, each a separate
command. Votes are encrypted with a BFV-style homomorphic scheme, so the tally
adds them up without decrypting them. The election secret key is split among
trustees with Shamir secret sharing over GF(256). Election parameters, voter
keys, the election public key and every ballot line are signed, and checked
against a root certificate authority.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running an election

Every command takes `--root DIR` (default: the current directory) naming the
election directory. Under it the commands read and write the folders `Admin`,
`Voters`, `Ballot`, `Tally`, `Trustees` and `Counter`. Prompts and messages
are in Portuguese.

1. **Set up the election**

   ```
   homovote-admin
   ```

   The command prompts for:
   - the number of candidates (at least 1),
   - the number of voters (at least 1),
   - the number of trustees (at least 2),
   - a weight for each voter, from 0 up to 1023.

   Then it removes any of the six folders left over from a previous election
   and:
   - creates a root CA (RSA 2048, subject `CN=CA14, O=CSC-14, C=PT`);
   - gives each voter an RSA 1024 key and a certificate issued by the CA
     (`O=voterN`), and signs the voter's key file;
   - generates the election key pair and signs the public key;
   - splits the secret key into one share per trustee, all of which are
     needed to rebuild it (`Trustees/trusteeN/sharesN.txt`);
   - encrypts each voter's weight into a randomly named file in `Tally`,
     listed in `Tally/weights.txt`;
   - writes and signs `N_voter.txt`, `N_candi.txt` and `N_trustees.txt` and
     copies them, with the CA certificate, to the parties that need them.

2. **Vote**

   ```
   homovote-voter
   ```

   The command checks the signed number of voters and candidates, then asks
   for the voter's number (1 to the number of voters) and for candidate
   numbers one per prompt; `0` ends the vote, and no more prompts follow once
   as many choices as candidates have been given. It then:
   - checks the voter's certificate, key signature and the election public
     key signature;
   - encrypts the count for every candidate (zero counts included) into
     randomly named files in `Ballot`;
   - signs the line, with each vote file replaced by its SHA-1, and stores
     the signature in `Ballot`;
   - appends the line to the ballot box `Ballot/Urna.txt` and copies the
     voter's certificate to `Ballot`.

   A chosen number that names no candidate is encrypted and recorded too,
   but the tally rejects such a line. A voter may vote again; only the line
   with the highest timestamp that passes the checks counts.

3. **Tally**

   ```
   homovote-tally
   ```

   Only complete lines (ending in a newline) of the ballot box are read. For
   each line the command checks that:
   - its form is valid and its voter and candidate numbers are in range;
   - the voter's certificate was issued by the root CA and is current;
   - the certificate subject names that voter;
   - the signature covers the SHA-1 hashes of the vote files.

   Working only on ciphertexts, it then adds each counted voter's votes into
   a per-voter checksum, multiplies each vote by the voter's encrypted weight
   and adds it into a per-candidate total. A counted vote that lacks a file
   for some candidate stops the tally with `Error reading voter file`. The
   checksums (indexed by `checksum_accumulator.txt`) and the files
   `Candidate1`, `Candidate2`, ... are copied to `Counter`, and the counted
   votes are printed.

4. **Count**

   ```
   homovote-counter
   ```

   The command checks the signed parameters in `Counter`, rebuilds the
   election secret key from each trustee's share, and decrypts every voter's
   checksum and every candidate total. The result is reported valid only if
   every checksum equals the number of candidates. Totals are computed modulo
   1024, the plain modulus.

## Library modules

- `homovote.bfv`: a leveled BFV-style scheme (degree 4096, plain modulus
  1024 by default).
  - Classes `Parameters`, `PublicKey`, `SecretKey` and `Ciphertext`; keys and
    ciphertexts have `to_bytes` / `from_bytes`.
  - `default_parameters`, `generate_keys`, `encrypt`, `decrypt`, `add` and
    `multiply`. Products are not relinearized: they grow by one component
    and still decrypt.
  - `to_hex` and `from_hex` convert integers to and from hexadecimal text,
    e.g. `to_hex(255) == "ff"`.
- `homovote.shamir`: `split(secret, shares, threshold)` turns bytes into
  share lines of the form `threshold-index-hex`; `combine(lines)` rebuilds
  the secret and raises `ValueError` on too few or inconsistent shares.
- `homovote.pki`: RSA keys and X.509 certificates, saved and loaded as PEM;
  `sign`, `verify`, `sign_file`, `verify_file`, `verify_certificate` and
  `subject_line`; `sha1_file`; and `read_signed_number`, which reads an
  election parameter only after its signature checks out. Failed checks
  raise `SignatureError`. Signature files carry the `.sha1` suffix, but the
  signatures are RSA PKCS#1 v1.5 over SHA-256.
- `homovote.common`: `random_file_name` (ten lower-case letters) and
  `ask_int`, which prompts until the answer starts with an integer of at
  least a given minimum.
- The steps behind the commands can be called directly:
  - `homovote.admin.setup_election` sets up an election without prompting;
  - `homovote.voter`: `count_votes`, `sign_line`, `cast_vote`;
  - `homovote.tally`: `BallotEntry`, `parse_ballot_line`,
    `verify_line_signature`, `collect_votes`, `run_tally`;
  - `homovote.counter`: `CountResult`, `reconstruct_secret_key`,
    `run_count`.

## What it does not do

All parties work on one shared directory tree; there is no network service
and no separation of the parties beyond their folders. Trustee shares and the
CA private key are plain files on disk, and nothing protects them.