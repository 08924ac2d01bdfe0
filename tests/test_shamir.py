import itertools

import pytest

from homovote.shamir import combine, split

SECRET_BYTES = bytes(range(200)) * 3


def test_all_shares_rebuild_secret():
    lines = split(SECRET_BYTES, 3, 3)
    assert len(lines) == 3
    assert combine(lines) == SECRET_BYTES


def test_any_subset_of_threshold_rebuilds():
    lines = split(SECRET_BYTES, 5, 3)
    for subset in itertools.combinations(lines, 3):
        assert combine(subset) == SECRET_BYTES


def test_lines_with_newlines_and_blanks():
    lines = [line + "\n" for line in split(b"abc", 2, 2)] + ["\n"]
    assert combine(lines) == b"abc"


def test_threshold_one_shares_are_secret():
    lines = split(b"xyz", 3, 1)
    for line in lines:
        assert combine([line]) == b"xyz"


def test_empty_secret():
    assert combine(split(b"", 2, 2)) == b""


def test_too_few_shares():
    lines = split(SECRET_BYTES, 4, 3)
    with pytest.raises(ValueError):
        combine(lines[:2])
    with pytest.raises(ValueError):
        combine([])


def test_duplicate_share_does_not_count_twice():
    lines = split(SECRET_BYTES, 3, 2)
    with pytest.raises(ValueError):
        combine([lines[0], lines[0]])


@pytest.mark.parametrize("shares,threshold", [(2, 3), (0, 0), (256, 2), (3, 0)])
def test_invalid_split_parameters(shares, threshold):
    with pytest.raises(ValueError):
        split(b"data", shares, threshold)


def test_malformed_and_mixed_shares():
    with pytest.raises(ValueError):
        combine(["not a share"])
    first = split(b"data", 3, 2)
    second = split(b"data", 3, 3)
    with pytest.raises(ValueError):
        combine([first[0], second[1]])


def test_shares_do_not_reveal_secret():
    lines = split(SECRET_BYTES, 3, 2)
    assert all(SECRET_BYTES.hex() not in line for line in lines)