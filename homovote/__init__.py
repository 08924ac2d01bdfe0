"""Weighted electronic voting with homomorphic encryption, Shamir key sharing and signed ballots."""

__version__ = "0.1.0"