"""
TrustVault - Proof of Originality Fingerprinting

Computes content hashes and semantic "AI fingerprints" for uploaded documents,
detects near-duplicates against locally known fingerprints, and hands
original work to an on-chain registry for timestamping.
"""

__version__ = "1.0.0"
__author__ = "TrustVault Team"
__description__ = "Proof of Originality Fingerprinting"
