"""
FHE Ads Auction

A confidential advertising auction settled over encrypted values:
- Encrypted per-criterion bid weights and deposits
- Homomorphic scoring and private argmax winner selection
- Escrow ledger backed by a confidential ERC20
- ACL-gated decryption of results
"""

__version__ = "0.1.0"
