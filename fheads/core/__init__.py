"""Core auction components: ciphertext runtime, token, escrow, bids, selection"""
