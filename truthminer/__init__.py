"""
Truth Miner

An autonomous oracle agent for the truth_pool commit-reveal registry:
- Commits salted answer hashes while queries accept commitments
- Persists salts locally between phases
- Reveals answer and salt once queries enter the reveal phase
"""

__version__ = "0.1.0"
