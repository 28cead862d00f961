"""
Stake-cap derivation for oracle publishers, plus the scenario harness that
validates it.
"""

__version__ = "0.1.0"
