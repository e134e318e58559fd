"""Cross-chain agent: blockchain contexts, opportunity scanning and execution planning."""

__version__ = "0.1.0"
