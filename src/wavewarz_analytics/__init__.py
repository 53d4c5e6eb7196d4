"""WaveWarz analytics core - on-chain battle reconstruction and settlement reporting."""

__version__ = "0.1.0"
