"""lnwatch - liquidity, HTLC, forwarding and dust analytics for LND routing nodes"""

__version__ = "0.1.0"
