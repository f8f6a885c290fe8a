"""
lotauction

A uniform clearing-price auction for a fixed lot of series-grouped
collectible items:
- Escrowed bidding during a time-bounded window
- Manager-proposed clearing price, validated in bounded batches
- Winner redemption with excess refunds, loser withdrawals
- Safety timeout so escrowed funds can never get stuck
"""

__version__ = "0.1.0"
