"""Building blocks for a card game duel server: messages, banlists, card data, logging and replays."""

__version__ = "1.1.0"