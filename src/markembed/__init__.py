"""Split documents into token-bounded sections and store their embeddings."""

__version__ = "0.1.0"
