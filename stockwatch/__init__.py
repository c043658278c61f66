"""Congressional stock trade disclosures, normalized and cached."""

__version__ = "0.1.0"
