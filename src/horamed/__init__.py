"""HoraMed core: stock depletion projection and adherence progression."""

__version__ = "0.1.0"
