"""dossierctl: entity-resolution label store and constraint graph."""

__version__ = "0.3.0"
