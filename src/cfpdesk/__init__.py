"""cfpdesk: CFP submission decision & communication workflow."""

__version__ = "0.1.0"
