"""version-lsp: version freshness checks for package manifests."""

__version__ = "0.1.0"
