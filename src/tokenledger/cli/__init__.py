"""Command-line tools for tokenledger."""
