"""lotauction command line interface."""
