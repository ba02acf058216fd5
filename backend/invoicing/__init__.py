"""Sequential invoice numbering service."""
