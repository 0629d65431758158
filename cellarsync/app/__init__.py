"""HTTP application layer for cellarsync."""
