"""Domain layer: canonical inventory and sales order records."""
