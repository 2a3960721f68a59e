"""Read-only catalog API over the chart archive."""
