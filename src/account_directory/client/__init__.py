"""HTTP client side: API client, visitor flow mirror, and view routing."""
