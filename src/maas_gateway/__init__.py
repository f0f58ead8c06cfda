"""Authentication and authorization gateway for the memory-as-a-service API."""
