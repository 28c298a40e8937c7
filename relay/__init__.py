"""Browser-mimicking translation relay."""
