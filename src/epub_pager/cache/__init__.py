"""Resource loading, package store and bookmark cache."""
