"""HTTP service exposing the PromiseSeal operations."""
