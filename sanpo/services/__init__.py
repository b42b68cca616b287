"""Clients and adapters for the upstream services the pipeline composes."""
