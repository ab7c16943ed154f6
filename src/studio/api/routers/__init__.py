"""Collector routers."""
