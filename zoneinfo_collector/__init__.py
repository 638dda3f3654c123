"""Zoneinfo Collector - NUMA node and memory zone metrics agent."""

__version__ = "0.1.0"
