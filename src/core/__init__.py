"""Core domain package for siverradar.

Core contains classification, deduplication, routing and zone hysteresis
logic without any Telegram or storage-specific code, keeping the business
logic portable.
"""
