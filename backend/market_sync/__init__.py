# backend/market_sync/__init__.py
"""Market Sync Service: instrument, fund, crypto and FX rate synchronization."""
