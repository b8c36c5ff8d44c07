"""
Core modules: market data, periods, charts and the render pipeline.
"""
