"""Heart-rate monitoring: aggregation, zone classification and live display.

The domain models and the aggregation engine are isolated from the health-data
collaborators so they can be tested and reasoned about on their own.
"""
