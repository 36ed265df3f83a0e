"""
Application Layer

- matching: cross-source identifier reconciliation
- search: search aggregation and hit normalization
- reporting: count tables and plots
- pipeline: the end-to-end run
"""
