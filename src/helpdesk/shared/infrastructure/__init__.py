"""
Infrastructure Layer
====================

Low-level technical concerns shared by all contexts:
- Structured JSON logging
- Latency logging helpers
"""
