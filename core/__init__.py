"""Core module - ERP-neutral building blocks of the order sync pipeline.

This module contains configuration, field mapping, outcome models, audit
persistence and observability. It does not talk to NetSuite.

ERP-specific logic (authentication, HTTP callouts) belongs in /connectors/.
"""

__version__ = "1.0.0"
