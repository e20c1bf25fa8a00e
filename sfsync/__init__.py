"""
SAP to Salesforce Sync Agent

One-way reconciliation of SAP records into Salesforce, keyed by an
external-id field.
"""

__version__ = "1.0.0"
