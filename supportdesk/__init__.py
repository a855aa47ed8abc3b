"""
supportdesk: customer-support chat backed by SQLite and an LLM completion service.
"""

__version__ = "0.1.0"
