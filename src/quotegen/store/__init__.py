"""
Record Store Layer.

Provides abstracted access to the record store for queries and atomic
composite commits.
"""

from quotegen.store.interface import QueryResult, Record, RecordStore, soql_quote
from quotegen.store.salesforce import SalesforceStore

__all__ = [
    "QueryResult",
    "Record",
    "RecordStore",
    "SalesforceStore",
    "soql_quote",
]
