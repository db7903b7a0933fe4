"""
Composite commit components.

Serializes units of work into composite requests and commits them.
"""

from quotegen.composite.builder import CompositeRequestBuilder, CompositeSubrequest
from quotegen.composite.committer import UnitOfWorkCommitter

__all__ = [
    "CompositeRequestBuilder",
    "CompositeSubrequest",
    "UnitOfWorkCommitter",
]
