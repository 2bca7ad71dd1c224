"""Remote reference resolution.

Exposes:
    RemoteReferenceResolver -- bounded, concurrent, read-once resolution with a
                               join barrier before graph finalization.
    RemoteReferenceTable    -- ordered alias -> RemoteReference registry.
    ParameterStore          -- abstract backend for remote reads.
    InMemoryParameterStore  -- dict-backed store (tests, offline runs).
    SsmParameterStore       -- AWS SSM Parameter Store backend via boto3.
"""

from stackcomposer.remote.resolver import RemoteReferenceResolver
from stackcomposer.remote.stores import InMemoryParameterStore, ParameterStore, SsmParameterStore
from stackcomposer.remote.table import RemoteReferenceTable

__all__ = [
    "InMemoryParameterStore",
    "ParameterStore",
    "RemoteReferenceResolver",
    "RemoteReferenceTable",
    "SsmParameterStore",
]
