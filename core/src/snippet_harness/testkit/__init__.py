from .fakes import (
    FakeCall,
    FakeOutcome,
    FakeRunner,
    client_failure,
    make_snippet,
    transient_failure,
)

__all__ = [
    "FakeCall",
    "FakeOutcome",
    "FakeRunner",
    "client_failure",
    "make_snippet",
    "transient_failure",
]
