"""Domain Interfaces (Ports):

Contracts (Abstract Base Classes) for the collaborators the core consumes:
the response cache, the remote call transport, the bearer token source,
the persisted snapshot store, and the user interface.
"""
