"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the remote API over HTTP,
the on-disk snapshot store, configuration files, the console) by
implementing the interfaces defined in the domain layer.
"""
