"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (GitHub REST API, AI SDKs,
the console, configuration files) by implementing the interfaces defined in
the domain layer.
"""
