class ServiceMixins:
    """Mixin class providing service naming shared by loggers.

    Components that log under their own service name inherit from this
    class (usually through `LoggingMixins`).
    """

    @classmethod
    def service_name(cls) -> str:
        """Get the service name used for logging.

        Returns:
            The class name as the service identifier.
        """
        return cls.__name__
