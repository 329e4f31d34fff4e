class BundleRolloutError(Exception):
    """Base error for fleet bundle operations."""

    pass


class ConfigurationError(BundleRolloutError):
    """Server configuration could not be built."""

    pass


class BundlePayloadError(BundleRolloutError):
    """A console response could not be read."""

    pass


class ConvergenceError(BundleRolloutError):
    """Bundles did not reach a running state before the server's deadline."""

    pass


class DeploymentError(BundleRolloutError):
    """A fleet operation came back with a bad aggregate response."""

    def __init__(self, response):
        super().__init__(f"Server response: {response}")
        self.response = response
