"""Error taxonomy shared by every feeder pipeline.

Source-level errors are recovered locally by excluding the source. Cycle-level
errors (NoDataError, ChainCallError, confirmation failures) abort the current
round and are either logged by the submit loop or turned into a non-zero exit
by the one-shot commands.
"""


class FeederError(Exception):
    """Base exception for all feeder errors."""

    pass


class ConfigurationError(FeederError):
    """Raised when a required setting is missing or invalid."""

    pass


class SourceUnavailableError(FeederError):
    """Raised when a single data source (price API, explorer) fails."""

    pass


class NoDataError(FeederError):
    """Raised when no usable reading survives a collection round."""

    pass


class ChainCallError(FeederError):
    """Raised when a transaction cannot be built, proven or broadcast.

    :ivar function_name: On-chain function that was being executed.
    """

    def __init__(self, function_name: str, message: str):
        """Initialize the chain call error.

        :param function_name: On-chain function name (e.g., "submit_price").
        :param message: Error detail from the chain client.
        """
        self.function_name = function_name
        super().__init__(f"{function_name}: {message}")


class ConfirmationTimeoutError(FeederError):
    """Raised when no terminal status was observed within the retry budget."""

    pass


class TransactionRejectedError(FeederError):
    """Raised when the chain explicitly rejected a transaction."""

    pass
