"""
Transfer exceptions
"""


class TransferError(Exception):
    """Base class for errors raised by the transfer engine"""


class ConfigurationError(TransferError, ValueError):
    """Invalid or ambiguous run configuration, detected before any I/O"""


class MissingIdentifierError(TransferError, KeyError):
    """A source or destination document has no identifier field"""

    def __init__(self, identifier_field: str, position: int, namespace: str = "source"):
        self.identifier_field = identifier_field
        self.position = position
        self.namespace = namespace
        super().__init__(f"Document #{position} of {namespace} has no '{identifier_field}' field")

    def __str__(self):
        return self.args[0]
