"""Errors raised across the kernel. The API maps them onto HTTP status codes."""


class OpsKernelError(Exception):
    """Base class for kernel errors."""


class ValidationError(OpsKernelError):
    """A malformed event or command payload. Nothing was changed."""


class NotFoundError(OpsKernelError):
    """A command referenced a staff, proposal, prep item or incident that does not exist."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key
