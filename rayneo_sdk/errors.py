class RayNeoError(RuntimeError):
    """Base class for device link failures. None of them are fatal."""
    pass


class DeviceNotFoundError(RayNeoError):
    """Raised when no matching device could be found."""
    pass


class PermissionDeniedError(RayNeoError):
    """Raised when the platform refuses access to the device."""
    pass


class OpenFailedError(RayNeoError):
    """Raised when the device could not be opened."""
    pass


class EndpointsNotFoundError(RayNeoError):
    """Raised when no interface offers a usable IN/OUT endpoint pair."""
    pass


class ClaimInterfaceFailedError(RayNeoError):
    """Raised when the selected interface could not be claimed."""
    pass


class HandshakeError(RayNeoError):
    """Raised when a handshake command could not be written."""
    pass


class HandshakeTimeoutError(HandshakeError):
    """Raised when a handshake step gets no answer before its deadline."""
    def __init__(self, step: str, timeout: float):
        super().__init__(f"Timed out after {timeout:.1f}s waiting for {step}")
        self.step = step
        self.timeout = timeout


class UnexpectedDetachError(RayNeoError):
    """Raised when the active device goes away while in use."""
    pass


class TransportError(RayNeoError):
    """Raised by a USB connection on a non-timeout I/O failure."""
    pass
