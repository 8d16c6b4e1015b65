"""Base interface for microphone recorders."""

from abc import ABC, abstractmethod
from typing import Callable


DataCallback = Callable[[bytes], None]
ErrorCallback = Callable[[Exception], None]


class Recorder(ABC):
    """
    Capability interface over the platform microphone.

    A recorder holds one microphone handle between ``acquire()`` and
    ``release()``. Each ``start()``/``stop()`` pair produces exactly one
    payload, delivered asynchronously through ``on_data`` once the
    recorder has flushed its buffers.
    """

    #: MIME type of the payloads this recorder produces
    mime_type: str = "audio/wav"

    @abstractmethod
    def acquire(self) -> None:
        """
        Open the microphone.

        Raises:
            AcquisitionError: if permission is denied, no device exists,
                or the device could not be opened
        """
        pass

    @abstractmethod
    def start(self, on_data: DataCallback, on_error: ErrorCallback) -> None:
        """
        Begin capturing audio.

        Args:
            on_data: Receives the complete payload after ``stop()``; an empty
                payload means nothing was captured
            on_error: Receives device faults that happen while capturing
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop capturing. The payload arrives later through ``on_data``."""
        pass

    @abstractmethod
    def release(self) -> None:
        """Close the microphone handle."""
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the recorder."""
        pass
