"""
Optional microphone input for the avatar stream.

The avatar still streams without audio input when the microphone cannot
be opened (no device, permission denied, PortAudio missing).
"""

import logging
from typing import Any, Optional

logger = logging.getLogger("avatar.stream.microphone")


class MicrophoneInput:
    """Single-owner microphone capture stream."""

    def __init__(
        self,
        sample_rate: int = 48000,
        channels: int = 1,
        device: Optional[int] = None,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.device = device
        self._stream: Optional[Any] = None

    @property
    def is_active(self) -> bool:
        return self._stream is not None

    def acquire(self) -> Optional[Any]:
        """
        Open and start the input stream, releasing any previous one first.

        Returns:
            The running sounddevice.InputStream, or None if unavailable
        """
        self.release()
        try:
            import sounddevice as sd

            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                device=self.device,
                dtype="float32",
            )
            stream.start()
        except Exception as e:
            logger.warning("Microphone unavailable, continuing without mic: %s", e)
            return None

        self._stream = stream
        logger.info("Microphone opened (%d Hz, %d ch)", self.sample_rate, self.channels)
        return stream

    def release(self) -> None:
        """Stop and close the input stream if one is open."""
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            logger.warning("Error stopping microphone: %s", e)
        logger.debug("Microphone released")
