"""Video chunk reassembly and background listener.

After "streamon" the drone sends raw H.264 to UDP port 11111, split into
datagrams of at most 1460 bytes. There is no length prefix: a datagram
shorter than the maximum marks the end of a frame. Frames are handed on
undecoded; decoding and display are up to the consumer.

Chunks are assumed to arrive in order, which UDP does not promise. A
lost or reordered chunk corrupts the frame it belongs to.
"""

from __future__ import annotations

import logging
from typing import Optional

from tello_edu.comms.channel import Channel
from tello_edu.comms.listener import Listener
from tello_edu.config import TelloOptions
from tello_edu.data.models import VideoFrame

logger = logging.getLogger(__name__)

MAX_CHUNK_SIZE = 1460


class ChunkAssembler:
    """Accumulates chunks until a short one completes the frame."""

    def __init__(self, max_chunk_size: int = MAX_CHUNK_SIZE):
        self._max = max_chunk_size
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Bytes collected for the frame in progress."""
        return len(self._buffer)

    def push(self, chunk: bytes) -> Optional[VideoFrame]:
        """Add one datagram; return the frame it completes, if any.

        An empty datagram adds nothing and does not end the frame.
        """
        chunk = chunk[:self._max]
        if not chunk:
            return None
        self._buffer += chunk
        if len(chunk) < self._max:
            frame = VideoFrame(data=bytes(self._buffer))
            self._buffer = bytearray()
            return frame
        return None


class VideoListener(Listener):
    """Publishes reassembled VideoFrames from the video port."""

    kind = "video"

    def __init__(self, channel, transport, protocol, max_chunk_size=MAX_CHUNK_SIZE):
        super().__init__(channel, transport, protocol)
        self._assembler = ChunkAssembler(max_chunk_size)
        self.recv_size = max_chunk_size

    @classmethod
    async def start(
        cls, channel: Channel, options: Optional[TelloOptions] = None
    ) -> VideoListener:
        options = options or TelloOptions()
        return await cls.listen(
            channel,
            options.listen_host,
            options.video_port,
            max_chunk_size=options.max_chunk_size,
        )

    def handle(self, data: bytes) -> None:
        frame = self._assembler.push(data)
        if frame is not None:
            logger.debug("Frame complete: %d bytes", len(frame))
            self._channel.send(frame)
