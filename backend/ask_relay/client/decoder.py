"""
Incremental UTF-8 decoding for chunked relay streams.

Network reads split the body at arbitrary byte offsets, so a multi-byte
character can straddle two reads. The decoder keeps the partial sequence
between calls and only raises (or emits) it once the stream is finished.
"""

import codecs


class IncrementalTextDecoder:
    """Stateful bytes → str decoder that tolerates split multi-byte sequences."""

    def __init__(self, encoding: str = "utf-8", errors: str = "strict") -> None:
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors=errors)

    def decode(self, data: bytes, final: bool = False) -> str:
        """
        Decode one chunk.

        Args:
            data: Raw bytes from the latest read (may be empty)
            final: True for the last chunk; flushes any pending partial sequence

        Returns:
            The text completed by this chunk (possibly empty)

        Raises:
            UnicodeDecodeError: Invalid bytes, or a truncated sequence at the end
        """
        return self._decoder.decode(data, final)

    def flush(self) -> str:
        """Finish the stream; raises if a partial character is still pending."""
        return self._decoder.decode(b"", True)
