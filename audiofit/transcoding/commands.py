"""
FFmpeg command building for audio-only encodes.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .encoders import EncoderSelector

logger = logging.getLogger(__name__)


class CommandBuilder:
    """Builds FFmpeg commands that re-encode the first audio stream."""

    def __init__(
        self,
        ffmpeg_path: str,
        encoder_selector: EncoderSelector,
        channels: Optional[int] = None,
        sample_rate: Optional[int] = None,
        extra_args: Sequence[str] = (),
    ):
        self.ffmpeg_path = ffmpeg_path
        self.encoder_selector = encoder_selector
        self.channels = channels
        self.sample_rate = sample_rate
        self.extra_args = list(extra_args)

    def build_encode_command(
        self,
        input_path: Path,
        output_path: Path,
        codec: str,
        bitrate_bps: int,
    ) -> List[str]:
        """Build an FFmpeg command encoding input_path to output_path at bitrate_bps."""
        encoder, audio_args = self.encoder_selector.get_audio_encoder(codec, bitrate_bps)
        muxer, _ = self.encoder_selector.get_container(codec)

        cmd = [self.ffmpeg_path, "-y", "-hide_banner", "-nostdin"]
        cmd.extend(["-i", str(input_path)])

        # First audio stream only; video, subtitles and data are dropped
        cmd.extend(["-map", "0:a:0", "-vn", "-sn", "-dn"])

        if self.channels:
            cmd.extend(["-ac", str(self.channels)])
        if self.sample_rate:
            cmd.extend(["-ar", str(self.sample_rate)])

        cmd.extend(audio_args)
        cmd.extend(self.extra_args)
        cmd.extend(["-f", muxer, str(output_path)])

        logger.debug(f"[Command] {encoder} @ {bitrate_bps} bps -> {output_path.name}")
        return cmd
