"""
Audio encoder selection.
Maps a target codec to its FFmpeg encoder and constant-bitrate arguments.
"""

from typing import Dict, List, Tuple

from .constants import AUDIO_CODEC_MAP, codec_key


# Arguments that pin each encoder to constant-bitrate output. Bitrate vs.
# file size is only close to linear when the encoder honours -b:a exactly.
CBR_ARGS: Dict[str, List[str]] = {
    "aac": [],
    "libopus": ["-vbr", "off", "-application", "voip"],
    "libmp3lame": ["-abr", "0"],
}


class EncoderSelector:
    """Selects the audio encoder and its arguments for a codec."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

    def get_audio_encoder(self, codec: str, bitrate_bps: int) -> Tuple[str, List[str]]:
        """Get the encoder name and encoding args for codec at bitrate_bps."""
        try:
            encoder = AUDIO_CODEC_MAP[codec_key(codec)][0]
        except KeyError:
            raise ValueError(f"Unsupported audio codec: {codec}") from None

        args = ["-c:a", encoder, "-b:a", str(int(bitrate_bps))]
        args.extend(CBR_ARGS.get(encoder, []))
        return encoder, args

    def get_container(self, codec: str) -> Tuple[str, str]:
        """Get (muxer, extension) for codec."""
        try:
            _, muxer, extension = AUDIO_CODEC_MAP[codec_key(codec)]
        except KeyError:
            raise ValueError(f"Unsupported audio codec: {codec}") from None
        return muxer, extension

