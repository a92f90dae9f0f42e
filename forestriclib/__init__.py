from ._version import __version__
from .models import (
    ForestricError,
    RenderMode,
    PlaybackState,
    JobStatus,
    PcmBuffer,
    CropRange,
    ExportJob,
)
from .config import (
    MIN_GAP,
    MP3_BITRATE_KBPS,
    MP3_BLOCK_SIZE,
    OUTPUT_SUFFIX,
    STUDIO_PARAMS,
    ConfigError,
    ConfigFieldError,
    ParamSpec,
    default_config,
    merge_configs,
    validate_config,
    validate_param_values,
)
from .audio import (
    AudioContext,
    DecodeError,
    acquire_context,
    decode,
    decode_file,
    format_duration,
    install_context,
    is_probably_audio,
)
from .crop import (
    CropError,
    CropModel,
    DragCapture,
    Edge,
    from_minutes_seconds,
    to_minutes_seconds,
)
from .graph import RenderError, RenderGraph
from .offline import output_frame_count, render_offline
from .encoder import (
    EncodeError,
    EncoderClosedError,
    EncoderState,
    Mp3StreamEncoder,
    quantize,
)
from .export import (
    ExportBusyError,
    ExportCoordinator,
    export_filename,
    export_mp3,
    save_export,
)
from .playback import PlaybackEngine, ThreadFrameClock
from .studio import Studio
from .events import EventBus

__all__ = [
    "__version__",
    "ForestricError",
    "RenderMode",
    "PlaybackState",
    "JobStatus",
    "PcmBuffer",
    "CropRange",
    "ExportJob",
    "MIN_GAP",
    "MP3_BITRATE_KBPS",
    "MP3_BLOCK_SIZE",
    "OUTPUT_SUFFIX",
    "STUDIO_PARAMS",
    "ConfigError",
    "ConfigFieldError",
    "ParamSpec",
    "default_config",
    "merge_configs",
    "validate_config",
    "validate_param_values",
    "AudioContext",
    "DecodeError",
    "acquire_context",
    "decode",
    "decode_file",
    "format_duration",
    "install_context",
    "is_probably_audio",
    "CropError",
    "CropModel",
    "DragCapture",
    "Edge",
    "from_minutes_seconds",
    "to_minutes_seconds",
    "RenderError",
    "RenderGraph",
    "output_frame_count",
    "render_offline",
    "EncodeError",
    "EncoderClosedError",
    "EncoderState",
    "Mp3StreamEncoder",
    "quantize",
    "ExportBusyError",
    "ExportCoordinator",
    "export_filename",
    "export_mp3",
    "save_export",
    "PlaybackEngine",
    "ThreadFrameClock",
    "Studio",
    "EventBus",
]
