import os
import sys
import argparse

try:
    from rich.console import Console
    from rich.panel import Panel
    from rich.progress import Progress, SpinnerColumn, BarColumn, TextColumn
except ImportError:
    print("Error: The 'rich' library is required for the CLI but not installed.", file=sys.stderr)
    print("Please install it with: pip install forestric[cli]", file=sys.stderr)
    sys.exit(1)

from forestriclib import __version__
from forestriclib.audio import format_duration, is_probably_audio
from forestriclib.config import default_config, merge_configs, ConfigError
from forestriclib.crop import from_minutes_seconds
from forestriclib.models import ForestricError, RenderMode
from forestriclib.offline import output_frame_count
from forestriclib.export import save_export
from forestriclib.studio import Studio

console = Console()


def time_value(value):
    """Parse ``75.5``, ``1:15.5`` style times into seconds."""
    text = str(value).strip()
    if ":" in text:
        minutes, _, seconds = text.partition(":")
        return from_minutes_seconds(minutes, seconds)
    try:
        seconds = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid time: {value!r}")
    if seconds < 0:
        raise argparse.ArgumentTypeError("time must be >= 0")
    return seconds


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description="Forestric: crop a track, pitch it up by playback rate, export MP3",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--version", action="version",
                        version=f"forestric {__version__}")

    parser.add_argument("file", type=str,
                        help="Source audio file (.mp3, .wav, .ogg, .flac, ...)")

    # Selection
    parser.add_argument("--start", type=time_value, default=0.0,
                        help="Crop start (seconds or m:ss.ss)")
    parser.add_argument("--end", type=time_value, default=None,
                        help="Crop end (seconds or m:ss.ss); defaults to the end of the track")

    # Transform
    parser.add_argument("--mode", type=str, choices=[m.key for m in RenderMode],
                        default="standard",
                        help="Rate preset: standard = 2.5x, smooth = 2.0x")
    parser.add_argument("--volume", type=float, default=1.0,
                        help="Master gain (0.0 - 2.0)")

    # Output
    parser.add_argument("--output_folder", type=str, default=None,
                        help="Folder for the exported MP3 (defaults to the source folder)")

    args = parser.parse_args(argv)

    if not (0.0 <= args.volume <= 2.0):
        parser.error("--volume must be between 0.0 and 2.0")

    if args.end is not None and args.end <= args.start:
        parser.error("--end must be greater than --start")

    return args


def process_file(argv=None):
    args = parse_arguments(argv)

    source = os.path.abspath(args.file)
    if not os.path.isfile(source):
        console.print(f"[bold red]Error:[/] File not found: {source}")
        return 1
    if not is_probably_audio(source):
        console.print(f"[yellow]Warning:[/] {os.path.basename(source)} "
                      f"does not look like an audio file, trying anyway")

    try:
        config = merge_configs(default_config(), {
            "mode": args.mode,
            "volume": args.volume,
        })
        studio = Studio(config)
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 1

    try:
        buffer = studio.load_file(source)
    except ForestricError as e:
        console.print(f"[bold red]Decode error:[/] {e}")
        return 1

    crop = studio.crop
    if args.end is not None:
        crop.set_range(args.start, args.end)
    else:
        crop.set_start(args.start)

    mode = studio.mode
    frames = output_frame_count(crop.range, mode.rate, buffer.samplerate)

    # --- HEADER PANEL ---
    console.print(Panel.fit(
        f"[bold]Forestric[/]\n"
        f"Source: [cyan]{studio.source_name}[/] "
        f"({format_duration(buffer.duration)}, {buffer.num_channels} ch, "
        f"{buffer.samplerate / 1000:g} kHz)\n"
        f"Crop: [cyan]{crop.start:.2f}s[/] - [cyan]{crop.end:.2f}s[/]\n"
        f"Mode: [cyan]{mode.key}[/] ({mode.rate}x, {mode.semitones:+.2f} st) | "
        f"Gain: [cyan]{studio.volume:.2f}x[/]\n"
        f"Output: [green]{format_duration(frames / buffer.samplerate)}[/]",
        title="Configuration"
    ))

    # --- RENDER + ENCODE ---
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
    ) as progress:
        task_id = progress.add_task("[cyan]Encoding MP3...", total=None)

        def on_block(**data):
            progress.update(task_id, completed=data["index"], total=data["total"])

        try:
            with studio.event_bus.subscribed("export.block", on_block):
                job = studio.export()
        except ForestricError as e:
            console.print(f"[bold red]Render error:[/] {e}")
            return 1

    output_dir = args.output_folder or os.path.dirname(source)
    try:
        path = save_export(job, output_dir)
    except OSError as e:
        console.print(f"[bold red]Error:[/] Cannot write output: {e}")
        return 1

    console.print(f"\n[green]Saved[/] {path} [dim]({len(job.data) / 1024:.1f} KiB)[/]")
    return 0


if __name__ == "__main__":
    sys.exit(process_file())
