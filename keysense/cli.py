"""Command-line interface for keysense.

Provides commands for:
- analyze: Stream an audio file through the live analysis pipeline
- info: Show audio file information
"""

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .core import AnalysisConfig, AnalysisResult, AudioState, ConfigError, Mode
from .core.note import pitch_class_index

app = typer.Typer(
    name="keysense",
    help="Live musical key, harmony and rhythm analysis",
    rich_markup_mode="markdown",
)
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def parse_key(value: str) -> Tuple[str, Mode]:
    """
    Parse a key override such as "C:major" or "F#:minor".

    Raises:
        typer.BadParameter: On malformed input
    """
    root, sep, mode = value.partition(":")
    try:
        pitch_class_index(root)
        parsed_mode = Mode((mode if sep else "major").lower())
    except ValueError as e:
        raise typer.BadParameter(f"Invalid key {value!r}: expected ROOT:major|minor") from e
    return root, parsed_mode


def summarize(results: List[AnalysisResult]) -> Dict[str, Any]:
    """Aggregate per-tick results into a session summary."""
    states = Counter(r.state.value for r in results)
    melody = Counter(
        note for r in results if r.harmony_analysis for note in r.harmony_analysis.melody_notes
    )
    chords = Counter(
        note for r in results if r.harmony_analysis for note in r.harmony_analysis.chord_notes
    )
    keys = [r.key for r in results if r.key is not None]
    last_key = keys[-1] if keys else None
    tempos = [
        r.harmony_analysis.rhythm.tempo_bpm
        for r in results
        if r.harmony_analysis and r.harmony_analysis.rhythm
    ]

    return {
        "frames": len(results),
        "states": dict(states),
        "musical_frames": states.get(AudioState.MUSICAL_INPUT.value, 0),
        "melody_notes": dict(melody.most_common()),
        "chord_notes": dict(chords.most_common()),
        "key": last_key.to_dict() if last_key else None,
        "tempo_bpm": tempos[-1] if tempos else None,
    }


@app.command()
def analyze(
    input_file: Path = typer.Argument(..., help="Input audio file"),
    polyphonic: bool = typer.Option(
        False, "-p", "--polyphonic", help="Treat all strong pitches as chord notes"
    ),
    key: Optional[str] = typer.Option(
        None, "--key", "-k", help="Force the key, e.g. C:major or F#:minor"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="JSON file with AnalysisConfig overrides"
    ),
    hop: Optional[int] = typer.Option(
        None, "--hop", help="Samples between analysis frames (default: one 60 Hz tick)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Show per-tick debug logging"),
):
    """Stream an audio file through the analysis pipeline and summarize it.

    Examples:
        keysense analyze take.wav
        keysense analyze chords.wav --polyphonic --key G:major
    """
    from .stream import AudioProcessor, CollectingSink, FileFrameSource, run_session

    _configure_logging(verbose)

    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)

    override = parse_key(key) if key else None

    try:
        config = AnalysisConfig.from_json(config_file) if config_file else AnalysisConfig()
        if polyphonic:
            config = config.with_overrides(polyphonic=True)
    except ConfigError as e:
        console.print(f"[red]Config error: {e}[/red]")
        raise typer.Exit(1)

    try:
        source = FileFrameSource(input_file, config=config, hop_length=hop)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    processor = AudioProcessor(config)
    if override:
        processor.set_key_override(*override)

    sink = CollectingSink()
    n_frames = run_session(source, processor, sink)
    summary = summarize(sink.results)
    summary["file"] = str(input_file)
    summary["duration"] = source.duration
    summary["mean_tick_ms"] = processor.mean_tick_ms

    if as_json:
        print(json.dumps(summary, indent=2))
        return

    console.print(f"\n[bold blue]Live Analysis: {input_file.name}[/bold blue]\n")
    console.print(f"   Duration: {source.duration:.2f}s, {n_frames} frames")
    console.print(f"   Mean tick: {processor.mean_tick_ms:.2f}ms ({processor.overruns} over budget)")

    _show_states_table(summary["states"])
    _show_notes_table(summary["melody_notes"], summary["chord_notes"])

    key_info = summary["key"]
    if key_info:
        label = "override" if key_info["override"] else f"confidence: {key_info['confidence']:.2f}"
        console.print(f"\n   [green]Key: {key_info['key']} {key_info['mode']}[/green] ({label})")
    else:
        console.print("\n   [yellow]No key detected[/yellow]")

    if summary["tempo_bpm"] is not None:
        console.print(f"   Tempo: {summary['tempo_bpm']:.0f} BPM")

    console.print("\n[green][OK] Analysis complete![/green]")


@app.command()
def info(
    input_file: Path = typer.Argument(..., help="Input audio file"),
    hop: Optional[int] = typer.Option(None, "--hop", help="Samples between analysis frames"),
):
    """Show information about an audio file."""
    from .input import AudioLoader
    from .stream import FileFrameSource

    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)

    config = AnalysisConfig()
    try:
        header = AudioLoader(target_sr=config.sample_rate).probe(input_file)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    source = FileFrameSource(input_file, config=config, hop_length=hop)

    console.print(f"\n[bold]Audio Info:[/bold] {input_file.name}")
    console.print(f"  Format: {header.format}, {header.channels} channel(s)")
    console.print(f"  Duration: {header.duration:.2f} seconds")
    console.print(f"  Native sample rate: {header.sample_rate} Hz")
    console.print(f"  Session sample rate: {config.sample_rate} Hz ({len(source.audio):,} samples)")
    console.print(f"  Frames: {source.n_frames:,} (hop {source.hop_length}, size {source.frame_size})")


def _show_states_table(states: Dict[str, int]):
    """Display per-state frame counts in a table."""
    table = Table(title="Input States")
    table.add_column("State", style="cyan")
    table.add_column("Frames", style="yellow")

    for state in AudioState:
        if state.value in states:
            table.add_row(state.value, str(states[state.value]))

    console.print(table)


def _show_notes_table(melody: Dict[str, int], chords: Dict[str, int]):
    """Display how often each note was heard as melody or chord tone."""
    table = Table(title="Detected Notes")
    table.add_column("Note", style="cyan")
    table.add_column("Melody", style="green")
    table.add_column("Chord", style="magenta")

    for note in sorted(set(melody) | set(chords), key=pitch_class_index):
        table.add_row(note, str(melody.get(note, 0)), str(chords.get(note, 0)))

    console.print(table)


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
