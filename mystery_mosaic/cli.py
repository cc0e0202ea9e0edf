"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from mystery_mosaic.color_utils import (
    DEFAULT_PALETTE,
    palette_to_hex,
    parse_palette,
)
from mystery_mosaic.config import (
    ColorMatching,
    MosaicConfig,
    MosaicConfigError,
    MosaicSettings,
    RenderMode,
    Sampling,
    TileShape,
)
from mystery_mosaic.grid import build_mosaic
from mystery_mosaic.image_io import (
    load_pixels,
    load_result,
    load_rgb,
    render_export,
    render_preview,
    save_result,
    save_surface,
)
from mystery_mosaic.palette import extract_palette

app = typer.Typer(
    name="mystery-mosaic",
    help="Turn photos into paint-by-numbers tile mosaics.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()

# Defaults come from the dataclasses - single source of truth
_DEFAULTS = MosaicConfig()
_SETTINGS = MosaicSettings()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


def _fail(err: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {err}")
    raise typer.Exit(1)


# -- generate command --------------------------------------------------

@app.command()
def generate(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source photo"),
    output_dir: Path = typer.Option(
        _DEFAULTS.output_dir, "--output", "-o", help="Results folder",
    ),
    canvas_width: float = typer.Option(
        _SETTINGS.canvas_width, "--width", "-W", help="Canvas width in inches (1-20)",
    ),
    canvas_height: float = typer.Option(
        _SETTINGS.canvas_height, "--height", "-H", help="Canvas height in inches (1-20)",
    ),
    tile_size: float = typer.Option(
        _SETTINGS.tile_size, "--tile-size", "-t", help="Tile size in mm (1-20)",
    ),
    shape: TileShape = typer.Option(_SETTINGS.tile_shape, "--shape", help="Tile shape"),
    matching: ColorMatching = typer.Option(
        _SETTINGS.color_matching, "--matching", help="Colour distance metric",
    ),
    sampling: Sampling = typer.Option(
        _SETTINGS.sampling, "--sampling", help="'point' (default) or 'area' averaging",
    ),
    palette: str | None = typer.Option(
        None, "--palette", "-p",
        help="Comma-separated hex colours, e.g. '#FF6B6B,#4ECDC4'",
    ),
    auto_palette: int | None = typer.Option(
        None, "--auto-palette", "-a", min=1, max=64,
        help="Derive N colours from the image by median-cut",
    ),
    preview_mode: RenderMode = typer.Option(
        RenderMode.COLORED, "--preview", help="Preview render mode",
    ),
    export: bool = typer.Option(
        True, "--export/--no-export", help="Write 300 DPI colored + numbered PNGs",
    ),
    dpi: int = typer.Option(_DEFAULTS.dpi, "--dpi", help="Export resolution"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Build a mosaic from IMAGE and write the grid, a preview and print exports."""
    _setup_logging(verbose)
    logger = logging.getLogger("mystery_mosaic")

    try:
        settings = MosaicSettings(
            canvas_width=canvas_width,
            canvas_height=canvas_height,
            tile_size=tile_size,
            tile_shape=shape,
            color_matching=matching,
            sampling=sampling,
        ).validate()
    except MosaicConfigError as err:
        _fail(err)

    console.print(Panel.fit(
        f"[bold]MYSTERY MOSAIC[/bold]\n"
        f"Canvas: {settings.canvas_width:g}x{settings.canvas_height:g} in  |  "
        f"Tile: {settings.tile_size:g} mm {settings.tile_shape.value}\n"
        f"Matching: {settings.color_matching.value}  |  "
        f"Sampling: {settings.sampling.value}",
        border_style="cyan",
    ))

    t_total = time.perf_counter()
    pixels = load_pixels(image, settings, dpi)

    try:
        if palette:
            colors = parse_palette([c.strip() for c in palette.split(",")])
            logger.info("Palette: %d colours from --palette", len(colors))
        elif auto_palette:
            colors = extract_palette(
                load_rgb(image), auto_palette, _DEFAULTS.max_palette_samples,
            )
            logger.info("Palette: %d colours derived by median-cut", len(colors))
        else:
            colors = parse_palette(DEFAULT_PALETTE)
            logger.info("Palette: default (%d colours)", len(colors))

        result = build_mosaic(pixels, settings, colors)
    except MosaicConfigError as err:
        _fail(err)

    stem = image.stem
    fmt = _DEFAULTS.output_format
    save_result(output_dir / f"{stem}_mosaic.json", result, settings, colors)

    preview = render_preview(
        result, colors, settings, preview_mode, _DEFAULTS.preview_width,
    )
    save_surface(preview, output_dir / f"{stem}_preview_{preview_mode.value}.{fmt}")

    if export:
        colored = render_export(result, colors, settings, RenderMode.COLORED, dpi=dpi)
        save_surface(colored, output_dir / f"{stem}_colored.{fmt}")
        numbered = render_export(
            result, colors, settings, RenderMode.NUMBERED, legend=True, dpi=dpi,
        )
        save_surface(numbered, output_dir / f"{stem}_numbered.{fmt}")

    elapsed = time.perf_counter() - t_total
    console.print(
        f"  [green]✓[/green] {result.grid_width}x{result.grid_height} = "
        f"{result.total_tiles} tiles using {result.used_colors} of {len(colors)} colours  "
        f"[dim]time={elapsed:.1f}s[/dim]"
    )
    console.print(Panel.fit(
        f"[bold green]ALL DONE[/bold green] - results in [bold]{output_dir}/[/bold]",
        border_style="green",
    ))


# -- palette command ---------------------------------------------------

@app.command()
def palette(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source photo"),
    colors: int = typer.Option(
        _DEFAULTS.palette_size, "--colors", "-n", min=1, max=64, help="Palette size",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Print a median-cut palette derived from IMAGE."""
    _setup_logging(verbose)

    derived = extract_palette(load_rgb(image), colors, _DEFAULTS.max_palette_samples)

    table = Table(title=f"{image.name} - {colors} colours")
    table.add_column("#", justify="right")
    table.add_column("Hex")
    table.add_column("Swatch")
    for i, hex_color in enumerate(palette_to_hex(derived), 1):
        table.add_row(str(i), hex_color, f"[on {hex_color}]      [/]")
    console.print(table)
    console.print(f"[dim]{','.join(palette_to_hex(derived))}[/dim]")


# -- render command ----------------------------------------------------

@app.command()
def render(
    result_path: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="JSON written by 'generate'",
    ),
    output: Path = typer.Option(Path("output/mosaic.png"), "--output", "-o"),
    mode: RenderMode = typer.Option(RenderMode.NUMBERED, "--mode", "-m"),
    legend: bool = typer.Option(True, "--legend/--no-legend"),
    preview: bool = typer.Option(
        False, "--preview", help="Viewport-sized render instead of print resolution",
    ),
    dpi: int = typer.Option(_DEFAULTS.dpi, "--dpi"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Re-render a saved mosaic in any mode."""
    _setup_logging(verbose)

    try:
        result, settings, colors = load_result(result_path)
    except (ValueError, KeyError) as err:  # MosaicConfigError, bad enum, bad JSON
        _fail(err)

    if preview:
        surface = render_preview(result, colors, settings, mode, _DEFAULTS.preview_width)
    else:
        surface = render_export(result, colors, settings, mode, legend=legend, dpi=dpi)
    save_surface(surface, output)

    console.print(
        f"[green]✓[/green] Saved to {output}  "
        f"[dim]{surface.width}x{surface.height} px  mode={mode.value}[/dim]"
    )


if __name__ == "__main__":
    app()
