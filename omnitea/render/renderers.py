"""Document renderers: text in, ordered PNG paths out.

Two interchangeable strategies share the ``render(text) -> list[str]``
contract:

- PandocRenderer: markdown -> PDF (pandoc + xelatex) -> PNG (ImageMagick)
- LatexRenderer: standalone LaTeX -> PDF (xelatex) -> PNG (ImageMagick)

Each call writes under a fresh random stem inside ``work_dir``. The
intermediate source and PDF are removed before returning; the PNGs are
left for the caller to delete once they have been sent.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path

from ..types import DocumentRenderer, RenderError, RendererConfig

logger = logging.getLogger(__name__)

PANDOC_GEOMETRY = [
    "-V", "geometry:margin=0.2in",
    "-V", "geometry:paperwidth=4.25in",
    "-V", "geometry:paperheight=3.25in",
]

LATEX_TEMPLATE = (
    "\\documentclass[preview,border=4pt]{{standalone}}\n"
    "\\usepackage{{amsmath,amssymb}}\n"
    "\\begin{{document}}\n"
    "{body}\n"
    "\\end{{document}}\n"
)


async def _run(cmd: list[str], cwd: Path) -> None:
    """Run a command to completion; raise RenderError on non-zero exit."""
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise RenderError(f"Could not start {cmd[0]}: {e}", command=cmd[0]) from e

    _, stderr = await process.communicate()
    if process.returncode != 0:
        raise RenderError(
            f"{cmd[0]} failed ({process.returncode}): {stderr.decode('utf-8', errors='replace').strip()}",
            command=cmd[0],
            returncode=process.returncode,
        )


async def _rasterize(pdf: str, stem: str, work_dir: Path, density: int) -> list[str]:
    """Convert every PDF page to a negated, trimmed PNG.

    Pages written before a failing ``convert`` gave up are removed.
    """
    try:
        await _run(
            [
                "convert", "-trim", "-density", str(density), pdf,
                "-channel", "RGB", "-negate", "+channel",
                f"{stem}.png",
            ],
            work_dir,
        )
    except RenderError:
        cleanup_paths(collect_images(work_dir, stem))
        raise
    return collect_images(work_dir, stem)


def collect_images(work_dir: Path, stem: str) -> list[str]:
    """PNG files produced for ``stem``, ordered by filename.

    A single page comes out as ``{stem}.png``; multiple pages as
    ``{stem}-0.png``, ``{stem}-1.png`` and so on.
    """
    return [str(p) for p in sorted(work_dir.glob(f"{stem}*.png"))]


def cleanup_paths(paths) -> None:
    """Delete rendered images once they have been sent."""
    for path in paths:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)


def _write_source(source: Path, content: str) -> None:
    try:
        source.parent.mkdir(parents=True, exist_ok=True)
        source.write_text(content)
    except OSError as e:
        raise RenderError(f"Could not write {source}: {e}") from e


class PandocRenderer:
    """Render markdown (with inline TeX math) through pandoc."""

    def __init__(self, work_dir: str | Path = ".", density: int = 300) -> None:
        self.work_dir = Path(work_dir)
        self.density = density

    async def render(self, text: str) -> list[str]:
        stem = uuid.uuid4().hex
        source = self.work_dir / f"{stem}.md"
        pdf = self.work_dir / f"{stem}.pdf"
        try:
            _write_source(source, "\\pagenumbering{gobble}\n" + text)
            await _run(
                ["pandoc", *PANDOC_GEOMETRY, "--pdf-engine=xelatex", "-o", pdf.name, source.name],
                self.work_dir,
            )
            paths = await _rasterize(pdf.name, stem, self.work_dir, self.density)
        finally:
            cleanup_paths([source, pdf])
        logger.debug("Rendered %d image(s) for %d chars of markdown", len(paths), len(text))
        return paths


class LatexRenderer:
    """Render text as the body of a standalone LaTeX document."""

    def __init__(self, work_dir: str | Path = ".", density: int = 300) -> None:
        self.work_dir = Path(work_dir)
        self.density = density

    async def render(self, text: str) -> list[str]:
        stem = uuid.uuid4().hex
        source = self.work_dir / f"{stem}.tex"
        byproducts = [self.work_dir / f"{stem}{ext}" for ext in (".pdf", ".aux", ".log")]
        try:
            _write_source(source, LATEX_TEMPLATE.format(body=text))
            await _run(
                ["xelatex", "-interaction=nonstopmode", "-halt-on-error", source.name],
                self.work_dir,
            )
            paths = await _rasterize(f"{stem}.pdf", stem, self.work_dir, self.density)
        finally:
            cleanup_paths([source, *byproducts])
        logger.debug("Rendered %d image(s) for %d chars of LaTeX", len(paths), len(text))
        return paths


def create_renderer(config: RendererConfig) -> DocumentRenderer:
    if config.strategy == "markdown":
        return PandocRenderer(work_dir=config.work_dir, density=config.density)
    if config.strategy == "latex":
        return LatexRenderer(work_dir=config.work_dir, density=config.density)
    raise ValueError(f"Unknown renderer strategy: {config.strategy}")
