"""SVG optimization for renderers with limited SVG support (react-native-svg and friends)."""

from pathlib import Path
from typing import Union

from loguru import logger
from lxml import etree

from msyn.file_utils import FileError, ensure_directory, write_file_atomic
from msyn.svg.plugins import local_name, run_plugins

# the plugin chain converges in two or three passes on real files
MAX_PASSES = 10


class SvgOptimizeError(Exception):
    """Raised when a document cannot be optimized."""

    pass


def _parser() -> etree.XMLParser:
    return etree.XMLParser(
        remove_blank_text=True,
        no_network=True,
        load_dtd=False,
        huge_tree=False,
    )


def _parse(data: bytes) -> etree._Element:
    try:
        root = etree.fromstring(data, _parser())
    except (etree.XMLSyntaxError, ValueError) as e:
        raise SvgOptimizeError(f"Invalid SVG: {e}") from e
    if root is None or not isinstance(root.tag, str) or local_name(root) != "svg":
        raise SvgOptimizeError("Root element is not <svg>")
    return root


def _serialize(root: etree._Element) -> str:
    # serializing the root element alone drops the doctype, XML declaration
    # and any comments or processing instructions outside the root
    return etree.tostring(root, encoding="unicode", with_tail=False)


def optimize_svg_data(data: Union[bytes, str]) -> str:
    """
    Optimize an SVG document.

    The plugin chain is applied until the output stops changing, so
    optimizing the result again returns it unchanged.

    Raises:
        SvgOptimizeError: If the document is not well-formed SVG
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    output = _serialize(_parse(data))
    for _ in range(MAX_PASSES):
        root = _parse(output.encode("utf-8"))
        run_plugins(root)
        optimized = _serialize(root)
        if optimized == output:
            break
        output = optimized
    else:
        logger.debug("SVG optimization did not settle, using last pass")
    return output


def optimize_svg(
    svg_path: Path, output_path: Path, force: bool = False, verbose: bool = False
) -> bool:
    """
    Optimize a single SVG file.

    Args:
        svg_path: Path to the SVG file
        output_path: Path to the output SVG file
        force: Overwrite an existing output file
        verbose: Log every optimized file at INFO

    Returns:
        True on success or when the output already exists, False on any error.
        Errors are logged, never raised.
    """
    if not force and output_path.exists():
        logger.debug(f"Skipped: {output_path} (already exists)")
        return True

    try:
        optimized = optimize_svg_data(svg_path.read_bytes())
        ensure_directory(output_path.parent)
        write_file_atomic(output_path, optimized)
    except (SvgOptimizeError, OSError, FileError) as e:
        logger.error(f"Optimization error: {svg_path}: {e}")
        return False

    message = f"Optimization complete: {svg_path.name} -> {output_path}"
    if verbose:
        logger.info(message)
    else:
        logger.debug(message)
    return True
