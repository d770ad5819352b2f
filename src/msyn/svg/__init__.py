from .optimizer import SvgOptimizeError, optimize_svg, optimize_svg_data

__all__ = ["SvgOptimizeError", "optimize_svg", "optimize_svg_data"]
