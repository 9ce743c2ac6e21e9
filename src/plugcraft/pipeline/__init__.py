"""Asset pipeline: build, single-file bundle and the minifiers they share."""

from plugcraft.pipeline.build import build
from plugcraft.pipeline.bundle import bundle
from plugcraft.pipeline.minify import Minifier, get_minifier, minifier_for_path

__all__ = ["Minifier", "build", "bundle", "get_minifier", "minifier_for_path"]
