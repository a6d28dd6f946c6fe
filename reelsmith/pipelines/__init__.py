"""Pipeline orchestrators for Reelsmith."""

from reelsmith.pipelines.block_renderer import BlockRenderer
from reelsmith.pipelines.final_assembly import FinalAssembler

__all__ = ["BlockRenderer", "FinalAssembler"]
