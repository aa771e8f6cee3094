"""
Render a spooled image on an open printer and cut the paper.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from PIL import Image

from receipt_spooler.core.errors import PrintError
from receipt_spooler.printing.connection import DeviceHandle
from receipt_spooler.printing.fetcher import LocalImageResource

logger = logging.getLogger(__name__)

# 24-dot column graphics, the densest mode most network receipt printers accept
DEFAULT_IMAGE_IMPL = "bitImageColumn"


@dataclass(frozen=True)
class PrintResult:
    ok: bool
    width: int
    height: int
    impl: str


class PrintExecutor:
    def __init__(self, impl: str = DEFAULT_IMAGE_IMPL, align: str = "center"):
        self.impl = impl or DEFAULT_IMAGE_IMPL
        self.align = align

    def render(self, handle: DeviceHandle, image: LocalImageResource) -> PrintResult:
        """
        Align, transfer the image, cut, and release the device.

        The handle is closed on every exit path. Raises PrintError if loading,
        transfer or cut fails.
        """
        p = handle.printer
        try:
            with Image.open(image.path) as img:
                width, height = img.size
                logger.info("Printing %s (%dx%d, impl=%s)", image.path.name, width, height, self.impl)
                p.set(align=self.align)
                p.image(
                    img,
                    impl=self.impl,
                    high_density_vertical=True,
                    high_density_horizontal=True,
                )
            p.cut()
        except Exception as e:
            raise PrintError(f"Printing {image.path.name} failed: {e}") from e
        finally:
            handle.close()

        logger.info("Printed and cut %s", image.path.name)
        return PrintResult(ok=True, width=width, height=height, impl=self.impl)


__all__ = ["DEFAULT_IMAGE_IMPL", "PrintExecutor", "PrintResult"]
