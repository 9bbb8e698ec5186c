"""
PdfToolkit - Page Thumbnail Renderer

Renders page previews using pdftoppm (poppler-utils) with thread-pooled
background rendering and LRU caching. Rendering only ever reads the
source document's bytes.
"""

import hashlib
import io
import os
import shutil
import subprocess
import tempfile
import threading
import weakref
from collections import OrderedDict
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor

from PIL import Image, ImageDraw

from pdftoolkit.config import (
    DEFAULT_THUMBNAIL_SCALE,
    PDFTOPPM_BINARY,
    THUMBNAIL_CACHE_SIZE,
    THUMBNAIL_WORKERS,
)
from pdftoolkit.constants import (
    DEFAULT_PAGE_SIZE,
    PDFTOPPM_BATCH_TIMEOUT_SECS,
    PDFTOPPM_PAGE_TIMEOUT_SECS,
    POINTS_PER_INCH,
)
from pdftoolkit.editor.page_model import SourceDocument, WorkingPage, effective_rotation
from pdftoolkit.utils.exceptions import RenderError
from pdftoolkit.utils.logger import logger

# PIL transposes that turn an image clockwise by the given angle
_CLOCKWISE_TRANSPOSE = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


class ThumbnailRenderer:
    """Renders page thumbnails with caching and lazy loading.

    Uses pdftoppm for rendering via a bounded thread pool. Each source
    document is written once to a private temporary file that pdftoppm
    reads; rendered images are cached in an LRU cache.
    """

    def __init__(
        self,
        cache_size: int = THUMBNAIL_CACHE_SIZE,
        default_scale: float = DEFAULT_THUMBNAIL_SCALE,
        max_workers: int = THUMBNAIL_WORKERS,
    ) -> None:
        """Initialize the thumbnail renderer.

        Args:
            cache_size: Maximum number of thumbnails to cache
            default_scale: Default scale (1.0 = 72 dpi, one pixel per point)
            max_workers: Number of background render threads
        """
        self._cache: OrderedDict[tuple, Image.Image] = OrderedDict()
        self._cache_size = cache_size
        self._default_scale = default_scale
        self._max_workers = max_workers
        self._lock = threading.Lock()
        self._pool = ThreadPoolExecutor(max_workers=max_workers)
        self._pending: dict[tuple, Future] = {}
        self._digests: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()
        self._doc_paths: dict[str, str] = {}
        self._tmpdir: tempfile.TemporaryDirectory | None = None

    # -- Document files -----------------------------------------------------

    def _digest(self, source: SourceDocument) -> str:
        with self._lock:
            digest = self._digests.get(source)
            if digest is None:
                digest = hashlib.sha1(source.data).hexdigest()
                self._digests[source] = digest
            return digest

    def _document_path(self, source: SourceDocument) -> str:
        """Get (writing on first use) the temp file holding the source bytes."""
        digest = self._digest(source)
        with self._lock:
            path = self._doc_paths.get(digest)
            if path is not None:
                return path
            if self._tmpdir is None:
                self._tmpdir = tempfile.TemporaryDirectory(prefix="pdftoolkit-thumbs-")
            path = os.path.join(self._tmpdir.name, f"{digest}.pdf")
            with open(path, "wb") as f:
                f.write(source.data)
            self._doc_paths[digest] = path
            return path

    def _cache_key(
        self, source: SourceDocument, source_index: int, scale: float, rotation: int
    ) -> tuple:
        return (self._digest(source), source_index, round(scale, 4), rotation)

    def _evict_cache(self) -> None:
        """Evict oldest items from cache."""
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)

    # -- Rendering ----------------------------------------------------------

    def render(
        self,
        source: SourceDocument,
        source_index: int,
        scale: float | None = None,
        rotation: int = 0,
    ) -> Image.Image:
        """Render one source page, rotated clockwise by ``rotation`` degrees.

        The page is drawn as the document stores it (native /Rotate applied).
        Never raises for render failures; a placeholder image is returned.
        """
        if scale is None:
            scale = self._default_scale

        key = self._cache_key(source, source_index, scale, rotation)
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                return self._cache[key]

        try:
            image = self._render_pdftoppm(source, source_index, scale)
        except RenderError as e:
            logger.error(str(e))
            return self._create_error_image(source, source_index, scale)

        image = self._apply_rotation(image, rotation)
        with self._lock:
            self._cache[key] = image
            self._evict_cache()
        return image

    def render_working_page(
        self, source: SourceDocument, page: WorkingPage, scale: float | None = None
    ) -> Image.Image:
        """Render a working page as it will look after export."""
        native = source.native_rotation(page.source_index)
        # pdftoppm output already shows the native rotation
        extra = (effective_rotation(native, page.rotation_delta) - native) % 360
        return self.render(source, page.source_index, scale, extra)

    def render_async(
        self,
        source: SourceDocument,
        source_index: int,
        callback: Callable[[Image.Image], None] | None = None,
        scale: float | None = None,
        rotation: int = 0,
    ) -> Future:
        """Render a thumbnail on the thread pool.

        Concurrent requests for the same thumbnail share one render. The
        callback, if given, runs on the worker thread.
        """
        if scale is None:
            scale = self._default_scale
        key = self._cache_key(source, source_index, scale, rotation)

        with self._lock:
            future = self._pending.get(key)
            if future is None:
                future = self._pool.submit(self.render, source, source_index, scale, rotation)
                self._pending[key] = future
                future.add_done_callback(lambda _f, k=key: self._forget_pending(k))

        if callback is not None:
            future.add_done_callback(lambda f: callback(f.result()))
        return future

    def _forget_pending(self, key: tuple) -> None:
        with self._lock:
            self._pending.pop(key, None)

    def batch_preload(self, source: SourceDocument, scale: float | None = None) -> Future:
        """Pre-render every page of a document with a single pdftoppm call."""
        if scale is None:
            scale = self._default_scale
        return self._pool.submit(self._batch_worker, source, scale)

    def _batch_worker(self, source: SourceDocument, scale: float) -> int:
        """Worker: render all pages via pdftoppm and populate cache.

        Returns:
            Number of pages cached
        """
        if shutil.which(PDFTOPPM_BINARY) is None:
            logger.warning("pdftoppm not found, skipping thumbnail preload")
            return 0

        pdf_path = self._document_path(source)
        cached = 0
        try:
            with tempfile.TemporaryDirectory() as tmpdir:
                prefix = os.path.join(tmpdir, "p")
                result = subprocess.run(
                    [PDFTOPPM_BINARY, "-jpeg", "-r", f"{POINTS_PER_INCH * scale:g}", pdf_path, prefix],
                    capture_output=True,
                    timeout=PDFTOPPM_BATCH_TIMEOUT_SECS,
                )
                if result.returncode != 0:
                    logger.warning(f"pdftoppm batch render failed ({result.returncode})")
                    return 0

                files = sorted(f for f in os.listdir(tmpdir) if f.endswith(".jpg"))
                for idx, fname in enumerate(files[: source.page_count]):
                    with Image.open(os.path.join(tmpdir, fname)) as img:
                        img.load()
                        image = img.copy()
                    key = self._cache_key(source, idx, scale, 0)
                    with self._lock:
                        self._cache[key] = image
                    cached += 1

                with self._lock:
                    self._evict_cache()
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Batch preload error: {e}")

        logger.info(f"Batch preload: {cached} page(s) of '{source.name}' rendered")
        return cached

    def _render_pdftoppm(
        self, source: SourceDocument, source_index: int, scale: float
    ) -> Image.Image:
        """Render a single page via pdftoppm.

        Raises:
            RenderError: If the page is out of range or pdftoppm fails
        """
        if not source.is_valid_index(source_index):
            raise RenderError(source_index, "page out of range")
        if shutil.which(PDFTOPPM_BINARY) is None:
            raise RenderError(source_index, "pdftoppm not found (install poppler-utils)")

        page_1based = str(source_index + 1)
        try:
            result = subprocess.run(
                [
                    PDFTOPPM_BINARY,
                    "-png",
                    "-r",
                    f"{POINTS_PER_INCH * scale:g}",
                    "-f",
                    page_1based,
                    "-l",
                    page_1based,
                    "-singlefile",
                    self._document_path(source),
                ],
                capture_output=True,
                timeout=PDFTOPPM_PAGE_TIMEOUT_SECS,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise RenderError(source_index, str(e)) from e

        if result.returncode != 0 or not result.stdout:
            raise RenderError(source_index, f"pdftoppm exited with {result.returncode}")

        try:
            with Image.open(io.BytesIO(result.stdout)) as img:
                img.load()
                return img.convert("RGB")
        except OSError as e:
            raise RenderError(source_index, str(e)) from e

    @staticmethod
    def _apply_rotation(image: Image.Image, rotation: int) -> Image.Image:
        """Turn an image clockwise by a multiple of 90 degrees."""
        transpose = _CLOCKWISE_TRANSPOSE.get(rotation % 360)
        if transpose is None:
            return image
        return image.transpose(transpose)

    @staticmethod
    def _create_error_image(
        source: SourceDocument, source_index: int, scale: float
    ) -> Image.Image:
        """Create a placeholder image for error cases."""
        width_pt, height_pt = DEFAULT_PAGE_SIZE
        if source.page_sizes and source.is_valid_index(source_index):
            width_pt, height_pt = source.page_sizes[source_index]
        width = max(1, int(width_pt * scale))
        height = max(1, int(height_pt * scale))

        image = Image.new("RGB", (width, height), (230, 230, 230))
        draw = ImageDraw.Draw(image)
        margin = int(width * 0.2)
        line_width = max(2, width // 30)
        draw.line((margin, margin, width - margin, height - margin), fill=(204, 51, 51), width=line_width)
        draw.line((width - margin, margin, margin, height - margin), fill=(204, 51, 51), width=line_width)
        return image

    # -- Cache management ---------------------------------------------------

    def clear_document_cache(self, source: SourceDocument) -> None:
        """Drop cached thumbnails and the temp file of one document."""
        digest = self._digest(source)
        with self._lock:
            for key in [k for k in self._cache if k[0] == digest]:
                del self._cache[key]
            path = self._doc_paths.pop(digest, None)
        if path and os.path.exists(path):
            os.unlink(path)

    def clear_all(self) -> None:
        """Clear all caches, wait for running renders and remove temp files."""
        self._pool.shutdown(wait=True, cancel_futures=True)
        with self._lock:
            self._cache.clear()
            self._pending.clear()
            self._doc_paths.clear()
            if self._tmpdir is not None:
                self._tmpdir.cleanup()
                self._tmpdir = None
        # Re-create pool for potential reuse
        self._pool = ThreadPoolExecutor(max_workers=self._max_workers)
