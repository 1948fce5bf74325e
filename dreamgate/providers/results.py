"""Result image filtering and batch extraction.

Generation UIs render one batch of results as a single row of
thumbnails. Without a stable DOM hook, the batch is recovered by
clustering fresh images on their vertical position.
"""

from dataclasses import dataclass

# URL fragments that identify UI imagery rather than generated content
CHROME_URL_MARKERS = ("icon", "logo", "avatar", "emoji", "sprite", "favicon", "badge", "placeholder")


@dataclass(frozen=True)
class ImageBox:
    """One <img> as rendered: source URL and bounding box in CSS px."""

    src: str
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: dict) -> "ImageBox":
        return cls(
            src=data.get("src", ""),
            x=float(data.get("x", 0)),
            y=float(data.get("y", 0)),
            width=float(data.get("width", 0)),
            height=float(data.get("height", 0)),
        )


@dataclass(frozen=True)
class ImageResult:
    url: str
    index: int

    def to_dict(self) -> dict:
        return {"url": self.url, "index": self.index}


@dataclass(frozen=True)
class GenerationResult:
    images: tuple[ImageResult, ...]
    model: str
    prompt: str

    @property
    def count(self) -> int:
        return len(self.images)

    @property
    def urls(self) -> list[str]:
        return [img.url for img in self.images]


@dataclass(frozen=True)
class ExtractionConfig:
    min_size: int = 180
    row_tolerance: int = 50
    top_region: int | None = None
    batch_size: int = 4


def is_chrome_image(src: str) -> bool:
    """True for icons, logos, avatars and inline SVG - never a generation result."""
    lowered = src.lower()
    if lowered.startswith("data:image/svg"):
        return True
    path = lowered.split("?")[0]
    return any(marker in path for marker in CHROME_URL_MARKERS) or path.endswith(".svg")


def qualifying_images(boxes: list[ImageBox], baseline: set[str], config: ExtractionConfig) -> list[ImageBox]:
    """Keep images that are new, content-sized, not UI chrome, and inside the result region.

    Duplicated sources keep their first occurrence.
    """
    seen: set[str] = set()
    result = []
    for box in boxes:
        if not box.src or box.src in baseline or box.src in seen:
            continue
        if is_chrome_image(box.src):
            continue
        if box.width < config.min_size or box.height < config.min_size:
            continue
        if config.top_region is not None and box.y >= config.top_region:
            continue
        seen.add(box.src)
        result.append(box)
    return result


def group_rows(boxes: list[ImageBox], tolerance: int = 50) -> list[list[ImageBox]]:
    """Sort top-to-bottom then left-to-right and cluster into rows.

    A box joins the current row when its top edge is within ``tolerance``
    px of the row's first box.
    """
    ordered = sorted(boxes, key=lambda b: (b.y, b.x))
    rows: list[list[ImageBox]] = []
    for box in ordered:
        if rows and abs(box.y - rows[-1][0].y) <= tolerance:
            rows[-1].append(box)
        else:
            rows.append([box])
    return [sorted(row, key=lambda b: b.x) for row in rows]


def select_batch(boxes: list[ImageBox], tolerance: int = 50, batch_size: int = 4) -> list[ImageBox]:
    """Pick the generated batch: the first row of exactly ``batch_size`` images.

    Falls back to the first ``batch_size`` images in reading order.
    """
    rows = group_rows(boxes, tolerance)
    for row in rows:
        if len(row) == batch_size:
            return row
    return [box for row in rows for box in row][:batch_size]


def build_results(batch: list[ImageBox]) -> tuple[ImageResult, ...]:
    return tuple(ImageResult(url=box.src, index=i) for i, box in enumerate(batch, start=1))
