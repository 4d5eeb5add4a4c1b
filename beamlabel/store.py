"""Drawing-side collaborators: enumerate entities by layer and append labels.

Three stores share one small interface:

* InMemoryEntityStore - plain lists, used by tests and by callers that already
  hold parsed geometry.
* DxfEntityStore - LINE / TEXT / MTEXT in the modelspace of a DXF file (ezdxf).
* PdfEntityStore - vector paths and text spans of a plotted PDF (PyMuPDF),
  layers taken from the optional-content groups the plotter wrote.

append_label() is atomic per label: if creating the entity fails, nothing of it
stays in the drawing.
"""

import io
import json
import logging
import math
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

import ezdxf
import fitz
from ezdxf.enums import TextEntityAlignment

from .models import DrawingLine, DrawingText, LabelResult, Point

logger = logging.getLogger(__name__)


class EntityStore(Protocol):
    def lines(self, layer: str | None = None) -> list[DrawingLine]: ...

    def texts(self, layer: str) -> list[DrawingText]: ...

    def has_layer(self, name: str) -> bool: ...

    def ensure_layer(self, name: str, color: int) -> None: ...

    def has_text_style(self, name: str) -> bool: ...

    def append_label(self, label: LabelResult, style: str, color: int) -> str: ...

    def save(self, path: str | Path) -> None: ...

    def to_bytes(self) -> bytes: ...


def _same_layer(a: str, b: str) -> bool:
    return a.casefold() == b.casefold()


# --- In-memory ---


class InMemoryEntityStore:
    def __init__(
        self,
        lines: list[DrawingLine] | None = None,
        texts: list[DrawingText] | None = None,
        text_styles: list[str] | None = None,
    ):
        self._lines: list[DrawingLine] = list(lines or [])
        self._texts: list[DrawingText] = list(texts or [])
        self._layers: dict[str, int] = {}
        for entity in [*self._lines, *self._texts]:
            self._layers.setdefault(entity.layer, 7)
        self._styles = list(text_styles or ["Standard"])
        self.labels: list[tuple[str, LabelResult, str]] = []
        self._next = 1

    def _handle(self) -> str:
        handle = f"M{self._next}"
        self._next += 1
        return handle

    def add_line(self, layer: str, start: tuple[float, float], end: tuple[float, float]) -> DrawingLine:
        line = DrawingLine(
            handle=self._handle(),
            layer=layer,
            start=Point(x=start[0], y=start[1]),
            end=Point(x=end[0], y=end[1]),
        )
        self._lines.append(line)
        self._layers.setdefault(layer, 7)
        return line

    def add_text(self, layer: str, text: str, position: tuple[float, float]) -> DrawingText:
        entity = DrawingText(
            handle=self._handle(),
            layer=layer,
            text=text,
            position=Point(x=position[0], y=position[1]),
        )
        self._texts.append(entity)
        self._layers.setdefault(layer, 7)
        return entity

    def lines(self, layer: str | None = None) -> list[DrawingLine]:
        if layer is None:
            return list(self._lines)
        return [ln for ln in self._lines if _same_layer(ln.layer, layer)]

    def texts(self, layer: str) -> list[DrawingText]:
        return [t for t in self._texts if _same_layer(t.layer, layer)]

    def has_layer(self, name: str) -> bool:
        return any(_same_layer(name, existing) for existing in self._layers)

    def ensure_layer(self, name: str, color: int) -> None:
        if not self.has_layer(name):
            self._layers[name] = color

    def has_text_style(self, name: str) -> bool:
        return name in self._styles

    def append_label(self, label: LabelResult, style: str, color: int) -> str:
        handle = self._handle()
        self.labels.append((handle, label, style))
        self._texts.append(DrawingText(
            handle=handle, layer=label.layer, text=label.text, position=label.position,
        ))
        return handle

    def save(self, path: str | Path) -> None:
        Path(path).write_bytes(self.to_bytes())

    def to_bytes(self) -> bytes:
        payload = {
            "lines": [ln.model_dump() for ln in self._lines],
            "texts": [t.model_dump() for t in self._texts],
            "labels": [
                {"handle": h, "style": s, **label.model_dump(mode="json")}
                for h, label, s in self.labels
            ],
        }
        return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")


# --- DXF (ezdxf) ---


class DxfEntityStore:
    def __init__(self, doc: "ezdxf.document.Drawing"):
        self.doc = doc
        self.msp = doc.modelspace()

    @classmethod
    def from_path(cls, path: str | Path) -> "DxfEntityStore":
        return cls(ezdxf.readfile(str(path)))

    @classmethod
    def from_bytes(cls, data: bytes) -> "DxfEntityStore":
        # ezdxf sniffs the encoding from the header, so go through a real file.
        fd, tmp_path = tempfile.mkstemp(suffix=".dxf")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            return cls(ezdxf.readfile(tmp_path))
        finally:
            os.unlink(tmp_path)

    def lines(self, layer: str | None = None) -> list[DrawingLine]:
        result: list[DrawingLine] = []
        for e in self.msp.query("LINE"):
            if layer is not None and not _same_layer(e.dxf.layer, layer):
                continue
            result.append(DrawingLine(
                handle=e.dxf.handle,
                layer=e.dxf.layer,
                start=Point(x=e.dxf.start.x, y=e.dxf.start.y),
                end=Point(x=e.dxf.end.x, y=e.dxf.end.y),
            ))
        return result

    def texts(self, layer: str) -> list[DrawingText]:
        result: list[DrawingText] = []
        for e in self.msp.query("TEXT MTEXT"):
            if not _same_layer(e.dxf.layer, layer):
                continue
            if e.dxftype() == "MTEXT":
                text = e.plain_text()
                ins = e.dxf.insert
            else:
                text = e.dxf.text
                # Justified TEXT is located by its alignment point, not its insert.
                _, ins, p2 = e.get_placement()
                if p2 is not None:
                    ins = ins.lerp(p2)
            result.append(DrawingText(
                handle=e.dxf.handle,
                layer=e.dxf.layer,
                text=text.strip(),
                position=Point(x=ins.x, y=ins.y),
            ))
        return result

    def has_layer(self, name: str) -> bool:
        return self.doc.layers.has_entry(name)

    def ensure_layer(self, name: str, color: int) -> None:
        if not self.has_layer(name):
            self.doc.layers.add(name, color=color)
            logger.info("Created layer %s", name)

    def has_text_style(self, name: str) -> bool:
        return self.doc.styles.has_entry(name)

    @contextmanager
    def label_transaction(self):
        """Collect entities created for one label; delete them all if the block fails."""
        created = []
        try:
            yield created
        except Exception:
            for entity in created:
                if entity.is_alive:
                    self.msp.delete_entity(entity)
            raise

    def append_label(self, label: LabelResult, style: str, color: int) -> str:
        with self.label_transaction() as created:
            text = self.msp.add_text(
                label.text,
                height=label.height,
                rotation=label.rotation,
                dxfattribs={"layer": label.layer, "style": style, "color": color},
            )
            created.append(text)
            text.set_placement(
                (label.position.x, label.position.y),
                align=TextEntityAlignment.MIDDLE_CENTER,
            )
        return text.dxf.handle

    def save(self, path: str | Path) -> None:
        self.doc.saveas(str(path))

    def to_bytes(self) -> bytes:
        stream = io.StringIO()
        self.doc.write(stream)
        return stream.getvalue().encode(self.doc.output_encoding)


# --- Vector PDF (PyMuPDF) ---


class PdfEntityStore:
    """Entities of one PDF page in drawing orientation (y up).

    unit_scale converts PDF points to drawing units (e.g. plotted at 1/100:
    1 pt = 0.3528 mm on paper = 35.28 mm in the model).
    """

    def __init__(self, doc: fitz.Document, page_index: int = 0, unit_scale: float = 1.0):
        self.doc = doc
        self.page = doc[page_index]
        self.unit_scale = unit_scale
        self._height = self.page.mediabox.height
        self._ocgs: dict[str, int] = {
            info["name"]: xref for xref, info in doc.get_ocgs().items()
        }

    @classmethod
    def from_path(cls, path: str | Path, **kwargs) -> "PdfEntityStore":
        return cls(fitz.open(str(path)), **kwargs)

    @classmethod
    def from_bytes(cls, data: bytes, **kwargs) -> "PdfEntityStore":
        return cls(fitz.open(stream=data, filetype="pdf"), **kwargs)

    def _to_drawing(self, x: float, y: float) -> Point:
        return Point(x=x * self.unit_scale, y=(self._height - y) * self.unit_scale)

    def _to_page(self, p: Point) -> fitz.Point:
        return fitz.Point(p.x / self.unit_scale, self._height - p.y / self.unit_scale)

    def lines(self, layer: str | None = None) -> list[DrawingLine]:
        result: list[DrawingLine] = []
        for path in self.page.get_drawings():
            path_layer = path.get("layer") or ""
            if layer is not None and not _same_layer(path_layer, layer):
                continue
            for i, item in enumerate(path["items"]):
                if item[0] != "l":
                    continue
                p1, p2 = item[1], item[2]
                result.append(DrawingLine(
                    handle=f"{path.get('seqno', 0)}:{i}",
                    layer=path_layer,
                    start=self._to_drawing(p1.x, p1.y),
                    end=self._to_drawing(p2.x, p2.y),
                ))
        return result

    def texts(self, layer: str) -> list[DrawingText]:
        result: list[DrawingText] = []
        for span in self.page.get_texttrace():
            span_layer = span.get("layer") or ""
            if not _same_layer(span_layer, layer):
                continue
            text = "".join(chr(c[0]) for c in span["chars"]).strip()
            if not text:
                continue
            x0, y0, x1, y1 = span["bbox"]
            result.append(DrawingText(
                handle=str(span.get("seqno", len(result))),
                layer=span_layer,
                text=text,
                position=self._to_drawing((x0 + x1) / 2, (y0 + y1) / 2),
            ))
        return result

    def has_layer(self, name: str) -> bool:
        return any(_same_layer(name, existing) for existing in self._ocgs)

    def ensure_layer(self, name: str, color: int) -> None:
        if not self.has_layer(name):
            self._ocgs[name] = self.doc.add_ocg(name, on=True)

    def has_text_style(self, name: str) -> bool:
        return False

    def append_label(self, label: LabelResult, style: str, color: int) -> str:
        fontsize = label.height / self.unit_scale
        width = fitz.get_text_length(label.text, fontname="helv", fontsize=fontsize)
        theta = math.radians(label.rotation)
        center = self._to_page(label.position)
        # Page space is y-down: reading direction and "up" flip their y sign.
        ux, uy = math.cos(theta), -math.sin(theta)
        nx, ny = -math.sin(theta), -math.cos(theta)
        origin = fitz.Point(
            center.x - ux * width / 2 - nx * fontsize * 0.35,
            center.y - uy * width / 2 - ny * fontsize * 0.35,
        )
        oc = next((xref for name, xref in self._ocgs.items() if _same_layer(name, label.layer)), 0)
        self.page.insert_text(
            origin,
            label.text,
            fontsize=fontsize,
            fontname="helv",
            color=(1, 1, 0),
            morph=(origin, fitz.Matrix(-label.rotation)),
            oc=oc,
        )
        return f"text:{label.beam_id}"

    def save(self, path: str | Path) -> None:
        self.doc.save(str(path))

    def to_bytes(self) -> bytes:
        return self.doc.tobytes()


def open_store(source: str | Path | bytes, filename: str | None = None, **kwargs) -> EntityStore:
    """Open a DXF or PDF drawing by file name suffix."""
    name = filename or (str(source) if not isinstance(source, bytes) else "")
    suffix = Path(name).suffix.lower()
    if suffix == ".dxf":
        if isinstance(source, bytes):
            return DxfEntityStore.from_bytes(source)
        return DxfEntityStore.from_path(source)
    if suffix == ".pdf":
        if isinstance(source, bytes):
            return PdfEntityStore.from_bytes(source, **kwargs)
        return PdfEntityStore.from_path(source, **kwargs)
    raise ValueError(f"Unsupported drawing type: {name!r} (expected .dxf or .pdf)")
