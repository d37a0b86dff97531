from __future__ import annotations

import logging
import re
import time
import zipfile
from pathlib import Path
from typing import Any, Iterable, Optional


logger = logging.getLogger(__name__)


def safe_name(value: str, *, limit: int = 60) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]+", "_", value or "").strip("_")[:limit] or "item"


def save_debug_snapshot(page: Any, *, debug_dir: str, name_prefix: str) -> Optional[Path]:
    """
    Save a screenshot, the HTML and the rendered body text of `page` (best-effort, never raises).
    """
    try:
        out_dir = Path(debug_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        prefix = safe_name(name_prefix, limit=120)
        page.screenshot(path=str(out_dir / f"{prefix}.png"), full_page=True)
        (out_dir / f"{prefix}.html").write_text(page.content(), encoding="utf-8")
        try:
            (out_dir / f"{prefix}.txt").write_text(page.inner_text("body"), encoding="utf-8")
        except Exception:
            pass
        logger.info("Saved debug snapshot: %s", out_dir / prefix)
        return out_dir / f"{prefix}.png"
    except Exception:
        logger.debug("Failed to save debug artifacts.", exc_info=True)
        return None


def create_debug_bundle(
    *,
    debug_dir: str,
    log_file: str,
    out_dir: str = "data",
    label: str = "",
    extra_paths: Optional[Iterable[str]] = None,
) -> Path:
    """
    Create a shareable zip containing debug artifacts + logs.

    Excludes secrets: .env, config.yaml and session (cookie) files are never added.
    """
    out_root = Path(out_dir)
    out_root.mkdir(parents=True, exist_ok=True)

    stamp = time.strftime("%Y%m%d_%H%M%S")
    lab = safe_name((label or "").strip().lower()) if label else ""
    lab_part = f"_{lab}" if lab else ""
    out_path = out_root / f"debug_bundle{lab_part}_{stamp}.zip"

    dbg = Path(debug_dir)
    log = Path(log_file)

    def _add_file(z: zipfile.ZipFile, file_path: Path, arcname: str) -> None:
        try:
            if file_path.exists() and file_path.is_file():
                z.write(file_path, arcname=arcname)
        except Exception:
            # a file vanishing mid-bundle is not worth failing over
            return

    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        _add_file(z, log, arcname=log.name)

        if dbg.exists() and dbg.is_dir():
            for p in sorted(dbg.rglob("*")):
                if not p.is_file():
                    continue
                rel = p.relative_to(dbg)
                _add_file(z, p, arcname=str(Path("debug") / rel))

        if extra_paths:
            for raw in extra_paths:
                p = Path(raw)
                if not p.is_file() or "cookies" in p.name or p.suffix in {".env"}:
                    continue
                _add_file(z, p, arcname=str(Path("extra") / p.name))

    return out_path
