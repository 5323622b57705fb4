from __future__ import annotations

import datetime
import json
import logging
import re
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from inspection.state import VehicleInfo

from . import config
from .client import SEARCH_FIELDS, BackendError, sort_key

logger = logging.getLogger(__name__)

_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _as_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0


class LocalInspectionStore:
    """One JSON document per saved inspection inside a directory.

    Same interface as ``RemoteInspectionStore``, used when no hosted backend
    is configured and by tests.
    """

    def __init__(self, root: Optional[Path] = None, clock: Optional[Callable[[], datetime.datetime]] = None):
        self.root = Path(root) if root is not None else config.LOCAL_STORE_DIR
        self._clock = clock or _utc_now

    def _path(self, inspection_id: str) -> Path:
        if not isinstance(inspection_id, str) or not _ID_RE.match(inspection_id):
            raise BackendError(f"Inspection {inspection_id} not found")
        return self.root / f"{inspection_id}.json"

    def _document(self,
                  inspection_id: str,
                  created_at: str,
                  vehicle_info: Dict[str, Any],
                  items: Dict[str, Any],
                  metrics: Dict[str, Any]) -> Dict[str, Any]:
        if not str((vehicle_info or {}).get("plate") or "").strip():
            raise BackendError("Vehicle plate is required")
        overall = (metrics or {}).get("global") or {}
        return {
            "id": inspection_id,
            "created_at": created_at,
            "updated_at": self._clock().isoformat(),
            "vehicle_info": vehicle_info,
            "inspection_data": items,
            "metrics": metrics,
            "total_score": overall.get("total_score", 0),
            "total_repair_cost": overall.get("total_repair_cost", 0),
        }

    def _write(self, path: Path, doc: Dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as f:
                json.dump(doc, f, indent=2, ensure_ascii=False)
        except OSError as exc:
            raise BackendError(f"Cannot write {path}: {exc}") from exc

    def save(self, vehicle_info: Dict[str, Any], items: Dict[str, Any], metrics: Dict[str, Any]) -> Dict[str, str]:
        inspection_id = uuid.uuid4().hex
        doc = self._document(inspection_id, self._clock().isoformat(), vehicle_info, items, metrics)
        path = self._path(inspection_id)
        self._write(path, doc)
        logger.info("Saved inspection %s to %s", inspection_id, path)
        return {"id": inspection_id}

    def update(self,
               inspection_id: str,
               vehicle_info: Dict[str, Any],
               items: Dict[str, Any],
               metrics: Dict[str, Any]) -> Dict[str, str]:
        path = self._path(inspection_id)
        previous = self._read(path)
        doc = self._document(inspection_id, previous.get("created_at") or "", vehicle_info, items, metrics)
        self._write(path, doc)
        logger.info("Updated inspection %s", inspection_id)
        return {"id": inspection_id}

    def delete(self, inspection_id: str) -> None:
        path = self._path(inspection_id)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise BackendError(f"Inspection {inspection_id} not found") from exc
        except OSError as exc:
            raise BackendError(f"Cannot delete {path}: {exc}") from exc
        logger.info("Deleted inspection %s", inspection_id)

    def _read(self, path: Path) -> Dict[str, Any]:
        try:
            with path.open("r", encoding="utf-8") as f:
                doc = json.load(f)
        except FileNotFoundError as exc:
            raise BackendError(f"Inspection {path.stem} not found") from exc
        except (OSError, ValueError) as exc:
            raise BackendError(f"Cannot read {path}: {exc}") from exc
        if not isinstance(doc, dict):
            raise BackendError(f"Cannot read {path}: not an inspection document")
        return doc

    def load(self, inspection_id: str) -> Dict[str, Any]:
        doc = self._read(self._path(inspection_id))
        return {
            "id": inspection_id,
            "vehicle_info": doc.get("vehicle_info") or {},
            "items": doc.get("inspection_data") or {},
        }

    @staticmethod
    def _matches(vehicle_info: Any, term: str) -> bool:
        info = VehicleInfo.from_dict(vehicle_info)
        return any(term in getattr(info, key).lower() for key in SEARCH_FIELDS)

    def list_recent(self,
                    limit: int = config.LIST_LIMIT,
                    search: Optional[str] = None,
                    sort: str = "date_desc") -> List[Dict[str, Any]]:
        column, descending = sort_key(sort)
        if not self.root.is_dir():
            return []
        term = (search or "").strip().lower()
        rows: List[Dict[str, Any]] = []
        for path in self.root.glob("*.json"):
            if not _ID_RE.match(path.stem):
                continue
            try:
                doc = self._read(path)
            except BackendError as exc:
                logger.warning("Skipping %s: %s", path.name, exc)
                continue
            if term and not self._matches(doc.get("vehicle_info"), term):
                continue
            rows.append({
                "id": path.stem,
                "vehicle_info": doc.get("vehicle_info") or {},
                "total_score": doc.get("total_score") or 0,
                "total_repair_cost": doc.get("total_repair_cost") or 0,
                "created_at": doc.get("created_at") or "",
            })
        if column == "created_at":
            rows.sort(key=lambda r: str(r[column]), reverse=descending)
        else:
            rows.sort(key=lambda r: _as_number(r[column]), reverse=descending)
        return rows[:max(0, int(limit))]
