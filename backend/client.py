"""
Hosted inspection backend: a PostgREST-style ``inspections`` table plus an
object storage API for photos.

Authentication is not handled here; callers pass an already obtained access
token (or nothing, in which case the project API key is used as bearer).
"""

from __future__ import annotations

import datetime
import logging
import mimetypes
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import requests

from inspection.images import ImageError, describe_image, storage_object_name, validate_image_file
from inspection.state import ImageRef

from . import config

logger = logging.getLogger(__name__)

# Vehicle fields matched by a listing search
SEARCH_FIELDS = ("brand", "model", "plate", "seller")

# Listing sort keys: (row column, descending)
SORT_ORDERS: Dict[str, Tuple[str, bool]] = {
    "date_desc": ("created_at", True),
    "date_asc": ("created_at", False),
    "score_desc": ("total_score", True),
    "score_asc": ("total_score", False),
    "cost_desc": ("total_repair_cost", True),
    "cost_asc": ("total_repair_cost", False),
}


class BackendError(Exception):
    """Raised when the inspection backend cannot complete a request."""


def _utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def sort_key(sort: str) -> Tuple[str, bool]:
    try:
        return SORT_ORDERS[sort]
    except KeyError as exc:
        raise BackendError(f"Unknown sort order {sort!r}; choose from {', '.join(SORT_ORDERS)}") from exc


def _describe_http_error(exc: requests.HTTPError) -> str:
    status = exc.response.status_code if exc.response is not None else "unknown"
    detail = ""
    if exc.response is not None:
        try:
            body = exc.response.json()
            if isinstance(body, dict):
                detail = body.get("message") or body.get("error") or ""
        except ValueError:
            detail = (exc.response.text or "")[:200]
    return f"HTTP {status}: {detail}" if detail else f"HTTP {status}"


class _BaseClient:
    def __init__(self,
                 api_url: Optional[str] = None,
                 api_key: Optional[str] = None,
                 access_token: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.api_url = (api_url or config.API_URL or "").rstrip("/")
        self.api_key = api_key or config.API_KEY or ""
        self.access_token = access_token
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT
        if not self.api_url or not self.api_key:
            raise BackendError(
                "Hosted backend is not configured; set INSPECTION_API_URL and INSPECTION_API_KEY"
            )

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }
        if extra:
            headers.update(extra)
        return headers


class RemoteInspectionStore(_BaseClient):
    """Save, update, load, list and delete inspections in the hosted table."""

    def __init__(self, *args: Any, table: Optional[str] = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.table = table or config.TABLE

    @property
    def _table_url(self) -> str:
        return f"{self.api_url}/rest/v1/{self.table}"

    def _request(self, method: str, action: str, **kwargs: Any) -> Any:
        """Call the table endpoint and return the decoded JSON body."""
        send = getattr(requests, method)
        try:
            resp = send(self._table_url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except requests.HTTPError as exc:
            raise BackendError(f"{action} failed ({_describe_http_error(exc)})") from exc
        except requests.RequestException as exc:
            raise BackendError(f"{action} failed: {exc}") from exc
        except ValueError as exc:
            raise BackendError("Backend returned an invalid response") from exc

    @staticmethod
    def _payload(vehicle_info: Dict[str, Any], items: Dict[str, Any], metrics: Dict[str, Any]) -> Dict[str, Any]:
        if not str((vehicle_info or {}).get("plate") or "").strip():
            raise BackendError("Vehicle plate is required")
        overall = (metrics or {}).get("global") or {}
        return {
            "vehicle_info": vehicle_info,
            "inspection_data": items,
            "metrics": metrics,
            "total_score": overall.get("total_score", 0),
            "total_repair_cost": overall.get("total_repair_cost", 0),
        }

    def _write_headers(self) -> Dict[str, str]:
        return self._headers({"Content-Type": "application/json", "Prefer": "return=representation"})

    @staticmethod
    def _returned_id(body: Any, missing: str) -> str:
        row = body[0] if isinstance(body, list) and body else body
        if not isinstance(row, dict) or not row.get("id"):
            raise BackendError(missing)
        return str(row["id"])

    def save(self, vehicle_info: Dict[str, Any], items: Dict[str, Any], metrics: Dict[str, Any]) -> Dict[str, str]:
        payload = self._payload(vehicle_info, items, metrics)
        body = self._request("post", "Saving inspection", json=payload, headers=self._write_headers())
        inspection_id = self._returned_id(body, "Backend did not return an inspection id")
        logger.info("Saved inspection %s", inspection_id)
        return {"id": inspection_id}

    def update(self,
               inspection_id: str,
               vehicle_info: Dict[str, Any],
               items: Dict[str, Any],
               metrics: Dict[str, Any]) -> Dict[str, str]:
        payload = self._payload(vehicle_info, items, metrics)
        payload["updated_at"] = _utc_now_iso()
        body = self._request(
            "patch",
            "Updating inspection",
            params={"id": f"eq.{inspection_id}"},
            json=payload,
            headers=self._write_headers(),
        )
        self._returned_id(body, f"Inspection {inspection_id} not found")
        logger.info("Updated inspection %s", inspection_id)
        return {"id": str(inspection_id)}

    def delete(self, inspection_id: str) -> None:
        body = self._request(
            "delete",
            "Deleting inspection",
            params={"id": f"eq.{inspection_id}"},
            headers=self._headers({"Prefer": "return=representation"}),
        )
        self._returned_id(body, f"Inspection {inspection_id} not found")
        logger.info("Deleted inspection %s", inspection_id)

    def _select(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        body = self._request("get", "Fetching inspections", params=params, headers=self._headers())
        if not isinstance(body, list):
            raise BackendError("Backend returned an invalid response")
        return body

    def load(self, inspection_id: str) -> Dict[str, Any]:
        rows = self._select({"id": f"eq.{inspection_id}", "select": "*"})
        if not rows:
            raise BackendError(f"Inspection {inspection_id} not found")
        row = rows[0]
        return {
            "id": str(row.get("id", inspection_id)),
            "vehicle_info": row.get("vehicle_info") or {},
            "items": row.get("inspection_data") or {},
        }

    def list_recent(self,
                    limit: int = config.LIST_LIMIT,
                    search: Optional[str] = None,
                    sort: str = "date_desc") -> List[Dict[str, Any]]:
        column, descending = sort_key(sort)
        params = {
            "select": "id,vehicle_info,total_score,total_repair_cost,created_at",
            "order": f"{column}.{'desc' if descending else 'asc'}",
            "limit": str(int(limit)),
        }
        # Reserved characters of the filter grammar are dropped from the term
        term = re.sub(r"[,()*]", "", (search or "").strip())
        if term:
            params["or"] = "(" + ",".join(
                f"vehicle_info->>{key}.ilike.*{term}*" for key in SEARCH_FIELDS
            ) + ")"
        rows = self._select(params)
        logger.debug("Fetched %d inspections", len(rows))
        return rows


class StorageClient(_BaseClient):
    """Upload and delete inspection photos in the object storage API."""

    def __init__(self,
                 *args: Any,
                 bucket: Optional[str] = None,
                 fallback_bucket: Optional[str] = None,
                 **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.bucket = bucket or config.STORAGE_BUCKET
        self.fallback_bucket = fallback_bucket or config.STORAGE_FALLBACK_BUCKET

    def public_url(self, bucket: str, object_name: str) -> str:
        return f"{self.api_url}/storage/v1/object/public/{bucket}/{object_name}"

    @staticmethod
    def _bucket_missing(resp: requests.Response) -> bool:
        if resp.status_code not in (400, 404):
            return False
        return "bucket not found" in (resp.text or "").lower()

    def _post_object(self, bucket: str, object_name: str, data: bytes, content_type: str) -> requests.Response:
        return requests.post(
            f"{self.api_url}/storage/v1/object/{bucket}/{object_name}",
            data=data,
            headers=self._headers({"Content-Type": content_type, "x-upsert": "false"}),
            timeout=self.timeout,
        )

    def upload(self, path: Path, inspection_id: str, category: str, item_name: str) -> ImageRef:
        path = Path(path)
        local = describe_image(path)
        content_type = local.content_type or mimetypes.guess_type(path.name)[0] or ""
        errors = validate_image_file(content_type, local.size)
        if errors:
            raise ImageError("; ".join(errors))

        object_name = storage_object_name(inspection_id, category, item_name, path.name)
        data = path.read_bytes()
        bucket = self.bucket
        try:
            resp = self._post_object(bucket, object_name, data, content_type)
            if self._bucket_missing(resp) and self.fallback_bucket and self.fallback_bucket != bucket:
                logger.warning("Bucket %s not found, retrying upload on %s", bucket, self.fallback_bucket)
                bucket = self.fallback_bucket
                resp = self._post_object(bucket, object_name, data, content_type)
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise BackendError(f"Uploading {path.name} failed ({_describe_http_error(exc)})") from exc
        except requests.RequestException as exc:
            raise BackendError(f"Uploading {path.name} failed: {exc}") from exc

        logger.info("Uploaded %s to %s/%s", path.name, bucket, object_name)
        return ImageRef(
            url=self.public_url(bucket, object_name),
            file_name=object_name,
            original_name=path.name,
            size=local.size,
            content_type=content_type,
            width=local.width,
            height=local.height,
            uploaded_at=local.uploaded_at,
        )

    def delete(self, file_name: str, bucket: Optional[str] = None) -> None:
        target = bucket or self.bucket
        try:
            resp = requests.delete(
                f"{self.api_url}/storage/v1/object/{target}",
                json={"prefixes": [file_name]},
                headers=self._headers({"Content-Type": "application/json"}),
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise BackendError(f"Deleting {file_name} failed ({_describe_http_error(exc)})") from exc
        except requests.RequestException as exc:
            raise BackendError(f"Deleting {file_name} failed: {exc}") from exc
        logger.info("Deleted %s from %s", file_name, target)
