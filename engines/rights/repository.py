from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from engines.config import runtime_config
from engines.rights.models import AssetRights, DownloadAuditLog


class RightsRepository(Protocol):
    def upsert_rights(self, tenant_id: str, env: str, rights: AssetRights) -> AssetRights: ...
    def get_rights(self, tenant_id: str, env: str, asset_id: str) -> Optional[AssetRights]: ...
    def list_rights(self, tenant_id: str, env: str) -> List[AssetRights]: ...
    def increment_downloads(
        self, tenant_id: str, env: str, asset_id: str, updated_at: datetime
    ) -> Optional[AssetRights]: ...
    def append_download(self, tenant_id: str, env: str, log: DownloadAuditLog) -> DownloadAuditLog: ...
    def list_downloads(self, tenant_id: str, env: str, asset_id: Optional[str] = None) -> List[DownloadAuditLog]: ...
    def set_asset_name(self, tenant_id: str, env: str, asset_id: str, name: str) -> None: ...
    def asset_names(self, tenant_id: str, env: str) -> Dict[str, str]: ...


class InMemoryRightsRepository:
    def __init__(self) -> None:
        self._rights: Dict[tuple[str, str, str], AssetRights] = {}
        self._downloads: Dict[tuple[str, str], List[DownloadAuditLog]] = {}
        self._names: Dict[tuple[str, str], Dict[str, str]] = {}
        self._lock = threading.Lock()

    def upsert_rights(self, tenant_id: str, env: str, rights: AssetRights) -> AssetRights:
        self._rights[(tenant_id, env, rights.asset_id)] = rights
        return rights

    def get_rights(self, tenant_id: str, env: str, asset_id: str) -> Optional[AssetRights]:
        return self._rights.get((tenant_id, env, asset_id))

    def list_rights(self, tenant_id: str, env: str) -> List[AssetRights]:
        return [r for (t, e, _), r in self._rights.items() if t == tenant_id and e == env]

    def increment_downloads(
        self, tenant_id: str, env: str, asset_id: str, updated_at: datetime
    ) -> Optional[AssetRights]:
        with self._lock:
            key = (tenant_id, env, asset_id)
            rights = self._rights.get(key)
            if rights is None:
                return None
            rights = rights.model_copy(
                update={"current_downloads": rights.current_downloads + 1, "updated_at": updated_at}
            )
            self._rights[key] = rights
            return rights

    def append_download(self, tenant_id: str, env: str, log: DownloadAuditLog) -> DownloadAuditLog:
        self._downloads.setdefault((tenant_id, env), []).append(log)
        return log

    def list_downloads(self, tenant_id: str, env: str, asset_id: Optional[str] = None) -> List[DownloadAuditLog]:
        logs = list(self._downloads.get((tenant_id, env), []))
        if asset_id:
            logs = [log for log in logs if log.asset_id == asset_id]
        return logs

    def set_asset_name(self, tenant_id: str, env: str, asset_id: str, name: str) -> None:
        self._names.setdefault((tenant_id, env), {})[asset_id] = name

    def asset_names(self, tenant_id: str, env: str) -> Dict[str, str]:
        return dict(self._names.get((tenant_id, env), {}))


class FirestoreRightsRepository(InMemoryRightsRepository):
    """Firestore implementation."""

    def __init__(self, client: Optional[object] = None) -> None:  # pragma: no cover - optional dep
        try:
            from google.cloud import firestore  # type: ignore
        except Exception as exc:
            raise RuntimeError("google-cloud-firestore not installed") from exc

        project = runtime_config.get_firestore_project()
        if not project and client is None:
            raise RuntimeError("GCP project is required for Firestore rights repo")
        self._firestore = firestore
        self._client = client or firestore.Client(project=project)  # type: ignore[arg-type]
        self._rights_collection = "asset_rights"
        self._downloads_collection = "download_audit_logs"
        self._names_collection = "asset_names"

    def _col(self, name: str):
        return self._client.collection(name)

    def upsert_rights(self, tenant_id: str, env: str, rights: AssetRights) -> AssetRights:
        data = rights.model_dump(mode="json")
        data.update({"tenant_id": tenant_id, "env": env})
        self._col(self._rights_collection).document(f"{tenant_id}_{env}_{rights.asset_id}").set(data)
        return rights

    def get_rights(self, tenant_id: str, env: str, asset_id: str) -> Optional[AssetRights]:
        snap = self._col(self._rights_collection).document(f"{tenant_id}_{env}_{asset_id}").get()
        if snap and snap.exists:
            return AssetRights.model_validate(snap.to_dict())
        return None

    def list_rights(self, tenant_id: str, env: str) -> List[AssetRights]:
        query = self._col(self._rights_collection).where("tenant_id", "==", tenant_id).where("env", "==", env)
        return [AssetRights.model_validate(d.to_dict()) for d in query.stream()]

    def increment_downloads(
        self, tenant_id: str, env: str, asset_id: str, updated_at: datetime
    ) -> Optional[AssetRights]:
        ref = self._col(self._rights_collection).document(f"{tenant_id}_{env}_{asset_id}")
        if not ref.get().exists:
            return None
        # Applied atomically on the server.
        ref.update(
            {
                "current_downloads": self._firestore.Increment(1),
                "updated_at": updated_at.isoformat(),
            }
        )
        return self.get_rights(tenant_id, env, asset_id)

    def append_download(self, tenant_id: str, env: str, log: DownloadAuditLog) -> DownloadAuditLog:
        data = log.model_dump(mode="json")
        data.update({"tenant_id": tenant_id, "env": env})
        self._col(self._downloads_collection).document(log.id).set(data)
        return log

    def list_downloads(self, tenant_id: str, env: str, asset_id: Optional[str] = None) -> List[DownloadAuditLog]:
        query = self._col(self._downloads_collection).where("tenant_id", "==", tenant_id).where("env", "==", env)
        if asset_id:
            query = query.where("asset_id", "==", asset_id)
        logs = [DownloadAuditLog.model_validate(d.to_dict()) for d in query.stream()]
        return sorted(logs, key=lambda log: log.downloaded_at)

    def set_asset_name(self, tenant_id: str, env: str, asset_id: str, name: str) -> None:
        self._col(self._names_collection).document(f"{tenant_id}_{env}_{asset_id}").set(
            {"tenant_id": tenant_id, "env": env, "asset_id": asset_id, "name": name}
        )

    def asset_names(self, tenant_id: str, env: str) -> Dict[str, str]:
        query = self._col(self._names_collection).where("tenant_id", "==", tenant_id).where("env", "==", env)
        names: Dict[str, str] = {}
        for doc in query.stream():
            data = doc.to_dict()
            names[data["asset_id"]] = data["name"]
        return names


def rights_repo_from_env() -> RightsRepository:
    if runtime_config.get_rights_backend() == "firestore":
        try:
            return FirestoreRightsRepository()
        except Exception:
            return InMemoryRightsRepository()
    return InMemoryRightsRepository()
