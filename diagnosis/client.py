"""
Async client for the progress API.

Edits are collected in a local snapshot and sent after a quiet period;
step changes and module completion are sent immediately. Percentages and
unlock state are computed locally with the same engine the server uses.
"""
import asyncio
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

import httpx

from diagnosis.services import module_gate
from diagnosis.services.bookkeeping import ModuleState, empty_form_data
from diagnosis.services.module_schema import MODULES
from diagnosis.services.progress_engine import ProgressReport, compute_report

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.0


@dataclass
class Snapshot:
    """Latest local answers; owned by the client and read by deferred saves"""
    form_data: Dict[str, dict] = field(default_factory=empty_form_data)
    steps: Dict[str, int] = field(default_factory=dict)
    completed: Set[str] = field(default_factory=set)
    revision: int = 0
    dirty: bool = False


class ProgressClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.debounce_seconds = debounce_seconds
        self.last_error: Optional[Exception] = None
        self.last_response: Optional[Dict[str, Any]] = None
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )
        self._snapshot = Snapshot()
        self._lock = asyncio.Lock()  # guards the snapshot
        self._save_lock = asyncio.Lock()  # one save on the wire at a time
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def dirty(self) -> bool:
        return self._snapshot.dirty

    @property
    def form_data(self) -> Dict[str, dict]:
        return copy.deepcopy(self._snapshot.form_data)

    async def load(self) -> Dict[str, Any]:
        """Replace the local snapshot with the server copy"""
        response = await self._http.get("/api/user/progress")
        response.raise_for_status()
        progress = response.json()["progress"]

        async with self._lock:
            self._snapshot = Snapshot(
                form_data={m: progress["formData"].get(m) or {} for m in MODULES},
                steps=dict(progress.get("moduleSteps") or {}),
                completed=set(progress.get("completedModules") or []),
            )
        return progress

    async def update(self, module: str, data: Dict[str, Any]) -> None:
        """Replace one module record locally and schedule a debounced save"""
        if module not in MODULES:
            raise ValueError(f"Unknown module: {module}")
        async with self._lock:
            self._snapshot.form_data[module] = copy.deepcopy(data)
            self._snapshot.revision += 1
            self._snapshot.dirty = True
        self._schedule()

    async def set_step(self, module: str, step: int) -> bool:
        if module not in MODULES:
            raise ValueError(f"Unknown module: {module}")
        async with self._lock:
            self._snapshot.steps[module] = step
        return await self._send("PUT", f"/api/user/modules/{module}/step", json={"step": step})

    async def mark_completed(self, module: str) -> bool:
        """Flush pending edits, then mark the module completed on the server"""
        if module not in MODULES:
            raise ValueError(f"Unknown module: {module}")
        async with self._lock:
            self._snapshot.completed.add(module)
        await self.flush()
        return await self._send("POST", f"/api/user/modules/{module}/complete")

    async def flush(self) -> bool:
        """Cancel the pending timer, wait for any save in flight, then save the latest snapshot"""
        if self._timer and not self._timer.done():
            self._timer.cancel()
        self._timer = None
        if self._inflight and not self._inflight.done():
            await self._inflight
        return await self._save()

    async def aclose(self) -> None:
        # a pending debounced save is sent, not dropped
        await self.flush()
        await self._http.aclose()

    def report(self) -> ProgressReport:
        states = {
            m: ModuleState(completed=m in self._snapshot.completed, step=self._snapshot.steps.get(m))
            for m in MODULES
        }
        return compute_report(self._snapshot.form_data, states)

    def module_percentages(self) -> Dict[str, int]:
        return self.report().percentages()

    def is_unlocked(self, section: str) -> bool:
        return module_gate.is_unlocked(section, self.module_percentages())

    def _schedule(self) -> None:
        if self._timer and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.create_task(self._debounced())

    async def _debounced(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # the save runs in its own task so a later cancel of the timer cannot cut it off
        self._inflight = asyncio.create_task(self._save())

    async def _save(self) -> bool:
        async with self._save_lock:
            async with self._lock:
                if not self._snapshot.dirty:
                    return True
                body = {
                    "formData": copy.deepcopy(self._snapshot.form_data),
                    "moduleSteps": dict(self._snapshot.steps),
                }
                revision = self._snapshot.revision

            if not await self._send("POST", "/api/user/save-progress", json=body):
                return False

            async with self._lock:
                if self._snapshot.revision == revision:
                    self._snapshot.dirty = False
            return True

    async def _send(self, method: str, url: str, **kwargs) -> bool:
        try:
            response = await self._http.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            # local state is kept so the next save retries it
            logger.warning("%s %s failed: %s", method, url, e)
            self.last_error = e
            return False

        self.last_error = None
        self.last_response = response.json()
        return True
