import logging
import threading
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException

from assignment import NoAvailableDriversError
from config import LOG_LEVEL
from dispatch import DispatchContext, run_dispatch
from eta import estimate_order_eta
from models import (
    AsyncDispatchAccepted,
    AsyncDispatchResult,
    DispatchRequest,
    DispatchResponse,
    EtaRequest,
    OrderEta,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Dispatch & ETA Engine", version="1.0.0")

# job_id -> async job state
JOBS: dict[str, dict] = {}
# batch_id -> most recent job_id; older jobs of the same batch are superseded
LATEST_BY_BATCH: dict[str, str] = {}
JOBS_LOCK = threading.Lock()


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _is_cancel_requested(job_id: str | None) -> bool:
    if not job_id:
        return False

    with JOBS_LOCK:
        state = JOBS.get(job_id)
        if not state:
            return False
        if state.get("cancel_requested", False):
            return True
        batch_id = state.get("batch_id")
        return bool(batch_id) and LATEST_BY_BATCH.get(batch_id) != job_id


def _context(req: DispatchRequest, job_id: str | None) -> DispatchContext:
    ctx = DispatchContext(
        strategy=req.strategy,
        cancel_checker=lambda: _is_cancel_requested(job_id),
    )
    if req.profile:
        ctx.profile = req.profile
    return ctx


def _run_async_job(job_id: str, req: DispatchRequest) -> None:
    with JOBS_LOCK:
        state = JOBS.get(job_id)
        if not state:
            return
        if state.get("cancel_requested"):
            state["status"] = "CANCELLED"
            state["finished_at"] = _utc_now_iso()
            return

        state["status"] = "RUNNING"
        state["started_at"] = _utc_now_iso()

    try:
        resp = run_dispatch(req.drivers, req.deliveries, _context(req, job_id))

        with JOBS_LOCK:
            state = JOBS.get(job_id)
            if not state:
                return
            if resp.cancelled or state.get("cancel_requested"):
                state["status"] = "CANCELLED"
                state["response"] = None
            else:
                state["status"] = "DONE"
                state["response"] = resp.model_dump()
            state["finished_at"] = _utc_now_iso()

    except Exception as ex:
        logger.exception(f"Dispatch job {job_id} failed")
        with JOBS_LOCK:
            state = JOBS.get(job_id)
            if not state:
                return
            state["status"] = "FAILED"
            state["error"] = str(ex)
            state["finished_at"] = _utc_now_iso()


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/dispatch", response_model=DispatchResponse)
def dispatch(req: DispatchRequest):
    try:
        return run_dispatch(req.drivers, req.deliveries, _context(req, req.job_id))
    except NoAvailableDriversError as ex:
        raise HTTPException(status_code=409, detail=str(ex))


@app.post("/dispatch/async", response_model=AsyncDispatchAccepted, status_code=202)
def dispatch_async(req: DispatchRequest):
    job_id = req.job_id or f"job-{uuid.uuid4().hex}"

    with JOBS_LOCK:
        state = JOBS.get(job_id)
        if state and state.get("status") in {"PENDING", "RUNNING"}:
            return AsyncDispatchAccepted(job_id=job_id, status=state["status"])
        # a tombstone left by /cancel stays in force for the late submission
        cancel_requested = bool(state and state.get("cancel_requested"))

        JOBS[job_id] = {
            "status": "PENDING",
            "batch_id": req.batch_id,
            "cancel_requested": cancel_requested,
            "error": None,
            "response": None,
            "requested_at": _utc_now_iso(),
            "started_at": None,
            "finished_at": None,
        }
        if req.batch_id:
            previous = LATEST_BY_BATCH.get(req.batch_id)
            if previous and previous != job_id:
                logger.info(f"Job {job_id} supersedes {previous} for batch {req.batch_id}")
            LATEST_BY_BATCH[req.batch_id] = job_id

    async_req = req.model_copy(deep=True)
    async_req.job_id = job_id

    thread = threading.Thread(target=_run_async_job, args=(job_id, async_req), daemon=True)
    thread.start()

    return AsyncDispatchAccepted(job_id=job_id, status="PENDING")


@app.post("/cancel/{job_id}")
def cancel_job(job_id: str):
    with JOBS_LOCK:
        state = JOBS.get(job_id)
        if not state:
            # Tombstone: cancelling before the job exists also discards late submissions.
            JOBS[job_id] = {
                "status": "CANCELLED",
                "batch_id": None,
                "cancel_requested": True,
                "error": None,
                "response": None,
                "requested_at": _utc_now_iso(),
                "started_at": None,
                "finished_at": _utc_now_iso(),
            }
            return {"job_id": job_id, "status": "CANCELLED"}

        state["cancel_requested"] = True
        if state.get("status") in {"PENDING", "RUNNING"}:
            state["status"] = "CANCELLED"
            state["finished_at"] = _utc_now_iso()

    return {"job_id": job_id, "status": "CANCELLED"}


@app.get("/result/{job_id}", response_model=AsyncDispatchResult)
def result_job(job_id: str):
    with JOBS_LOCK:
        state = JOBS.get(job_id)
        if not state:
            raise HTTPException(status_code=404, detail="job_id not found")

        response_payload = state.get("response")
        response = DispatchResponse.model_validate(response_payload) if response_payload else None

        return AsyncDispatchResult(
            job_id=job_id,
            status=state.get("status", "UNKNOWN"),
            response=response,
            error=state.get("error"),
        )


@app.post("/eta", response_model=list[OrderEta])
def eta(req: EtaRequest):
    return [estimate_order_eta(order) for order in req.orders]
