# src/playground_api/fine_tuning_api.py
"""Simulated fine-tuning job endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from playground_api.config import FineTuningJobRequest
from playground_api.fine_tuning import FineTuningJobStore

logger = logging.getLogger(__name__)

fine_tuning_router = APIRouter(
    prefix="/api/fine-tuning",
    tags=["Fine-tuning"],
)


def _get_store(request: Request) -> FineTuningJobStore:
    return request.app.state.job_store


@fine_tuning_router.get("",
    summary="List Jobs",
    description="All fine-tuning jobs, newest first.",
)
async def list_jobs(request: Request):
    jobs = _get_store(request).list_jobs()
    return {"jobs": [job.to_dict() for job in jobs], "total": len(jobs)}


@fine_tuning_router.get("/{job_id}",
    summary="Get Job",
    responses={404: {"description": "Job not found"}},
)
async def get_job(job_id: str, request: Request):
    return _get_store(request).get(job_id).to_dict()


@fine_tuning_router.post("",
    summary="Create Job",
    description="""
Create a simulated fine-tuning job.

`model` and `training_file` are required. The job starts `pending`, moves to
`running` after about 2 seconds and to `completed` after about 30 seconds,
at which point it gets a result file and a trained token count. Missing
hyperparameters default to `n_epochs=3`, `batch_size=4`, `learning_rate=0.0001`.
    """,
    responses={
        200: {"description": "Job created"},
        400: {"description": "Missing model or training file"},
    },
)
async def create_job(job_request: FineTuningJobRequest, request: Request):
    job = _get_store(request).create(job_request)
    return job.to_dict()


@fine_tuning_router.delete("",
    summary="Delete Job",
    description="Delete the job named by the `id` query parameter. Running jobs cannot be deleted.",
    responses={
        400: {"description": "Missing id, or the job is running"},
        404: {"description": "Job not found"},
    },
)
async def delete_job(request: Request, id: Optional[str] = Query(None, description="Job ID to delete")):
    _get_store(request).delete(id)
    return {"message": "Job deleted successfully"}
