import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from sanpo.models.schemas import PipelineSnapshot, RouteSubmission, SubmissionResponse
from sanpo.pipeline import PipelineOrchestrator

router = APIRouter()
logger = logging.getLogger(__name__)


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    return request.app.state.orchestrator


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_route(
    submission: RouteSubmission,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> SubmissionResponse:
    """Start a new pipeline run; any run still in flight becomes stale"""

    run = orchestrator.submit(submission.text)
    if run is None:
        raise HTTPException(
            status_code=400,
            detail="Enter a departure and a destination for your walk",
        )

    logger.info(f"Route request submitted: {submission.text[:50]}...")
    return SubmissionResponse(run_id=run.run_id, state=run.state.value)


@router.get("", response_model=PipelineSnapshot)
async def get_route_state(
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> PipelineSnapshot:
    """Read-only view of the current run"""

    return PipelineSnapshot.from_run(orchestrator.current_run)
