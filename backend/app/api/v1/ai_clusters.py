"""AI clustering API endpoints.

- POST /api/v1/ai-clusters/generate - Generate cluster suggestions
- POST /api/v1/ai-clusters/accept - Persist selected suggestions as groups

Error Logging Requirements:
- Log all incoming requests with request_id and user_id
- Return structured error responses: {"error": str, "code": str, "request_id": str}
- Log 4xx errors at WARNING, 5xx at ERROR
"""

import asyncio
import time
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import UserInfo, get_current_user
from app.core.config import get_settings
from app.core.database import get_session
from app.core.logging import get_logger
from app.integrations.openrouter import OpenRouterClient, get_openrouter
from app.schemas.ai_cluster import (
    AcceptanceFailureResponse,
    AcceptClustersRequest,
    AcceptClustersResponse,
    GenerateClustersResponse,
    GroupResponse,
)
from app.services.ai_cluster_acceptor import (
    AcceptanceOrchestrator,
    AcceptancePersistenceError,
    AcceptanceValidationError,
)
from app.services.ai_cluster_generator import (
    ClusterGeneratorService,
    ClusterResponseFormatError,
    ClusterUpstreamError,
)

logger = get_logger(__name__)

router = APIRouter()


def _get_request_id(request: Request) -> str:
    """Get request_id from request state."""
    return getattr(request.state, "request_id", "unknown")


def _error_response(
    status_code: int,
    error: str,
    code: str,
    request_id: str,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "code": code, "request_id": request_id, **extra},
        headers=headers,
    )


def _upstream_error_response(e: ClusterUpstreamError, request_id: str) -> JSONResponse:
    if e.status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        headers = (
            {"Retry-After": str(max(int(e.retry_after), 1))}
            if e.retry_after is not None
            else None
        )
        return _error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            str(e),
            "RATE_LIMITED",
            request_id,
            headers=headers,
        )
    if e.retryable:
        return _error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE, str(e), "UPSTREAM_RETRYABLE", request_id
        )
    return _error_response(
        status.HTTP_502_BAD_GATEWAY, str(e), "UPSTREAM_FATAL", request_id
    )


@router.post(
    "/generate",
    response_model=GenerateClustersResponse,
    summary="Generate cluster suggestions",
    description="Cluster the highest-impression queries into suggested groups. Nothing is persisted.",
    responses={
        502: {"description": "Completion service rejected the request or returned a malformed response"},
        503: {"description": "Completion service unavailable or rate limited, retry later"},
        504: {"description": "Generation did not finish in time"},
    },
)
async def generate_clusters(
    request: Request,
    user: UserInfo = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    openrouter: OpenRouterClient = Depends(get_openrouter),
) -> GenerateClustersResponse | JSONResponse:
    """Generate cluster suggestions for the current user."""
    request_id = _get_request_id(request)
    start_time = time.monotonic()
    settings = get_settings()
    logger.debug(
        "Generate clusters request",
        extra={"request_id": request_id, "user_id": user.id},
    )

    service = ClusterGeneratorService(openrouter, session=session, settings=settings)
    try:
        suggestions = await asyncio.wait_for(
            service.generate_for_user(user.id),
            timeout=settings.cluster_generation_timeout,
        )
    except TimeoutError:
        logger.error(
            "Cluster generation timed out",
            extra={
                "request_id": request_id,
                "user_id": user.id,
                "timeout_seconds": settings.cluster_generation_timeout,
            },
        )
        return _error_response(
            status.HTTP_504_GATEWAY_TIMEOUT,
            "Cluster generation timed out",
            "TIMEOUT",
            request_id,
        )
    except ClusterResponseFormatError as e:
        logger.error(
            "Malformed clustering response",
            extra={"request_id": request_id, "user_id": user.id, "error": str(e)},
        )
        return _error_response(
            status.HTTP_502_BAD_GATEWAY, str(e), "MALFORMED_RESPONSE", request_id
        )
    except ClusterUpstreamError as e:
        log = logger.warning if e.retryable else logger.error
        log(
            "Clustering upstream call failed",
            extra={
                "request_id": request_id,
                "user_id": user.id,
                "retryable": e.retryable,
                "status_code": e.status_code,
                "error": str(e),
            },
        )
        return _upstream_error_response(e, request_id)

    logger.info(
        "Cluster suggestions generated",
        extra={
            "request_id": request_id,
            "user_id": user.id,
            "cluster_count": len(suggestions),
            "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
        },
    )
    return GenerateClustersResponse(clusters=suggestions, count=len(suggestions))


@router.post(
    "/accept",
    response_model=AcceptClustersResponse,
    summary="Accept cluster suggestions",
    description="Create one AI-generated group per selected suggestion, in order.",
    responses={
        400: {
            "description": "Validation error",
            "content": {
                "application/json": {
                    "example": {
                        "error": "Invalid clusters selected",
                        "code": "VALIDATION_ERROR",
                        "request_id": "<request_id>",
                    }
                }
            },
        },
        409: {"description": "Every selected suggestion conflicts with an existing group"},
        500: {"description": "Group store failed; earlier groups may have been created"},
    },
)
async def accept_clusters(
    request: Request,
    data: AcceptClustersRequest,
    user: UserInfo = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> AcceptClustersResponse | JSONResponse:
    """Persist the selected suggestions as groups."""
    request_id = _get_request_id(request)
    logger.debug(
        "Accept clusters request",
        extra={
            "request_id": request_id,
            "user_id": user.id,
            "cluster_count": len(data.clusters),
        },
    )

    orchestrator = AcceptanceOrchestrator(session)
    try:
        result = await orchestrator.accept(user.id, data.clusters)
    except AcceptanceValidationError as e:
        logger.warning(
            "Cluster acceptance rejected",
            extra={
                "request_id": request_id,
                "user_id": user.id,
                "error": e.message,
                "invalid_count": len(e.invalid_names),
            },
        )
        return _error_response(
            status.HTTP_400_BAD_REQUEST, e.message, "VALIDATION_ERROR", request_id
        )
    except AcceptancePersistenceError as e:
        logger.error(
            "Cluster acceptance failed",
            extra={
                "request_id": request_id,
                "user_id": user.id,
                "created_count": len(e.created_groups),
                "error": e.message,
            },
        )
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            e.message,
            "PERSISTENCE_ERROR",
            request_id,
            groups=[
                GroupResponse.model_validate(g).model_dump(mode="json", by_alias=True)
                for g in e.created_groups
            ],
        )

    failures = [
        AcceptanceFailureResponse(name=f.name, code=f.code, error=f.error)
        for f in result.failures
    ]

    if not result.created_groups and failures:
        logger.warning(
            "No cluster suggestions accepted",
            extra={
                "request_id": request_id,
                "user_id": user.id,
                "failed_count": len(failures),
            },
        )
        return _error_response(
            status.HTTP_409_CONFLICT,
            failures[0].error if len(failures) == 1 else "No clusters could be accepted",
            failures[0].code,
            request_id,
            failures=[f.model_dump(by_alias=True) for f in failures],
        )

    return AcceptClustersResponse(
        groups=[GroupResponse.model_validate(g) for g in result.created_groups],
        failures=failures,
        accepted_count=result.accepted_count,
    )
