"""
Schema Publishing API Endpoints
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from loguru import logger

from app.core.exceptions import CompilationError, SchemaValidationError
from app.schemas.schema_models import (
    DatabasePreview,
    PreviewResponse,
    PublishFailureResponse,
    PublishRequest,
    PublishResponse,
    StatementPreview,
)
from app.services.ddl_compiler import schema_compiler
from app.services.publisher import schema_publisher

router = APIRouter()

# HTTP status per error kind; "channel" means the server was never reached or released
ERROR_STATUS = {
    "validation": 422,
    "compilation": 400,
    "execution": 500,
    "channel": 503,
}


def failure_response(status_code: int, body: PublishFailureResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.post(
    "",
    response_model=PublishResponse,
    responses={code: {"model": PublishFailureResponse} for code in set(ERROR_STATUS.values())}
)
async def publish_schema(request: PublishRequest):
    """
    Create the submitted databases, tables and foreign keys on the server
    """
    logger.info(f"Received publish request for {len(request.databases)} database(s)")

    result = await schema_publisher.publish(request.databases)

    if result.success:
        return PublishResponse(message=result.message, executed=result.executed)

    return failure_response(
        ERROR_STATUS.get(result.error_kind, 500),
        PublishFailureResponse(
            message=result.message,
            error=result.error_kind or "publish",
            statement=result.failed_statement,
            executed=result.executed,
            errors=result.errors
        )
    )


@router.post("/preview", response_model=PreviewResponse)
async def preview_schema(request: PublishRequest):
    """
    Compile the submission without touching the server
    """
    try:
        compiled = schema_compiler.compile_submission(request.databases)
    except SchemaValidationError as e:
        return failure_response(
            ERROR_STATUS[e.code],
            PublishFailureResponse(message=e.message, error=e.code, errors=e.issues)
        )
    except CompilationError as e:
        return failure_response(
            ERROR_STATUS[e.code],
            PublishFailureResponse(message=e.message, error=e.code)
        )

    databases = [
        DatabasePreview(
            name=db.name,
            statements=[
                StatementPreview(
                    kind=statement.kind.value,
                    target=statement.target,
                    sql=statement.sql,
                    params=list(statement.params)
                )
                for statement in db.statements()
            ]
        )
        for db in compiled
    ]

    return PreviewResponse(
        success=True,
        databases=databases,
        total_statements=sum(len(db.statements) for db in databases)
    )
