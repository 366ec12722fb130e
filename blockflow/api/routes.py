"""
API routes for Blockflow
"""
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field, ValidationError

from ..core.execution.engine import ExecutionEngine
from ..core.execution.errors import (
    BlockExecutionError,
    BudgetExceededError,
    ConcurrencyError,
    ConstructionError,
    ExecutionError,
    ExecutionTimeoutError,
    GraphValidationError,
)
from ..core.execution.options import ExecutionOptions
from ..core.execution.registry import BlockDefinition, BlockRegistry
from ..core.execution.report import check_program
from ..core.program import Program
from ..utils.logger import get_logger
from ..utils.serialization import make_serializable

logger = get_logger(__name__)

router = APIRouter()

# Engine error -> HTTP status
ERROR_STATUS = (
    (ExecutionTimeoutError, 504),
    (ConcurrencyError, 409),
    (GraphValidationError, 400),
    (ConstructionError, 400),
    (BudgetExceededError, 422),
    (BlockExecutionError, 422),
)


def get_registry(request: Request) -> BlockRegistry:
    """Get the BlockRegistry from app state (injected by FastAPI)"""
    return request.app.state.registry


# Request/Response models
class ProgramModel(BaseModel):
    """Program document, as saved by the editor"""
    elements: Union[List[Dict[str, Any]], Dict[str, Dict[str, Any]]] = Field(
        default_factory=list,
        description="Elements as a list, or a dict keyed by element id"
    )
    connections: Union[List[Dict[str, Any]], Dict[str, Dict[str, Any]]] = Field(
        default_factory=list,
        description="Connections as a list, or a dict keyed by connection id"
    )


class RunOptionsModel(BaseModel):
    """Budgets for a run; unset fields use the configured defaults"""
    max_execution_time: Optional[float] = Field(default=None, description="Time budget (ms)")
    max_steps: Optional[int] = Field(default=None, description="Maximum visit attempts")
    step_delay: Optional[float] = Field(default=None, description="Pause after each element (ms)")
    block_timeout: Optional[float] = Field(default=None, description="Per-block time limit (ms)")
    enable_cycle_detection: Optional[bool] = None


class ExecuteRequest(BaseModel):
    program: ProgramModel
    options: RunOptionsModel = Field(default_factory=RunOptionsModel)
    variables: Dict[str, Any] = Field(default_factory=dict, description="Runtime variables for the run")


class ValidateBlockRequest(BaseModel):
    props: Dict[str, Any] = Field(default_factory=dict)


def _describe_block(block_type: str, definition: BlockDefinition) -> Dict[str, Any]:
    try:
        preview = definition.render(definition.get_default_props()).to_dict()
    except Exception as e:
        logger.warning(f"Render preview failed for {block_type}: {e}")
        preview = None
    return {
        "type": block_type,
        "display_name": definition.display_name,
        "category": definition.category.value,
        "inputs": list(definition.inputs),
        "outputs": list(definition.outputs),
        "default_props": make_serializable(definition.get_default_props()),
        "description": definition.description,
        "version": definition.version,
        "color": definition.color,
        "icon": definition.icon,
        "author": definition.author,
        "is_circular": definition.is_circular,
        "capabilities": sorted(definition.supplied),
        "preview": preview,
    }


def _parse_program(model: ProgramModel) -> Program:
    try:
        return Program.from_dict(model.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _error_status(error: ExecutionError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


# Registry endpoints
@router.get("/health")
async def health(registry: BlockRegistry = Depends(get_registry)):
    """Health check"""
    return {
        "status": "healthy",
        "block_types": len(registry),
    }


@router.get("/blocks")
async def list_blocks(
    category: Optional[str] = Query(default=None, description="Only blocks in this category"),
    registry: BlockRegistry = Depends(get_registry),
):
    """List registered block types"""
    if category is None:
        blocks = registry.get_all()
    else:
        try:
            blocks = registry.get_by_category(category)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    return {"blocks": [_describe_block(block.type, block.definition) for block in blocks]}


@router.get("/blocks/stats")
async def block_stats(registry: BlockRegistry = Depends(get_registry)):
    """Registry statistics"""
    return registry.get_stats()


@router.get("/blocks/{block_type}")
async def get_block(block_type: str, registry: BlockRegistry = Depends(get_registry)):
    """Describe one block type"""
    definition = registry.get(block_type)
    if definition is None:
        raise HTTPException(status_code=404, detail=f'Block type "{block_type}" is not registered')
    return _describe_block(block_type, definition)


@router.post("/blocks/{block_type}/validate")
async def validate_block(
    block_type: str,
    request: ValidateBlockRequest,
    registry: BlockRegistry = Depends(get_registry),
):
    """Check props against a block type"""
    return registry.validate_block(block_type, request.props).to_dict()


# Program endpoints
@router.post("/programs/validate")
async def validate_program(request: ProgramModel, registry: BlockRegistry = Depends(get_registry)):
    """Check a program without running it"""
    program = _parse_program(request)
    return check_program(program.elements, program.connections, registry).to_dict()


@router.post("/programs/execute")
async def execute_program(request: ExecuteRequest, registry: BlockRegistry = Depends(get_registry)):
    """
    Run a program once and return the final execution state

    Engine failures are returned with a status matching the error kind and
    the partial state recorded before the failure.
    """
    program = _parse_program(request.program)
    try:
        options = ExecutionOptions(**request.options.model_dump(exclude_none=True))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid options: {e}")

    try:
        engine = ExecutionEngine(program.elements, program.connections, registry)
    except ConstructionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        state = await engine.execute(options, variables=request.variables)
    except ExecutionError as e:
        raise HTTPException(
            status_code=_error_status(e),
            detail={
                "error": type(e).__name__,
                "message": str(e),
                "element_id": getattr(e, 'element_id', None),
                "state": engine.get_execution_state().to_dict(),
            },
        )

    return {
        "state": state.to_dict(),
        "stats": engine.get_execution_stats(),
    }
