"""
Flow Routes

Endpoints for flow instances:
- Flow view (stages, tasks, assignees, comment counts)
- Create sale flow / ensure payment flow
- Start, complete, move current stage
"""

from fastapi import APIRouter, Depends
from pymongo.database import Database

from ..deps import get_current_user_dep, get_database_dep, get_change_feed_dep
from .schemas import (
    CreateSaleFlowRequest, EnsurePaymentFlowRequest, EnsurePaymentFlowResponse, SetCurrentStageRequest
)
from ...domain.models import ActorContext, Flow, FlowView
from ...domain.enums import FlowKind
from ...realtime.change_feed import ChangeFeed
from ...services.flow_service import FlowService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


def get_flow_service(
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
) -> FlowService:
    return FlowService(database, feed)


@router.post("/sale", response_model=Flow, status_code=201)
def create_sale_flow(
    request: CreateSaleFlowRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    service: FlowService = Depends(get_flow_service)
):
    """Create the sale flow of a reservation and seed default assignees"""
    return service.create_sale_flow(request.reservation_id, request.flow_template_id, actor)


@router.post("/payment/ensure", response_model=EnsurePaymentFlowResponse)
def ensure_payment_flow(
    request: EnsurePaymentFlowRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    service: FlowService = Depends(get_flow_service)
):
    """Open the commission's main payment flow, creating it the first time"""
    flow, created = service.ensure_payment_flow(request.broker_commission_id, actor)
    return EnsurePaymentFlowResponse(flow=flow, created=created)


@router.get("/{kind}/{flow_id}", response_model=FlowView)
def get_flow(
    kind: FlowKind,
    flow_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: FlowService = Depends(get_flow_service)
):
    return service.get_flow_view(kind, flow_id)


@router.post("/{kind}/{flow_id}/start", response_model=Flow)
def start_flow(
    kind: FlowKind,
    flow_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: FlowService = Depends(get_flow_service)
):
    return service.start_flow(kind, flow_id, actor)


@router.post("/{kind}/{flow_id}/complete", response_model=Flow)
def complete_flow(
    kind: FlowKind,
    flow_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: FlowService = Depends(get_flow_service)
):
    return service.complete_flow(kind, flow_id, actor)


@router.put("/{kind}/{flow_id}/current-stage", response_model=Flow)
def set_current_stage(
    kind: FlowKind,
    flow_id: str,
    request: SetCurrentStageRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    service: FlowService = Depends(get_flow_service)
):
    """Move the flow to another stage of its own template"""
    return service.set_current_stage(kind, flow_id, request.stage_id, actor)
