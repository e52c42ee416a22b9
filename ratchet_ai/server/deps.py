"""
API Dependencies.

Resolves the services wired into ``app.state.services`` for endpoint handlers.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from ratchet_ai.agent_core.events import SSEHub
from ratchet_ai.agent_core.gates import ApprovalManager, HumanRequestManager
from ratchet_ai.agent_core.provider import HTTPSource
from ratchet_ai.agent_core.runtime import ServiceRegistry
from ratchet_ai.agent_core.security import SecretGuard


def get_services(request: Request) -> ServiceRegistry:
    return request.app.state.services


ServicesDep = Annotated[ServiceRegistry, Depends(get_services)]


def get_approvals(services: ServicesDep) -> ApprovalManager:
    if services.approvals is None:
        raise HTTPException(status_code=503, detail="Approval manager not configured")
    return services.approvals


def get_human_requests(services: ServicesDep) -> HumanRequestManager:
    if services.human_requests is None:
        raise HTTPException(status_code=503, detail="Human request manager not configured")
    return services.human_requests


def get_hub(services: ServicesDep) -> SSEHub:
    if services.hub is None:
        raise HTTPException(status_code=503, detail="Event hub not configured")
    return services.hub


def get_guard(services: ServicesDep) -> SecretGuard | None:
    return services.guard


def get_interactions(services: ServicesDep) -> HTTPSource:
    if services.interactions is None:
        raise HTTPException(status_code=503, detail="Interactive test provider not configured")
    return services.interactions


ApprovalsDep = Annotated[ApprovalManager, Depends(get_approvals)]
HumanRequestsDep = Annotated[HumanRequestManager, Depends(get_human_requests)]
HubDep = Annotated[SSEHub, Depends(get_hub)]
GuardDep = Annotated[SecretGuard | None, Depends(get_guard)]
InteractionsDep = Annotated[HTTPSource, Depends(get_interactions)]
