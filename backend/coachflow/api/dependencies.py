"""API Dependencies — hand routes the Services container built at startup."""

from fastapi import Request

from coachflow.services.bootstrap import Services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized")
    return services
