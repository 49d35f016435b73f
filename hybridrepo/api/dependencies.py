"""
FastAPI dependency functions.

Provides one Unit of Work per request, drawn from the HybridRepo stored on
app.state by HybridRepo.lifespan and disposed once the response is sent.
"""

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, Request, status

from hybridrepo.registration import HybridRepo
from hybridrepo.repositories.unit_of_work import UnitOfWork


def get_hybrid_repo(request: Request) -> HybridRepo:
    """
    Dependency returning the application's HybridRepo.

    Raises:
        HTTPException 503: If the application was started without HybridRepo.lifespan
    """
    repo = getattr(request.app.state, "hybrid_repo", None)
    if repo is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data access layer is not configured"
        )
    return repo


async def get_unit_of_work(
    repo: Annotated[HybridRepo, Depends(get_hybrid_repo)],
) -> AsyncIterator[UnitOfWork]:
    """
    Dependency yielding a request-scoped Unit of Work.

    Nothing is committed implicitly: the route calls commit(). Whatever is
    still staged when the request ends is discarded on dispose.

    Example:
        @router.post("/orders")
        async def create_order(uow: UnitOfWorkDep):
            uow.repository(Order).add(Order(...))
            await uow.commit()
    """
    async with repo.unit_of_work() as uow:
        yield uow


# Type aliases for dependency injection
HybridRepoDep = Annotated[HybridRepo, Depends(get_hybrid_repo)]
UnitOfWorkDep = Annotated[UnitOfWork, Depends(get_unit_of_work)]
